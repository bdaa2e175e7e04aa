"""Duration-aware slot generation over resolved availability."""

from datetime import date, time
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from trainer_backend.core import config
from trainer_backend.core.errors import InvalidArgument
from trainer_backend.scheduling.entities import Booking, BookingStatus
from trainer_backend.scheduling.intervals import Interval, from_minutes, overlaps, to_minutes


class SlotState(str, Enum):
    OPEN = 'open'
    REQUESTED = 'requested'
    BLOCKED_BY_CONFIRMED = 'blocked_by_confirmed'


class Slot(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_time: time
    end_time: time
    state: SlotState

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)


def classify(candidate: Interval, bookings: Iterable[Booking]) -> SlotState:
    requested = False
    for booking in bookings:
        if not overlaps(candidate, booking.interval):
            continue
        if booking.status is BookingStatus.CONFIRMED:
            return SlotState.BLOCKED_BY_CONFIRMED
        if booking.status is BookingStatus.PENDING:
            requested = True
    return SlotState.REQUESTED if requested else SlotState.OPEN


def generate_slots(
    availability: Iterable[Interval],
    duration: int,
    existing_bookings: Iterable[Booking],
    granularity_minutes: Optional[int] = None,
    *,
    trainer_id: Optional[str] = None,
    on_date: Optional[date] = None,
) -> list[Slot]:
    """Bookable start times for a session of ``duration`` minutes.

    Each candidate must fit entirely inside one availability interval.
    Candidates overlapping a confirmed booking are dropped; candidates
    overlapping only pending bookings are kept as ``requested``. When
    ``trainer_id`` or ``on_date`` is given, bookings of other trainers or
    dates are ignored.
    """
    if granularity_minutes is None:
        granularity_minutes = config.SLOT_GRANULARITY_MINUTES
    if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
        raise InvalidArgument('Session duration must be a positive number of minutes.')
    if isinstance(granularity_minutes, bool) or not isinstance(granularity_minutes, int) or granularity_minutes <= 0:
        raise InvalidArgument('Slot granularity must be a positive number of minutes.')

    relevant = [
        booking
        for booking in existing_bookings
        if booking.status in (BookingStatus.PENDING, BookingStatus.CONFIRMED)
        and (trainer_id is None or booking.trainer_id == trainer_id)
        and (on_date is None or booking.date == on_date)
    ]

    slots: dict[time, Slot] = {}
    for interval in availability:
        window_end = to_minutes(interval.end)
        current = to_minutes(interval.start)
        while current + duration <= window_end:
            candidate = Interval(from_minutes(current), from_minutes(current + duration))
            state = classify(candidate, relevant)
            if state is not SlotState.BLOCKED_BY_CONFIRMED and candidate.start not in slots:
                slots[candidate.start] = Slot(start_time=candidate.start, end_time=candidate.end, state=state)
            current += granularity_minutes

    return [slots[start] for start in sorted(slots)]
