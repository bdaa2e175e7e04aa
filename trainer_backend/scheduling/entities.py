"""Typed scheduling entities.

Database rows and raw JSON records are converted here, at the boundary, so
the resolver, slot generator and conflict resolver only ever see validated
values. Anything malformed becomes an ``InvalidArgument``.
"""

from datetime import date, datetime, time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from trainer_backend.core.errors import InvalidArgument
from trainer_backend.scheduling.intervals import Interval


class BookingStatus(str, Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'


# Forward transitions only. Nothing returns to pending.
ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def parse_time_of_day(value: Any) -> time:
    """Accept ``time`` values and ``HH:MM`` / ``HH:MM:SS`` strings, truncated to the minute."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    if isinstance(value, str):
        try:
            parsed = time.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValueError(f'Invalid time of day: {value!r}') from exc
        return parsed.replace(second=0, microsecond=0, tzinfo=None)
    raise ValueError(f'Invalid time of day: {value!r}')


def parse_calendar_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError as exc:
            raise InvalidArgument(f'Invalid date: {value!r}') from exc
    raise InvalidArgument(f'Invalid date: {value!r}')


def require_trainer_id(trainer_id: Any) -> str:
    if not isinstance(trainer_id, str) or not trainer_id.strip():
        raise InvalidArgument('A trainer id is required.')
    return trainer_id.strip()


def _validation_message(exc: ValidationError) -> str:
    return '; '.join(
        f"{'.'.join(str(part) for part in error['loc']) or 'record'}: {error['msg']}"
        for error in exc.errors()
    )


class AvailabilityRule(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: Optional[str] = None
    trainer_id: str
    day_of_week: Optional[int] = None
    specific_date: Optional[date] = None
    start_time: time
    end_time: time
    is_recurring: bool = True
    is_blocked: bool = False
    session_durations: Optional[list[int]] = None
    created_at: Optional[datetime] = None

    @field_validator('trainer_id')
    @classmethod
    def validate_trainer_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Trainer id is required.')
        return normalized

    @field_validator('day_of_week')
    @classmethod
    def validate_day_of_week(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and not 0 <= value <= 6:
            raise ValueError('Day of week must be between 0 (Sunday) and 6 (Saturday).')
        return value

    @field_validator('session_durations')
    @classmethod
    def validate_session_durations(cls, value: Optional[list[int]]) -> Optional[list[int]]:
        if value is None:
            return None
        if not value or any(minutes <= 0 for minutes in value):
            raise ValueError('Session durations must be a non-empty list of positive minutes.')
        return sorted(set(value))

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def validate_times(cls, value: Any) -> time:
        return parse_time_of_day(value)

    @model_validator(mode='after')
    def validate_window(self) -> 'AvailabilityRule':
        if self.start_time >= self.end_time:
            raise ValueError('End time must be after start time.')
        if self.is_recurring and self.day_of_week is None:
            raise ValueError('Recurring availability needs a day of week.')
        if not self.is_recurring and self.specific_date is None:
            raise ValueError('One-off availability needs a specific date.')
        return self

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)

    def applies_to(self, on_date: date) -> bool:
        if self.is_recurring:
            return self.day_of_week == day_of_week(on_date)
        return self.specific_date == on_date


class Booking(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    trainer_id: str
    client_id: str
    date: date
    start_time: time
    end_time: time
    duration_minutes: Optional[int] = None
    status: BookingStatus = BookingStatus.PENDING
    client_notes: Optional[str] = None
    trainer_notes: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def validate_times(cls, value: Any) -> time:
        return parse_time_of_day(value)

    @model_validator(mode='after')
    def validate_window(self) -> 'Booking':
        if self.start_time >= self.end_time:
            raise ValueError('Booking must end after it starts.')
        return self

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)


def day_of_week(on_date: date) -> int:
    """Sunday=0 ... Saturday=6."""
    return (on_date.weekday() + 1) % 7


def to_rule(record: Any) -> AvailabilityRule:
    try:
        if isinstance(record, dict):
            return AvailabilityRule.model_validate(record)
        return AvailabilityRule.model_validate(record, from_attributes=True)
    except ValidationError as exc:
        raise InvalidArgument(f'Malformed availability rule: {_validation_message(exc)}') from exc


def to_booking(record: Any) -> Booking:
    try:
        if isinstance(record, dict):
            return Booking.model_validate(record)
        return Booking.model_validate(record, from_attributes=True)
    except ValidationError as exc:
        raise InvalidArgument(f'Malformed booking: {_validation_message(exc)}') from exc
