"""Client session requests."""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from trainer_backend.core import config
from trainer_backend.core.errors import InvalidArgument, InvalidState
from trainer_backend.scheduling.entities import Booking, BookingStatus, require_trainer_id
from trainer_backend.scheduling.intervals import from_minutes, to_minutes
from trainer_backend.scheduling.selection import BookingSelection
from trainer_backend.scheduling.slots import generate_slots
from trainer_backend.stores import booking_store, rule_store

logger = logging.getLogger(__name__)


def validate_session_length(duration_minutes: int) -> int:
    if not config.MIN_SESSION_MINUTES <= duration_minutes <= config.MAX_SESSION_MINUTES:
        raise InvalidArgument(
            f'Sessions must last between {config.MIN_SESSION_MINUTES} and {config.MAX_SESSION_MINUTES} minutes.'
        )
    return duration_minutes


async def request_booking(
    session: AsyncSession,
    *,
    trainer_id: str,
    client_id: str,
    selection: BookingSelection,
    notes: Optional[str] = None,
    today: Optional[date] = None,
) -> Booking:
    """Create a pending booking for a start time the trainer currently offers.

    Several clients may request overlapping times; the trainer decides later.
    A time that overlaps a confirmed session, or no longer fits the trainer's
    availability, is refused.
    """
    trainer_id = require_trainer_id(trainer_id)
    if not selection.is_complete:
        raise InvalidArgument('Choose a date, a duration and a start time before requesting a session.')

    today = today or date.today()
    if selection.date <= today:
        raise InvalidArgument('Sessions can only be requested from tomorrow onwards.')

    duration = validate_session_length(selection.duration_minutes)
    availability = await rule_store.load_availability(session, trainer_id, selection.date, duration)
    existing = await booking_store.list_bookings(
        session,
        trainer_id,
        selection.date,
        statuses=[BookingStatus.PENDING, BookingStatus.CONFIRMED],
    )
    offered = {
        slot.start_time
        for slot in generate_slots(availability, duration, existing, trainer_id=trainer_id, on_date=selection.date)
    }
    if selection.start_time not in offered:
        raise InvalidState('This time is no longer available. Please choose another time.')

    booking = await booking_store.create_booking(
        session,
        trainer_id=trainer_id,
        client_id=client_id,
        on_date=selection.date,
        start_time=selection.start_time,
        end_time=from_minutes(to_minutes(selection.start_time) + duration),
        duration_minutes=duration,
        client_notes=notes,
    )
    logger.info(
        'Client %s requested %s %s-%s with trainer %s',
        client_id,
        booking.date,
        booking.start_time,
        booking.end_time,
        trainer_id,
    )
    return booking
