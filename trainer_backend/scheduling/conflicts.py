"""Booking status transitions and the confirmation cascade.

Confirming a pending booking cancels every other pending booking of the same
trainer on the same date whose interval overlaps it, so that a trainer never
has two overlapping confirmed sessions. Each transition runs under a
per-trainer-per-date lock, inside one transaction, within a time bound; if
anything fails the booking keeps its previous status.

Notifying the affected clients is left to the caller, which receives the
cancelled bookings in the result.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trainer_backend.core import config
from trainer_backend.core.errors import Conflict, InvalidState, Timeout
from trainer_backend.database import schedule_lock, transaction
from trainer_backend.scheduling.entities import Booking, BookingStatus, can_transition
from trainer_backend.scheduling.intervals import overlaps
from trainer_backend.stores import booking_store

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ConfirmationResult(BaseModel):
    confirmed: Booking
    cancelled: list[Booking]


def find_conflicting(confirmed: Booking, candidates: Iterable[Booking]) -> list[Booking]:
    """Pending bookings that the confirmation of ``confirmed`` must cancel."""
    return [
        candidate
        for candidate in candidates
        if candidate.id != confirmed.id
        and candidate.status is BookingStatus.PENDING
        and candidate.trainer_id == confirmed.trainer_id
        and candidate.date == confirmed.date
        and overlaps(candidate.interval, confirmed.interval)
    ]


def _require_transition(booking: Booking, target: BookingStatus) -> None:
    if not can_transition(booking.status, target):
        logger.warning('Refused %s -> %s for booking %s', booking.status.value, target.value, booking.id)
        raise InvalidState(f'Booking is {booking.status.value} and cannot become {target.value}.')


async def _locked(
    session_factory: async_sessionmaker[AsyncSession],
    booking_id: str,
    operation: Callable[[AsyncSession, Booking], Awaitable[T]],
    timeout: Optional[float],
) -> T:
    async def run() -> T:
        # The unlocked read only finds the lock key; the locked read is authoritative.
        async with transaction(session_factory) as session:
            booking = await booking_store.get_booking(session, booking_id)

        async with schedule_lock(booking.trainer_id, booking.date):
            async with transaction(session_factory) as session:
                current = await booking_store.get_booking(session, booking_id, for_update=True)
                return await operation(session, current)

    if timeout is None:
        timeout = config.CONFIRM_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(run(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.warning('Status change for booking %s timed out after %ss; nothing was applied.', booking_id, timeout)
        raise Timeout('The booking could not be updated in time. Please try again.') from exc


async def confirm_booking(
    session_factory: async_sessionmaker[AsyncSession],
    booking_id: str,
    *,
    timeout: Optional[float] = None,
) -> ConfirmationResult:
    async def confirm(session: AsyncSession, booking: Booking) -> ConfirmationResult:
        _require_transition(booking, BookingStatus.CONFIRMED)

        already_confirmed = await booking_store.list_bookings(
            session, booking.trainer_id, booking.date, statuses=[BookingStatus.CONFIRMED]
        )
        if any(overlaps(other.interval, booking.interval) for other in already_confirmed):
            raise InvalidState('Another booking is already confirmed for this time.')

        if not await booking_store.update_booking_status(
            session, booking.id, BookingStatus.CONFIRMED, expected=BookingStatus.PENDING
        ):
            raise Conflict('The booking was changed by another request.')
        confirmed = booking.model_copy(update={'status': BookingStatus.CONFIRMED})

        # Read after the write, in the same transaction.
        pending = await booking_store.list_bookings(
            session, booking.trainer_id, booking.date, statuses=[BookingStatus.PENDING]
        )
        conflicting = find_conflicting(confirmed, pending)
        cancelled_count = await booking_store.cancel_pending_bookings(session, [other.id for other in conflicting])
        if cancelled_count != len(conflicting):
            raise Conflict('Conflicting requests were changed by another request.')

        cancelled = sorted(
            (other.model_copy(update={'status': BookingStatus.CANCELLED}) for other in conflicting),
            key=lambda other: (other.created_at is None, other.created_at, other.id),
        )
        logger.info(
            'Booking %s confirmed for trainer %s on %s; %d overlapping request(s) cancelled',
            confirmed.id,
            confirmed.trainer_id,
            confirmed.date,
            len(cancelled),
        )
        return ConfirmationResult(confirmed=confirmed, cancelled=cancelled)

    return await _locked(session_factory, booking_id, confirm, timeout)


async def _change_status(
    session_factory: async_sessionmaker[AsyncSession],
    booking_id: str,
    target: BookingStatus,
    timeout: Optional[float],
) -> Booking:
    async def change(session: AsyncSession, booking: Booking) -> Booking:
        _require_transition(booking, target)
        if not await booking_store.update_booking_status(session, booking.id, target, expected=booking.status):
            raise Conflict('The booking was changed by another request.')
        logger.info('Booking %s moved from %s to %s', booking.id, booking.status.value, target.value)
        return booking.model_copy(update={'status': target})

    return await _locked(session_factory, booking_id, change, timeout)


async def cancel_booking(
    session_factory: async_sessionmaker[AsyncSession],
    booking_id: str,
    *,
    timeout: Optional[float] = None,
) -> Booking:
    """Reject a pending request or cancel a confirmed session."""
    return await _change_status(session_factory, booking_id, BookingStatus.CANCELLED, timeout)


async def complete_booking(
    session_factory: async_sessionmaker[AsyncSession],
    booking_id: str,
    *,
    timeout: Optional[float] = None,
) -> Booking:
    return await _change_status(session_factory, booking_id, BookingStatus.COMPLETED, timeout)
