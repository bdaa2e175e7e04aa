"""Booking persistence. Rows leave this module as typed ``Booking`` entities."""

from datetime import date, datetime, time
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from trainer_backend.core.errors import NotFound
from trainer_backend.models.booking import Booking as BookingRow
from trainer_backend.scheduling.entities import Booking, BookingStatus, to_booking


async def get_booking(session: AsyncSession, booking_id: str, *, for_update: bool = False) -> Booking:
    query = select(BookingRow).where(BookingRow.id == booking_id).execution_options(populate_existing=True)
    if for_update:
        query = query.with_for_update()

    row = (await session.execute(query)).scalar_one_or_none()
    if row is None:
        raise NotFound('Booking not found.')
    return to_booking(row)


async def list_bookings(
    session: AsyncSession,
    trainer_id: str,
    on_date: date,
    statuses: Optional[Iterable[BookingStatus]] = None,
) -> list[Booking]:
    query = select(BookingRow).where(
        BookingRow.trainer_id == trainer_id,
        BookingRow.date == on_date,
    )
    if statuses is not None:
        query = query.where(BookingRow.status.in_([BookingStatus(value).value for value in statuses]))
    query = query.order_by(BookingRow.start_time.asc(), BookingRow.created_at.asc())

    rows = (await session.execute(query.execution_options(populate_existing=True))).scalars().all()
    return [to_booking(row) for row in rows]


async def list_trainer_bookings(
    session: AsyncSession,
    trainer_id: str,
    on_date: Optional[date] = None,
    statuses: Optional[Iterable[BookingStatus]] = None,
) -> list[Booking]:
    query = select(BookingRow).where(BookingRow.trainer_id == trainer_id)
    if on_date is not None:
        query = query.where(BookingRow.date == on_date)
    if statuses is not None:
        query = query.where(BookingRow.status.in_([BookingStatus(value).value for value in statuses]))
    query = query.order_by(BookingRow.date.asc(), BookingRow.start_time.asc())

    rows = (await session.execute(query)).scalars().all()
    return [to_booking(row) for row in rows]


async def list_client_bookings(session: AsyncSession, client_id: str) -> list[Booking]:
    query = (
        select(BookingRow)
        .where(BookingRow.client_id == client_id)
        .order_by(BookingRow.date.asc(), BookingRow.start_time.asc())
    )
    rows = (await session.execute(query)).scalars().all()
    return [to_booking(row) for row in rows]


async def create_booking(
    session: AsyncSession,
    *,
    trainer_id: str,
    client_id: str,
    on_date: date,
    start_time: time,
    end_time: time,
    duration_minutes: int,
    client_notes: Optional[str] = None,
) -> Booking:
    row = BookingRow(
        trainer_id=trainer_id,
        client_id=client_id,
        date=on_date,
        start_time=start_time,
        end_time=end_time,
        duration_minutes=duration_minutes,
        status=BookingStatus.PENDING.value,
        client_notes=client_notes,
        created_at=datetime.now(),
    )
    session.add(row)
    await session.flush()
    return to_booking(row)


async def update_booking_status(
    session: AsyncSession,
    booking_id: str,
    new_status: BookingStatus,
    *,
    expected: Optional[BookingStatus] = None,
) -> bool:
    """Set the status of one booking. With ``expected``, only from that status.

    Returns False when no row matched, meaning the booking changed underneath.
    """
    statement = update(BookingRow).where(BookingRow.id == booking_id)
    if expected is not None:
        statement = statement.where(BookingRow.status == expected.value)
    statement = statement.values(status=new_status.value).execution_options(synchronize_session=False)

    result = await session.execute(statement)
    return result.rowcount == 1


async def cancel_pending_bookings(session: AsyncSession, booking_ids: Iterable[str]) -> int:
    """Cancel the given bookings in one statement, skipping any no longer pending."""
    ids = list(booking_ids)
    if not ids:
        return 0

    statement = (
        update(BookingRow)
        .where(
            BookingRow.id.in_(ids),
            BookingRow.status == BookingStatus.PENDING.value,
        )
        .values(status=BookingStatus.CANCELLED.value)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(statement)
    return result.rowcount
