"""Notification rows written after booking decisions.

Only the stored notice is produced here; push delivery is handled elsewhere.
"""

from datetime import date, time

from sqlalchemy.ext.asyncio import AsyncSession

from trainer_backend.models.notification import Notification
from trainer_backend.scheduling.conflicts import ConfirmationResult
from trainer_backend.scheduling.entities import Booking, BookingStatus


def format_date(value: date) -> str:
    return f'{value:%a, %b} {value.day}'


def format_time(value: time) -> str:
    return value.strftime('%I:%M %p').lstrip('0')


def status_notice(booking: Booking) -> Notification:
    when = f'{format_date(booking.date)} at {format_time(booking.start_time)}'
    if booking.status is BookingStatus.CONFIRMED:
        message = f'Your session on {when} has been confirmed!'
    elif booking.status is BookingStatus.COMPLETED:
        message = f'Your session on {when} has been marked as completed.'
    else:
        message = f'Your session on {when} has been cancelled.'

    return Notification(
        user_id=booking.client_id,
        title=f'Booking {booking.status.value.capitalize()}',
        message=message,
        type=f'booking_{booking.status.value}',
    )


def cascade_notice(booking: Booking) -> Notification:
    return Notification(
        user_id=booking.client_id,
        title='Booking Cancelled',
        message=(
            f'Your session request on {format_date(booking.date)} at {format_time(booking.start_time)} '
            'was cancelled because the trainer confirmed another booking for the same time slot.'
        ),
        type='booking_cancelled',
    )


async def record_confirmation_notices(session: AsyncSession, result: ConfirmationResult) -> list[Notification]:
    notices = [status_notice(result.confirmed)] + [cascade_notice(booking) for booking in result.cancelled]
    session.add_all(notices)
    await session.commit()
    return notices


async def record_status_notice(session: AsyncSession, booking: Booking) -> Notification:
    notice = status_notice(booking)
    session.add(notice)
    await session.commit()
    return notice
