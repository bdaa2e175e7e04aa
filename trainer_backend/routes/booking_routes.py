import logging
from datetime import date, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trainer_backend import notices
from trainer_backend.auth.dependencies import get_current_user, require_client, require_trainer
from trainer_backend.core.errors import Conflict, SchedulingError
from trainer_backend.database import SessionLocal, get_db
from trainer_backend.models.user import Profile
from trainer_backend.scheduling.conflicts import cancel_booking, complete_booking, confirm_booking
from trainer_backend.scheduling.entities import Booking, BookingStatus, parse_time_of_day
from trainer_backend.scheduling.requests import request_booking
from trainer_backend.scheduling.selection import BookingSelection
from trainer_backend.stores import booking_store

router = APIRouter(tags=['bookings'])

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'
MAX_BOOKING_NOTES_LENGTH = 600


class CreateBookingRequest(BaseModel):
    trainer_id: str
    date: date
    start_time: time
    duration_minutes: int
    notes: str | None = None

    @field_validator('trainer_id')
    @classmethod
    def validate_trainer_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Trainer is required.')
        return normalized

    @field_validator('start_time', mode='before')
    @classmethod
    def validate_start_time(cls, value):
        return parse_time_of_day(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_BOOKING_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_BOOKING_NOTES_LENGTH} characters or fewer.')

        return normalized


class BookingResponse(BaseModel):
    id: str
    trainer_id: str
    client_id: str
    date: date
    start_time: time
    end_time: time
    duration_minutes: int | None = None
    status: BookingStatus
    client_notes: str | None = None


class ConfirmationResponse(BaseModel):
    confirmed: BookingResponse
    cancelled: list[BookingResponse]


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return SessionLocal


async def load_owned_booking(db: AsyncSession, booking_id: str, trainer: Profile) -> Booking:
    booking = await booking_store.get_booking(db, booking_id)
    if booking.trainer_id != trainer.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only the trainer of this booking can change it.',
        )
    return booking


@router.post('', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_request(
    data: CreateBookingRequest,
    client: Profile = Depends(require_client),
    db: AsyncSession = Depends(get_db),
):
    try:
        selection = (
            BookingSelection()
            .select_date(data.date)
            .select_duration(data.duration_minutes)
            .select_time(data.start_time)
        )
        booking = await request_booking(
            db,
            trainer_id=data.trainer_id,
            client_id=client.id,
            selection=selection,
            notes=data.notes,
        )
        await db.commit()
        return booking
    except SchedulingError as exc:
        await db.rollback()
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('', response_model=list[BookingResponse])
async def list_my_bookings(
    on_date: date | None = Query(default=None, alias='date'),
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        if current_user.role == 'trainer':
            return await booking_store.list_trainer_bookings(db, current_user.id, on_date)
        bookings = await booking_store.list_client_bookings(db, current_user.id)
        return [booking for booking in bookings if on_date is None or booking.date == on_date]
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.post('/{booking_id}/confirm', response_model=ConfirmationResponse)
async def confirm_booking_request(
    booking_id: str,
    trainer: Profile = Depends(require_trainer),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    try:
        await load_owned_booking(db, booking_id, trainer)
        await db.commit()
        try:
            result = await confirm_booking(session_factory, booking_id)
        except Conflict:
            logger.warning('Confirmation of booking %s raced another change; retrying once.', booking_id)
            result = await confirm_booking(session_factory, booking_id)

        try:
            await notices.record_confirmation_notices(db, result)
        except SQLAlchemyError:
            await db.rollback()
            logger.exception('Booking %s was confirmed but its notices could not be stored.', booking_id)
        return result
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


async def _finish_transition(booking_id, trainer, db, session_factory, transition, expected: tuple[BookingStatus, ...]):
    try:
        booking = await load_owned_booking(db, booking_id, trainer)
        if booking.status not in expected:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'Booking is {booking.status.value}.',
            )
        await db.commit()
        updated = await transition(session_factory, booking_id)
        try:
            await notices.record_status_notice(db, updated)
        except SQLAlchemyError:
            await db.rollback()
            logger.exception('Booking %s is %s but its notice could not be stored.', booking_id, updated.status.value)
        return updated
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.post('/{booking_id}/reject', response_model=BookingResponse)
async def reject_booking_request(
    booking_id: str,
    trainer: Profile = Depends(require_trainer),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await _finish_transition(
        booking_id, trainer, db, session_factory, cancel_booking, (BookingStatus.PENDING,)
    )


@router.post('/{booking_id}/cancel', response_model=BookingResponse)
async def cancel_confirmed_booking(
    booking_id: str,
    trainer: Profile = Depends(require_trainer),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await _finish_transition(
        booking_id, trainer, db, session_factory, cancel_booking, (BookingStatus.CONFIRMED,)
    )


@router.post('/{booking_id}/complete', response_model=BookingResponse)
async def mark_booking_completed(
    booking_id: str,
    trainer: Profile = Depends(require_trainer),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    return await _finish_transition(
        booking_id, trainer, db, session_factory, complete_booking, (BookingStatus.CONFIRMED,)
    )
