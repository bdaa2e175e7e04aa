from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from trainer_backend.auth.dependencies import require_trainer
from trainer_backend.core import config
from trainer_backend.core.errors import SchedulingError
from trainer_backend.database import get_db
from trainer_backend.models.user import Profile
from trainer_backend.scheduling.entities import BookingStatus, parse_time_of_day, to_rule
from trainer_backend.scheduling.resolver import available_dates
from trainer_backend.scheduling.slots import SlotState, generate_slots
from trainer_backend.stores import booking_store, rule_store

router = APIRouter(tags=['availability'])

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'
MAX_LOOKAHEAD_DAYS = 60


class CreateAvailabilityRuleRequest(BaseModel):
    day_of_week: int | None = None
    specific_date: date | None = None
    start_time: time
    end_time: time
    is_recurring: bool = True
    is_blocked: bool = False
    session_durations: list[int] | None = None

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def validate_time(cls, value):
        return parse_time_of_day(value)

    @field_validator('day_of_week')
    @classmethod
    def validate_day_of_week(cls, value: int | None) -> int | None:
        if value is not None and not 0 <= value <= 6:
            raise ValueError('Day of week must be between 0 (Sunday) and 6 (Saturday).')
        return value

    @field_validator('session_durations')
    @classmethod
    def validate_session_durations(cls, value: list[int] | None) -> list[int] | None:
        if value is None:
            return None
        if not value:
            raise ValueError('Offer at least one session length, or leave it empty for any length.')
        for minutes in value:
            if not config.MIN_SESSION_MINUTES <= minutes <= config.MAX_SESSION_MINUTES:
                raise ValueError(
                    f'Session lengths must be between {config.MIN_SESSION_MINUTES} and {config.MAX_SESSION_MINUTES} minutes.'
                )
        return sorted(set(value))

    @model_validator(mode='after')
    def validate_window(self) -> 'CreateAvailabilityRuleRequest':
        if self.start_time >= self.end_time:
            raise ValueError('End time must be after start time.')
        if self.is_recurring and self.day_of_week is None:
            raise ValueError('Choose a day of the week for recurring availability.')
        if not self.is_recurring and self.specific_date is None:
            raise ValueError('Choose a date for one-off availability.')
        return self


class AvailabilityRuleResponse(BaseModel):
    id: str
    trainer_id: str
    day_of_week: int | None = None
    specific_date: date | None = None
    start_time: time
    end_time: time
    is_recurring: bool
    is_blocked: bool
    session_durations: list[int] | None = None

    model_config = ConfigDict(from_attributes=True)


class WindowResponse(BaseModel):
    start_time: time
    end_time: time


class SlotResponse(BaseModel):
    start_time: time
    end_time: time
    state: SlotState
    is_requested: bool


class DurationOptionsResponse(BaseModel):
    presets: list[int]
    min_minutes: int
    max_minutes: int
    custom_allowed: bool = True


def validate_lookahead(days: int) -> int:
    if not 1 <= days <= MAX_LOOKAHEAD_DAYS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Days must be between 1 and {MAX_LOOKAHEAD_DAYS}.',
        )
    return days


@router.get('/durations', response_model=DurationOptionsResponse)
def list_session_durations():
    return DurationOptionsResponse(
        presets=config.PRESET_SESSION_MINUTES,
        min_minutes=config.MIN_SESSION_MINUTES,
        max_minutes=config.MAX_SESSION_MINUTES,
    )


@router.get('/{trainer_id}/durations', response_model=DurationOptionsResponse)
async def list_trainer_session_durations(
    trainer_id: str,
    on_date: date = Query(..., alias='date'),
    db: AsyncSession = Depends(get_db),
):
    try:
        offered = await rule_store.load_offered_durations(db, trainer_id, on_date)
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    if offered is None:
        return list_session_durations()
    return DurationOptionsResponse(
        presets=offered,
        min_minutes=offered[0],
        max_minutes=offered[-1],
        custom_allowed=False,
    )


@router.get('/{trainer_id}/rules', response_model=list[AvailabilityRuleResponse])
async def list_rules(trainer_id: str, db: AsyncSession = Depends(get_db)):
    try:
        return await rule_store.list_availability_rules(db, trainer_id)
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.post('/rules', response_model=AvailabilityRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule(
    data: CreateAvailabilityRuleRequest,
    trainer: Profile = Depends(require_trainer),
    db: AsyncSession = Depends(get_db),
):
    try:
        rule = to_rule({'trainer_id': trainer.id, **data.model_dump()})
        created = await rule_store.create_availability_rule(db, rule)
        await db.commit()
        return created
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.delete('/rules/{rule_id}', status_code=status.HTTP_204_NO_CONTENT)
async def remove_rule(
    rule_id: str,
    trainer: Profile = Depends(require_trainer),
    db: AsyncSession = Depends(get_db),
):
    try:
        await rule_store.delete_availability_rule(db, rule_id, trainer_id=trainer.id)
        await db.commit()
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/{trainer_id}/windows', response_model=list[WindowResponse])
async def list_open_windows(
    trainer_id: str,
    on_date: date = Query(..., alias='date'),
    db: AsyncSession = Depends(get_db),
):
    try:
        intervals = await rule_store.load_availability(db, trainer_id, on_date)
        return [WindowResponse(start_time=interval.start, end_time=interval.end) for interval in intervals]
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/{trainer_id}/dates', response_model=list[date])
async def list_bookable_dates(
    trainer_id: str,
    days: int = Query(default=config.BOOKING_WINDOW_DAYS),
    db: AsyncSession = Depends(get_db),
):
    validate_lookahead(days)

    try:
        rules = await rule_store.list_availability_rules(db, trainer_id)
        # Same-day sessions are not offered.
        tomorrow = datetime.now().date() + timedelta(days=1)
        return available_dates(trainer_id, rules, tomorrow, days)
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/{trainer_id}/slots', response_model=list[SlotResponse])
async def list_slots(
    trainer_id: str,
    on_date: date = Query(..., alias='date'),
    duration: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    try:
        availability = await rule_store.load_availability(db, trainer_id, on_date, duration)
        existing = await booking_store.list_bookings(
            db,
            trainer_id,
            on_date,
            statuses=[BookingStatus.PENDING, BookingStatus.CONFIRMED],
        )
        slots = generate_slots(availability, duration, existing, trainer_id=trainer_id, on_date=on_date)
        return [
            SlotResponse(
                start_time=slot.start_time,
                end_time=slot.end_time,
                state=slot.state,
                is_requested=slot.state is SlotState.REQUESTED,
            )
            for slot in slots
        ]
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
