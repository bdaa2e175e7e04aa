import asyncio
import os
from datetime import date, datetime, time

import pytest

os.environ.setdefault('DATABASE_URL', 'sqlite+aiosqlite:///:memory:')

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from trainer_backend.database import create_schema  # noqa: E402
from trainer_backend.models.availability import AvailabilityRule as AvailabilityRuleRow  # noqa: E402
from trainer_backend.models.booking import Booking as BookingRow  # noqa: E402
from trainer_backend.models.user import Profile  # noqa: E402


@pytest.fixture
def session_factory(tmp_path):
    # A file database with fresh connections lets setup code and the app run on different event loops.
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'scheduling.db'}", poolclass=NullPool)
    factory = async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    asyncio.run(create_schema(engine))
    try:
        yield factory
    finally:
        asyncio.run(engine.dispose())


async def add_rows(factory, *rows) -> None:
    async with factory() as session:
        session.add_all(rows)
        await session.commit()


def booking_row(
    booking_id: str,
    start: str,
    end: str,
    *,
    status: str = 'pending',
    trainer_id: str = 'trainer-1',
    client_id: str = 'client-1',
    on_date: date = date(2026, 1, 5),
    created_at: datetime | None = None,
) -> BookingRow:
    start_time = time.fromisoformat(start)
    end_time = time.fromisoformat(end)
    return BookingRow(
        id=booking_id,
        trainer_id=trainer_id,
        client_id=client_id,
        date=on_date,
        start_time=start_time,
        end_time=end_time,
        duration_minutes=(end_time.hour * 60 + end_time.minute) - (start_time.hour * 60 + start_time.minute),
        status=status,
        created_at=created_at or datetime(2026, 1, 1, 9, 0),
    )


def rule_row(
    start: str,
    end: str,
    *,
    trainer_id: str = 'trainer-1',
    day_of_week: int | None = 1,
    specific_date: date | None = None,
    is_blocked: bool = False,
    session_durations: list[int] | None = None,
) -> AvailabilityRuleRow:
    return AvailabilityRuleRow(
        trainer_id=trainer_id,
        day_of_week=day_of_week if specific_date is None else None,
        specific_date=specific_date,
        start_time=time.fromisoformat(start),
        end_time=time.fromisoformat(end),
        is_recurring=specific_date is None,
        is_blocked=is_blocked,
        session_durations=session_durations,
    )


def profile_row(profile_id: str, role: str) -> Profile:
    return Profile(id=profile_id, email=f'{profile_id}@example.com', name=profile_id.title(), role=role)
