import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from trainer_backend.core import config
from trainer_backend.core.errors import Unavailable


logger = logging.getLogger(__name__)

engine = create_async_engine(config.DATABASE_URL, echo=config.SQL_ECHO)

SessionLocal = async_sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
)

Base = declarative_base()

# One lock per trainer and date. Entries disappear once no task holds them.
_schedule_locks: "weakref.WeakValueDictionary[tuple[str, date], asyncio.Lock]" = weakref.WeakValueDictionary()


def schedule_lock(trainer_id: str, on_date: date) -> asyncio.Lock:
    key = (trainer_id, on_date)
    lock = _schedule_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _schedule_locks[key] = lock
    return lock


async def create_schema(bind: AsyncEngine | None = None) -> None:
    # Model modules register their tables on Base.metadata when imported.
    from trainer_backend.models import availability, booking, notification, user  # noqa: F401

    async with (bind or engine).begin() as connection:
        await connection.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as db:
        yield db


@asynccontextmanager
async def transaction(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Open a session and commit on success. Any failure rolls everything back."""
    async with session_factory() as session:
        try:
            async with session.begin():
                yield session
        except SQLAlchemyError as exc:
            logger.exception('Scheduling transaction failed and was rolled back.')
            raise Unavailable('Database unavailable. Verify DATABASE_URL and Postgres credentials.') from exc
