"""Trainer availability rule definitions."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String, Time
from trainer_backend.database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class AvailabilityRule(Base):
    """A recurring weekly window, or a date-specific opening or block."""
    __tablename__ = "trainer_availability"
    __table_args__ = (
        Index("idx_trainer_availability_day", "trainer_id", "day_of_week"),
        Index("idx_trainer_availability_date", "trainer_id", "specific_date"),
    )

    id = Column(String(32), primary_key=True, default=_new_id)
    trainer_id = Column(String(32), ForeignKey("profiles.id"), nullable=False)
    day_of_week = Column(Integer)  # 0=Sunday, 6=Saturday
    specific_date = Column(Date)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_recurring = Column(Boolean, nullable=False, default=True)
    is_blocked = Column(Boolean, nullable=False, default=False)
    session_durations = Column(JSON)  # minutes offered in this window; NULL means any
    created_at = Column(DateTime, nullable=False, default=datetime.now)
