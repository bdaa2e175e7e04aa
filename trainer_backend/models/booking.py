"""Booking model definitions."""

import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Time
from trainer_backend.database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class Booking(Base):
    """A session requested by a client and decided by the trainer."""
    __tablename__ = "bookings"
    __table_args__ = (
        Index("idx_bookings_trainer_date_status", "trainer_id", "date", "status"),
    )

    id = Column(String(32), primary_key=True, default=_new_id)
    trainer_id = Column(String(32), ForeignKey("profiles.id"), nullable=False)
    client_id = Column(String(32), ForeignKey("profiles.id"), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default="pending")  # pending/confirmed/cancelled/completed
    client_notes = Column(String)
    trainer_notes = Column(String)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
