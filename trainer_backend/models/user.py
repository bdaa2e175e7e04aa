"""Profile model definitions."""

import uuid

from sqlalchemy import Column, String
from trainer_backend.database import Base


class Profile(Base):
    """A trainer or client account."""
    __tablename__ = "profiles"

    id = Column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    email = Column(String, unique=True, index=True)
    name = Column(String)
    role = Column(String)  # trainer/client
