"""User model definitions."""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String
from lms_backend.core import config
from lms_backend.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every datetime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Role(str, enum.Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


class User(Base):
    """Represents one LMS account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(50), nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String(20), nullable=False, default=Role.STUDENT.value)
    avatar = Column(String, default=config.DEFAULT_AVATAR)
    bio = Column(String(200))
    last_active = Column(DateTime, default=utcnow)
    reset_password_token_hash = Column(String(64))
    reset_password_expires_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
