"""
Base model class with common functionality.
"""
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import Column, DateTime
from sqlalchemy.orm import declarative_base


def utcnow() -> datetime:
    """Naive UTC timestamp; all DateTime columns store UTC without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class CustomBase:
    """
    Custom base class for all models.
    """

    def to_dict(self) -> Dict[str, Any]:
        """Convert model instance to dictionary."""
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}


Base = declarative_base(cls=CustomBase)


class TimestampMixin:
    """Mixin for timestamp fields."""
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=utcnow, nullable=True)
