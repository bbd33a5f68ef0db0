"""
SQLAlchemy declarative base and common mixins.

Provides the base class for the read-side ORM models and a timestamp
mixin shared by them.

Dependencies: sqlalchemy
System role: Foundation for relational metadata models
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    SQLAlchemy declarative base for ORM model registration.

    All database models inherit from this class so they share one
    metadata object (used by tests to create tables).
    """

    pass


class TimestampMixin:
    """
    Mixin providing creation/update timestamps (UTC).

    Attributes:
        created_at: Row creation timestamp
        updated_at: Last modification timestamp
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
