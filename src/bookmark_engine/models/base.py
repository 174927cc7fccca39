"""SQLAlchemy declarative base with common mixins."""
from datetime import UTC, datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from uuid6 import uuid7


def utcnow() -> datetime:
    """Naive UTC now; all timestamps are stored without a time zone."""
    return datetime.now(UTC).replace(tzinfo=None)


def new_id() -> str:
    """Generate an opaque, time-ordered identifier."""
    return str(uuid7())


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class UUIDv7Mixin:
    """Mixin that adds a UUIDv7 string primary key generated on the Python side."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)


class SoftDeleteMixin:
    """
    Mixin that adds the soft-delete marker.

    deleted_at IS NULL means the row is live; a timestamp means it sits in the trash.
    """

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None, index=True,
    )

    @property
    def is_deleted(self) -> bool:
        """Check if the row is currently soft-deleted."""
        return self.deleted_at is not None
