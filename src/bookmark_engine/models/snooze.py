"""SnoozedItem model for time-deferred bookmarks and tabs."""
from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from bookmark_engine.models.base import Base, UUIDv7Mixin, utcnow


class SnoozeItemType(StrEnum):
    """Kind of item that was snoozed; decides what item_id refers to."""

    BOOKMARK = "bookmark"
    TAB = "tab"


class SnoozeType(StrEnum):
    """Preset the user picked when snoozing."""

    LATER_TODAY = "later_today"
    TOMORROW = "tomorrow"
    NEXT_WEEK = "next_week"
    CUSTOM = "custom"


class SnoozedItem(Base, UUIDv7Mixin):
    """
    A deferred-wake record.

    item_id is a weak reference (bookmark id or tab id depending on item_type).
    Records are never expired automatically; the external restorer deletes them
    once the item has been woken.
    """

    __tablename__ = "snoozed_items"
    __table_args__ = (
        Index("ix_snoozed_items_item", "item_type", "item_id"),
        # Sweep query: due and not yet notified
        Index("ix_snoozed_items_due", "notification_sent", "snooze_until"),
    )

    item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    item_id: Mapped[str] = mapped_column(String(64), nullable=False)
    profile_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    space_id: Mapped[str] = mapped_column(String(64), nullable=False)
    snooze_until: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    snooze_type: Mapped[str] = mapped_column(String(20), nullable=False)
    snooze_label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Snapshot of the item used to restore it on wake
    original_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    snoozed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    snoozed_from_space_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notification_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    wake_up_notified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<SnoozedItem(id='{self.id}', item_type='{self.item_type}', item_id='{self.item_id}')>"
