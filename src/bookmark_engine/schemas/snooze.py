"""Pydantic schemas for snoozed items."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from bookmark_engine.models.snooze import SnoozeItemType, SnoozeType
from bookmark_engine.schemas.validators import to_naive_utc


class SnoozeCreate(BaseModel):
    """Schema for snoozing a bookmark or tab."""

    item_type: SnoozeItemType
    item_id: str
    profile_id: str
    space_id: str
    snooze_until: datetime
    snooze_type: SnoozeType
    snooze_label: str | None = None
    original_data: dict[str, Any] = {}
    snoozed_from_space_id: str | None = None

    @field_validator("snooze_until")
    @classmethod
    def normalize_snooze_until(cls, v: datetime) -> datetime:
        """Store wake times as naive UTC."""
        return to_naive_utc(v)


class SnoozeUpdate(BaseModel):
    """Schema for rescheduling a snooze. Only fields explicitly set are applied."""

    snooze_until: datetime | None = None
    snooze_type: SnoozeType | None = None
    snooze_label: str | None = None

    @field_validator("snooze_until")
    @classmethod
    def normalize_snooze_until(cls, v: datetime | None) -> datetime | None:
        """Store wake times as naive UTC."""
        return to_naive_utc(v)


class SnoozedItemRecord(BaseModel):
    """A stored snooze."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    item_type: SnoozeItemType
    item_id: str
    profile_id: str
    space_id: str
    snooze_until: datetime
    snooze_type: SnoozeType
    snooze_label: str | None = None
    original_data: dict[str, Any]
    snoozed_at: datetime
    snoozed_from_space_id: str | None = None
    notification_sent: bool
    wake_up_notified_at: datetime | None = None
