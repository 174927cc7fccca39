"""Pydantic schemas for collections."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from bookmark_engine.schemas.validators import validate_non_blank


class CollectionCreate(BaseModel):
    """Schema for creating a collection."""

    name: str
    profile_id: str
    space_id: str | None = None
    description: str | None = None
    parent_id: str | None = None
    is_auto: bool = False
    rules: dict[str, Any] | None = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        """Reject blank names."""
        return validate_non_blank(v, "name")


class CollectionUpdate(BaseModel):
    """Schema for a partial collection update (name and description only)."""

    name: str | None = None
    description: str | None = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str | None) -> str | None:
        """Reject blank names if provided."""
        if v is None:
            return None
        return validate_non_blank(v, "name")


class CollectionRecord(BaseModel):
    """
    A stored collection.

    bookmark_count and depth are computed by the listing operations; a
    collection fetched on its own reports zero for both.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None = None
    profile_id: str
    space_id: str | None = None
    parent_id: str | None = None
    is_auto: bool
    rules: dict[str, Any] | None = None
    date_created: datetime
    date_modified: datetime | None = None
    deleted_at: datetime | None = None
    bookmark_count: int = 0
    depth: int = 0
