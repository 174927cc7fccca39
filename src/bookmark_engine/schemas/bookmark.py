"""Pydantic schemas for bookmarks and their labels."""
from datetime import datetime

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

from bookmark_engine.models.label import LabelCategory, LabelSource
from bookmark_engine.schemas.validators import (
    normalize_label_texts,
    validate_label_text,
    validate_non_blank,
)


class LabelInput(BaseModel):
    """A label to merge onto a bookmark, with its provenance."""

    label: str
    source: LabelSource = LabelSource.USER
    category: LabelCategory | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)

    @field_validator("label")
    @classmethod
    def check_label(cls, v: str) -> str:
        """Strip and validate the label text."""
        return validate_label_text(v)

    @model_validator(mode="after")
    def drop_confidence_for_non_ai(self) -> "LabelInput":
        """Confidence is only meaningful for ai-sourced labels."""
        if self.source != LabelSource.AI:
            self.confidence = None
        return self


class LabelRecord(BaseModel):
    """A stored label."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    label: str
    source: LabelSource
    category: LabelCategory | None = None
    confidence: float | None = None


class LabelCount(BaseModel):
    """A label text with the number of live bookmarks carrying it."""

    label: str
    count: int


class BookmarkCreate(BaseModel):
    """Schema for creating a new bookmark."""

    url: str
    title: str
    profile_id: str
    space_id: str
    description: str | None = None
    favicon: str | None = None
    is_global: bool = False
    # Seeded as user-sourced labels
    labels: list[str] = []

    @field_validator("url", "title")
    @classmethod
    def check_required_text(cls, v: str, info: ValidationInfo) -> str:
        """Reject blank urls and titles."""
        return validate_non_blank(v, info.field_name)

    @field_validator("labels", mode="before")
    @classmethod
    def normalize_labels(cls, v: list[str] | None) -> list[str]:
        """Strip, drop empties and drop duplicates."""
        if v is None:
            return []
        return normalize_label_texts(v)


class BookmarkUpdate(BaseModel):
    """
    Schema for a partial bookmark update.

    Only fields explicitly set are applied. The two label channels are
    independent: `labels` replaces the user-sourced labels, `add_labels`
    merges labels of any source without touching existing ones. When both
    are given, the replace runs first.
    """

    title: str | None = None
    description: str | None = None
    favicon: str | None = None
    is_global: bool | None = None
    labels: list[str] | None = None
    add_labels: list[LabelInput] | None = None

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str | None) -> str:
        """title is required on the record, so an explicit value must be non-blank."""
        if v is None:
            raise ValueError("title cannot be null")
        return validate_non_blank(v, "title")

    @field_validator("is_global")
    @classmethod
    def check_is_global(cls, v: bool | None) -> bool:
        if v is None:
            raise ValueError("is_global cannot be null")
        return v

    @field_validator("labels", mode="before")
    @classmethod
    def normalize_labels(cls, v: list[str] | None) -> list[str] | None:
        """Normalize labels if provided."""
        if v is None:
            return None
        return normalize_label_texts(v)


class BookmarkFilter(BaseModel):
    """
    Predicates for listing bookmarks.

    Deletion view: live rows by default, live and deleted with
    include_deleted, deleted only with only_deleted (which wins when both
    are set).
    """

    profile_id: str | None = None
    space_id: str | None = None
    is_global: bool | None = None
    search: str | None = None
    # AND semantics: a bookmark must carry every listed label
    labels: list[str] | None = None
    collection_id: str | None = None
    include_deleted: bool = False
    only_deleted: bool = False

    @field_validator("labels", mode="before")
    @classmethod
    def normalize_labels(cls, v: list[str] | None) -> list[str] | None:
        """Normalize labels if provided."""
        if v is None:
            return None
        return normalize_label_texts(v)


class BookmarkRecord(BaseModel):
    """A stored bookmark with its labels."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    url: str
    title: str
    description: str | None = None
    favicon: str | None = None
    profile_id: str
    space_id: str
    is_global: bool
    date_added: datetime
    date_modified: datetime | None = None
    deleted_at: datetime | None = None
    visit_count: int
    last_visited: datetime | None = None
    labels: list[LabelRecord] = []


class AILabelInput(BaseModel):
    """A label suggested by the AI collaborator; always stored with source=ai."""

    label: str
    category: LabelCategory | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)

    @field_validator("label")
    @classmethod
    def check_label(cls, v: str) -> str:
        """Strip and validate the label text."""
        return validate_label_text(v)
