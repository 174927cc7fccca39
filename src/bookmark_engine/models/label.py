"""BookmarkLabel model for the multi-source label taxonomy."""
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import Float, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookmark_engine.models.base import Base

if TYPE_CHECKING:
    from bookmark_engine.models.bookmark import Bookmark


class LabelSource(StrEnum):
    """Provenance of a label; governs its merge/replace semantics."""

    USER = "user"
    AI = "ai"
    AUTO = "auto"


class LabelCategory(StrEnum):
    """Optional grouping for a label."""

    TOPIC = "topic"
    TYPE = "type"
    PROJECT = "project"
    PRIORITY = "priority"


class BookmarkLabel(Base):
    """
    A label attached to one bookmark.

    At most one row per (bookmark_id, label) is allowed. The index below is
    deliberately not unique: uniqueness is enforced by the label service so
    that each source can be replaced independently.
    """

    __tablename__ = "bookmark_labels"
    __table_args__ = (
        Index("ix_bookmark_labels_bookmark_id_label", "bookmark_id", "label"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    bookmark_id: Mapped[str] = mapped_column(
        ForeignKey("bookmarks.id", ondelete="CASCADE"),
        nullable=False,
    )
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    source: Mapped[str] = mapped_column(String(10), nullable=False, default=LabelSource.USER)
    # Only meaningful for ai-sourced labels
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    category: Mapped[str | None] = mapped_column(String(20), nullable=True)

    bookmark: Mapped["Bookmark"] = relationship(back_populates="labels")

    def __repr__(self) -> str:
        return f"<BookmarkLabel(bookmark_id='{self.bookmark_id}', label='{self.label}', source='{self.source}')>"
