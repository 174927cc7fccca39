"""Bookmark model for storing per-profile, per-space bookmarks."""
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookmark_engine.models.base import Base, SoftDeleteMixin, UUIDv7Mixin, utcnow
from bookmark_engine.models.label import BookmarkLabel


class Bookmark(Base, UUIDv7Mixin, SoftDeleteMixin):
    """Bookmark model - stores URLs with metadata, visit tracking and labels."""

    __tablename__ = "bookmarks"
    __table_args__ = (
        # Dedup lookups during import hit (url, profile_id, space_id)
        Index("ix_bookmarks_url_profile_space", "url", "profile_id", "space_id"),
    )

    url: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    favicon: Mapped[str | None] = mapped_column(Text, nullable=True)
    profile_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    space_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    # Global bookmarks are visible in every space of the profile
    is_global: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    date_added: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, index=True,
    )
    date_modified: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Usage tracking (only ever moves forward)
    visit_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_visited: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    labels: Mapped[list[BookmarkLabel]] = relationship(
        back_populates="bookmark",
        cascade="all, delete-orphan",
        order_by=BookmarkLabel.id,
    )

    def __repr__(self) -> str:
        return f"<Bookmark(id='{self.id}', url='{self.url}')>"
