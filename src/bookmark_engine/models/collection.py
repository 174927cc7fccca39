"""Collection and CollectionItem models for hierarchical bookmark grouping."""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bookmark_engine.models.base import Base, SoftDeleteMixin, UUIDv7Mixin, utcnow


class Collection(Base, UUIDv7Mixin, SoftDeleteMixin):
    """
    Collection model - a named, optionally nested group of bookmarks.

    parent_id is a weak reference to another collection (no FK): the tree
    builder treats a dangling or excluded parent as root.
    """

    __tablename__ = "bookmark_collections"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    profile_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    space_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    parent_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    is_auto: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Opaque predicate for smart collections, stored as JSON text
    rules: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    date_created: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    date_modified: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<Collection(id='{self.id}', name='{self.name}')>"


class CollectionItem(Base):
    """Junction row placing a bookmark at a position inside a collection."""

    __tablename__ = "collection_items"
    __table_args__ = (
        UniqueConstraint("collection_id", "bookmark_id", name="uq_collection_items_pair"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    collection_id: Mapped[str] = mapped_column(
        ForeignKey("bookmark_collections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    bookmark_id: Mapped[str] = mapped_column(
        ForeignKey("bookmarks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Append-only: new items take max(position) + 1; removals leave gaps
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
