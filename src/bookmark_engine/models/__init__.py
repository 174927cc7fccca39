"""SQLAlchemy models."""
from bookmark_engine.models.base import Base, SoftDeleteMixin, UUIDv7Mixin
from bookmark_engine.models.label import BookmarkLabel, LabelCategory, LabelSource  # Must be before bookmark
from bookmark_engine.models.bookmark import Bookmark
from bookmark_engine.models.collection import Collection, CollectionItem
from bookmark_engine.models.snooze import SnoozedItem, SnoozeItemType, SnoozeType

__all__ = [
    "Base",
    "Bookmark",
    "BookmarkLabel",
    "Collection",
    "CollectionItem",
    "LabelCategory",
    "LabelSource",
    "SnoozeItemType",
    "SnoozeType",
    "SnoozedItem",
    "SoftDeleteMixin",
    "UUIDv7Mixin",
]
