"""Async SQLite storage engine for bookmarks, collections, labels and snoozed items."""
from bookmark_engine.engine import BookmarkEngine

__version__ = "0.1.0"

__all__ = ["BookmarkEngine", "__version__"]
