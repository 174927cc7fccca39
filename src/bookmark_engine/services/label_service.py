"""
Service layer for bookmark labels.

Each label source has its own lifecycle:
- user labels are replaced as a set when the user edits them
- ai labels are replaced as a batch whenever the AI collaborator re-analyzes
- add_labels merges labels of any source without touching existing rows

A label text appears at most once per bookmark regardless of source. Every
write path checks the labels already on the bookmark before inserting.
"""
from sqlalchemy import delete, distinct, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bookmark_engine.models.bookmark import Bookmark
from bookmark_engine.models.label import BookmarkLabel, LabelSource
from bookmark_engine.schemas.bookmark import AILabelInput, LabelCount, LabelInput
from bookmark_engine.schemas.validators import normalize_label_texts

__all__ = [
    "add_labels",
    "get_label_counts",
    "normalize_label_texts",
    "replace_user_labels",
    "set_ai_labels",
]


async def _existing_label_texts(
    db: AsyncSession,
    bookmark_id: str,
    exclude_source: LabelSource | None = None,
) -> set[str]:
    """Label texts currently on a bookmark, optionally ignoring one source."""
    stmt = select(BookmarkLabel.label).where(BookmarkLabel.bookmark_id == bookmark_id)
    if exclude_source is not None:
        stmt = stmt.where(BookmarkLabel.source != exclude_source)
    result = await db.execute(stmt)
    return set(result.scalars().all())


async def replace_user_labels(
    db: AsyncSession,
    bookmark_id: str,
    texts: list[str],
) -> int:
    """
    Replace a bookmark's user-sourced labels.

    ai and auto labels are never touched. A text already held by an ai or auto
    label is skipped rather than duplicated.

    Args:
        db: Database session.
        bookmark_id: Bookmark whose labels are replaced.
        texts: New user label texts (normalized here).

    Returns:
        Number of user labels inserted.
    """
    normalized = normalize_label_texts(texts)

    await db.execute(
        delete(BookmarkLabel).where(
            BookmarkLabel.bookmark_id == bookmark_id,
            BookmarkLabel.source == LabelSource.USER,
        ),
    )

    held = await _existing_label_texts(db, bookmark_id)
    new_labels = [
        BookmarkLabel(bookmark_id=bookmark_id, label=text, source=LabelSource.USER)
        for text in normalized
        if text not in held
    ]
    db.add_all(new_labels)
    await db.flush()
    return len(new_labels)


async def add_labels(
    db: AsyncSession,
    bookmark_id: str,
    labels: list[LabelInput],
) -> int:
    """
    Merge labels onto a bookmark without removing any.

    Labels whose text already exists on the bookmark (from any source) are
    skipped, as are repeats within the batch. Calling this twice with the same
    input leaves exactly one row per text.

    Returns:
        Number of labels inserted.
    """
    held = await _existing_label_texts(db, bookmark_id)
    inserted = 0
    for item in labels:
        if item.label in held:
            continue
        held.add(item.label)
        db.add(
            BookmarkLabel(
                bookmark_id=bookmark_id,
                label=item.label,
                source=item.source,
                category=item.category,
                confidence=item.confidence if item.source == LabelSource.AI else None,
            ),
        )
        inserted += 1

    await db.flush()
    return inserted


async def set_ai_labels(
    db: AsyncSession,
    bookmark_id: str,
    labels: list[AILabelInput],
) -> int:
    """
    Replace every ai-sourced label on a bookmark with a new batch.

    Prior ai labels are deleted first so re-analysis supersedes earlier
    output. Texts already held by user or auto labels are skipped.

    Returns:
        Number of ai labels inserted.
    """
    await db.execute(
        delete(BookmarkLabel).where(
            BookmarkLabel.bookmark_id == bookmark_id,
            BookmarkLabel.source == LabelSource.AI,
        ),
    )

    held = await _existing_label_texts(db, bookmark_id, exclude_source=LabelSource.AI)
    inserted = 0
    for item in labels:
        if item.label in held:
            continue
        held.add(item.label)
        db.add(
            BookmarkLabel(
                bookmark_id=bookmark_id,
                label=item.label,
                source=LabelSource.AI,
                category=item.category,
                confidence=item.confidence,
            ),
        )
        inserted += 1

    await db.flush()
    return inserted


async def get_label_counts(
    db: AsyncSession,
    profile_id: str | None = None,
) -> list[LabelCount]:
    """
    Get every label text with the number of live bookmarks carrying it.

    Args:
        db: Database session.
        profile_id: If given, count bookmarks of this profile plus global bookmarks.

    Returns:
        List of LabelCount sorted by count desc, then label asc.
    """
    count = func.count(distinct(BookmarkLabel.bookmark_id)).label("count")
    stmt = (
        select(BookmarkLabel.label, count)
        .join(Bookmark, BookmarkLabel.bookmark_id == Bookmark.id)
        .where(Bookmark.deleted_at.is_(None))
        .group_by(BookmarkLabel.label)
        .order_by(count.desc(), BookmarkLabel.label.asc())
    )
    if profile_id is not None:
        stmt = stmt.where(or_(Bookmark.profile_id == profile_id, Bookmark.is_global.is_(True)))

    result = await db.execute(stmt)
    return [LabelCount(label=row.label, count=row.count) for row in result]
