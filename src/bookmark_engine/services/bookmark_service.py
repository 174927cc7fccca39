"""Service layer for bookmark CRUD operations."""
from sqlalchemy import Select, delete, exists, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bookmark_engine.models.base import utcnow
from bookmark_engine.models.bookmark import Bookmark
from bookmark_engine.models.collection import CollectionItem
from bookmark_engine.models.label import BookmarkLabel, LabelSource
from bookmark_engine.schemas.bookmark import BookmarkCreate, BookmarkFilter, BookmarkUpdate
from bookmark_engine.services import label_service
from bookmark_engine.services.utils import LIKE_ESCAPE, escape_ilike

# Scalar fields a partial update may touch
UPDATABLE_FIELDS = ("title", "description", "favicon", "is_global")


async def _load_bookmark(db: AsyncSession, bookmark_id: str) -> Bookmark | None:
    """
    Fetch a bookmark with its labels, overwriting any stale state in the session.

    Label writes go through Core statements, so a bookmark already in the
    identity map may carry an outdated labels collection.
    """
    result = await db.execute(
        select(Bookmark)
        .options(selectinload(Bookmark.labels))
        .where(Bookmark.id == bookmark_id)
        .execution_options(populate_existing=True),
    )
    return result.scalar_one_or_none()


async def create_bookmark(db: AsyncSession, data: BookmarkCreate) -> Bookmark:
    """
    Create a new bookmark with optional seeded user labels.

    No uniqueness is enforced; callers check bookmark_exists first when they
    need deduplication.

    Args:
        db: Database session.
        data: Bookmark creation data.

    Returns:
        The created Bookmark with labels loaded.
    """
    bookmark = Bookmark(
        url=data.url,
        title=data.title,
        description=data.description,
        favicon=data.favicon,
        profile_id=data.profile_id,
        space_id=data.space_id,
        is_global=data.is_global,
        date_added=utcnow(),
        visit_count=0,
    )
    db.add(bookmark)
    await db.flush()

    if data.labels:
        db.add_all(
            BookmarkLabel(bookmark_id=bookmark.id, label=text, source=LabelSource.USER)
            for text in data.labels
        )
        await db.flush()

    return await _load_bookmark(db, bookmark.id)


async def get_bookmark(db: AsyncSession, bookmark_id: str) -> Bookmark | None:
    """
    Get a bookmark by ID with its labels.

    Soft-deleted bookmarks are returned as well; check deleted_at to tell
    them apart.
    """
    return await _load_bookmark(db, bookmark_id)


async def update_bookmark(
    db: AsyncSession,
    bookmark_id: str,
    data: BookmarkUpdate,
) -> Bookmark | None:
    """
    Apply a partial update to a bookmark.

    Only fields explicitly set on `data` are written; date_modified is always
    stamped. Label channels run in order: `labels` replaces the user labels,
    then `add_labels` merges on top.

    Args:
        db: Database session.
        bookmark_id: ID of the bookmark to update.
        data: Partial update.

    Returns:
        The updated Bookmark, or None if it does not exist.
    """
    bookmark = await _load_bookmark(db, bookmark_id)
    if bookmark is None:
        return None

    update_data = data.model_dump(exclude_unset=True)
    for field in UPDATABLE_FIELDS:
        if field in update_data:
            setattr(bookmark, field, update_data[field])
    bookmark.date_modified = utcnow()
    await db.flush()

    if data.labels is not None:
        await label_service.replace_user_labels(db, bookmark_id, data.labels)
    if data.add_labels:
        await label_service.add_labels(db, bookmark_id, data.add_labels)

    return await _load_bookmark(db, bookmark_id)


async def delete_bookmark(db: AsyncSession, bookmark_id: str) -> bool:
    """
    Soft delete a live bookmark.

    Returns:
        True if a live bookmark was moved to the trash, False otherwise.
    """
    now = utcnow()
    result = await db.execute(
        update(Bookmark)
        .where(Bookmark.id == bookmark_id, Bookmark.deleted_at.is_(None))
        .values(deleted_at=now, date_modified=now),
    )
    return result.rowcount > 0


async def restore_bookmark(db: AsyncSession, bookmark_id: str) -> bool:
    """
    Restore a soft-deleted bookmark.

    Returns:
        True if a deleted bookmark was restored, False otherwise.
    """
    result = await db.execute(
        update(Bookmark)
        .where(Bookmark.id == bookmark_id, Bookmark.deleted_at.is_not(None))
        .values(deleted_at=None, date_modified=utcnow()),
    )
    return result.rowcount > 0


async def purge_bookmark(db: AsyncSession, bookmark_id: str) -> bool:
    """
    Permanently delete a bookmark with its labels and collection memberships.

    Dependent rows are removed explicitly before the bookmark so nothing is
    left behind even if foreign key enforcement is off. All three deletes run
    in the caller's transaction.

    Returns:
        True if the bookmark existed.
    """
    await db.execute(delete(BookmarkLabel).where(BookmarkLabel.bookmark_id == bookmark_id))
    await db.execute(delete(CollectionItem).where(CollectionItem.bookmark_id == bookmark_id))
    result = await db.execute(delete(Bookmark).where(Bookmark.id == bookmark_id))
    return result.rowcount > 0


async def delete_bookmarks(db: AsyncSession, bookmark_ids: list[str]) -> int:
    """
    Soft delete several live bookmarks at once.

    Returns:
        Number of bookmarks moved to the trash.
    """
    if not bookmark_ids:
        return 0
    now = utcnow()
    result = await db.execute(
        update(Bookmark)
        .where(Bookmark.id.in_(bookmark_ids), Bookmark.deleted_at.is_(None))
        .values(deleted_at=now, date_modified=now),
    )
    return result.rowcount


def _apply_deletion_view(query: Select, filters: BookmarkFilter) -> Select:
    """Apply the live / include_deleted / only_deleted view."""
    if filters.only_deleted:
        return query.where(Bookmark.deleted_at.is_not(None))
    if filters.include_deleted:
        return query
    return query.where(Bookmark.deleted_at.is_(None))


def _apply_label_filter(query: Select, labels: list[str]) -> Select:
    """Require every listed label (one EXISTS per label)."""
    for text in labels:
        subq = select(BookmarkLabel.id).where(
            BookmarkLabel.bookmark_id == Bookmark.id,
            BookmarkLabel.label == text,
        )
        query = query.where(exists(subq))
    return query


async def search_bookmarks(
    db: AsyncSession,
    filters: BookmarkFilter | None = None,
) -> list[Bookmark]:
    """
    List bookmarks matching a filter.

    Results are ordered by date_added desc (id desc as tiebreaker). When
    filtering by collection, the collection's item order wins: position asc,
    then date_added desc.

    Args:
        db: Database session.
        filters: Predicates to apply. None lists every live bookmark.

    Returns:
        Matching bookmarks with labels loaded.
    """
    if filters is None:
        filters = BookmarkFilter()

    query = select(Bookmark).options(selectinload(Bookmark.labels))
    query = _apply_deletion_view(query, filters)

    if filters.profile_id is not None:
        # Global bookmarks are visible in every profile
        query = query.where(
            or_(Bookmark.profile_id == filters.profile_id, Bookmark.is_global.is_(True)),
        )
    if filters.space_id is not None:
        query = query.where(Bookmark.space_id == filters.space_id)
    if filters.is_global is not None:
        query = query.where(Bookmark.is_global.is_(filters.is_global))

    if filters.search:
        pattern = f"%{escape_ilike(filters.search)}%"
        query = query.where(
            or_(
                Bookmark.title.ilike(pattern, escape=LIKE_ESCAPE),
                Bookmark.url.ilike(pattern, escape=LIKE_ESCAPE),
                Bookmark.description.ilike(pattern, escape=LIKE_ESCAPE),
            ),
        )

    if filters.labels:
        query = _apply_label_filter(query, filters.labels)

    if filters.collection_id is not None:
        query = (
            query.join(CollectionItem, CollectionItem.bookmark_id == Bookmark.id)
            .where(CollectionItem.collection_id == filters.collection_id)
            .order_by(
                CollectionItem.position.asc(),
                Bookmark.date_added.desc(),
                Bookmark.id.desc(),
            )
        )
    else:
        query = query.order_by(Bookmark.date_added.desc(), Bookmark.id.desc())

    result = await db.execute(query)
    return list(result.scalars().all())


async def bookmark_exists(
    db: AsyncSession,
    url: str,
    profile_id: str,
    space_id: str,
) -> bool:
    """
    Check whether a bookmark with this url exists in a profile/space.

    Trashed bookmarks count as existing so that deduplication does not
    recreate something the user deleted.
    """
    result = await db.execute(
        select(
            exists().where(
                Bookmark.url == url,
                Bookmark.profile_id == profile_id,
                Bookmark.space_id == space_id,
            ),
        ),
    )
    return bool(result.scalar())


async def increment_visit_count(db: AsyncSession, bookmark_id: str) -> bool:
    """
    Record a visit.

    The increment happens in a single UPDATE so concurrent visits are never
    lost.

    Returns:
        True if the bookmark exists.
    """
    result = await db.execute(
        update(Bookmark)
        .where(Bookmark.id == bookmark_id)
        .values(visit_count=Bookmark.visit_count + 1, last_visited=utcnow()),
    )
    return result.rowcount > 0


async def get_bookmarks_by_url(
    db: AsyncSession,
    url: str,
    include_deleted: bool = False,
) -> list[Bookmark]:
    """
    Get every bookmark with exactly this url, across all profiles and spaces.

    Args:
        db: Database session.
        url: The url to match exactly.
        include_deleted: If True, include trashed bookmarks.

    Returns:
        Bookmarks with labels loaded, newest first.
    """
    query = (
        select(Bookmark)
        .options(selectinload(Bookmark.labels))
        .where(Bookmark.url == url)
        .order_by(Bookmark.date_added.desc(), Bookmark.id.desc())
    )
    if not include_deleted:
        query = query.where(Bookmark.deleted_at.is_(None))
    result = await db.execute(query)
    return list(result.scalars().all())
