"""Service layer for collections and collection membership."""
import logging

from sqlalchemy import delete, exists, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from bookmark_engine.models.base import utcnow
from bookmark_engine.models.bookmark import Bookmark
from bookmark_engine.models.collection import Collection, CollectionItem
from bookmark_engine.schemas.collection import CollectionCreate, CollectionRecord, CollectionUpdate
from bookmark_engine.services.collection_tree import flatten_collection_tree
from bookmark_engine.services.exceptions import InvalidCollectionParentError

logger = logging.getLogger(__name__)


async def _get_live_collection(db: AsyncSession, collection_id: str) -> Collection | None:
    result = await db.execute(
        select(Collection).where(
            Collection.id == collection_id,
            Collection.deleted_at.is_(None),
        ),
    )
    return result.scalar_one_or_none()


async def create_collection(db: AsyncSession, data: CollectionCreate) -> Collection:
    """
    Create a collection.

    Args:
        db: Database session.
        data: Collection creation data.

    Returns:
        The created Collection.

    Raises:
        InvalidCollectionParentError: If parent_id does not name a live
            collection in the same profile.
    """
    if data.parent_id is not None:
        parent = await _get_live_collection(db, data.parent_id)
        if parent is None or parent.profile_id != data.profile_id:
            raise InvalidCollectionParentError(data.parent_id, data.profile_id)

    collection = Collection(
        name=data.name,
        description=data.description,
        profile_id=data.profile_id,
        space_id=data.space_id,
        parent_id=data.parent_id,
        is_auto=data.is_auto,
        rules=data.rules,
        date_created=utcnow(),
    )
    db.add(collection)
    await db.flush()
    await db.refresh(collection)
    return collection


async def get_collection(db: AsyncSession, collection_id: str) -> Collection | None:
    """Get a collection by ID, including soft-deleted ones."""
    return await db.get(Collection, collection_id)


async def update_collection(
    db: AsyncSession,
    collection_id: str,
    data: CollectionUpdate,
) -> Collection | None:
    """
    Apply a partial update (name, description) to a collection.

    Returns:
        The updated Collection, or None if it does not exist.
    """
    collection = await db.get(Collection, collection_id)
    if collection is None:
        return None

    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        # name is required on the row; an explicit None leaves it unchanged
        if field == "name" and value is None:
            continue
        setattr(collection, field, value)
    collection.date_modified = utcnow()
    await db.flush()
    await db.refresh(collection)
    return collection


async def delete_collection(db: AsyncSession, collection_id: str) -> bool:
    """
    Soft delete a collection after reparenting its live children.

    Every live child is moved to the deleted collection's own parent (or to
    root when it had none), so deleting a middle node never disconnects its
    subtree. Both writes happen in the caller's transaction.

    Returns:
        True if a live collection was deleted.
    """
    collection = await _get_live_collection(db, collection_id)
    if collection is None:
        return False

    new_parent_id = collection.parent_id
    if new_parent_id == collection_id:
        new_parent_id = None

    now = utcnow()
    reparented = await db.execute(
        update(Collection)
        .where(
            Collection.parent_id == collection_id,
            Collection.id != collection_id,
            Collection.deleted_at.is_(None),
        )
        .values(parent_id=new_parent_id, date_modified=now),
    )
    if reparented.rowcount:
        logger.info(
            "Reparented %d child collection(s) of %s to %s",
            reparented.rowcount,
            collection_id,
            new_parent_id or "root",
        )

    collection.deleted_at = now
    collection.date_modified = now
    await db.flush()
    return True


async def restore_collection(db: AsyncSession, collection_id: str) -> bool:
    """
    Restore a soft-deleted collection.

    Children reparented by the delete stay where they are.

    Returns:
        True if a deleted collection was restored.
    """
    result = await db.execute(
        update(Collection)
        .where(Collection.id == collection_id, Collection.deleted_at.is_not(None))
        .values(deleted_at=None, date_modified=utcnow()),
    )
    return result.rowcount > 0


async def purge_collection(db: AsyncSession, collection_id: str) -> bool:
    """
    Permanently delete a collection and its membership rows.

    Bookmarks in the collection are not touched.

    Returns:
        True if the collection existed.
    """
    await db.execute(delete(CollectionItem).where(CollectionItem.collection_id == collection_id))
    result = await db.execute(delete(Collection).where(Collection.id == collection_id))
    return result.rowcount > 0


async def get_collections(
    db: AsyncSession,
    profile_id: str | None = None,
) -> list[CollectionRecord]:
    """
    List live collections as a flattened tree.

    Args:
        db: Database session.
        profile_id: If given, only collections of this profile.

    Returns:
        Records in depth-first order with bookmark_count and depth set.
    """
    item_counts = (
        select(
            CollectionItem.collection_id,
            func.count(CollectionItem.id).label("bookmark_count"),
        )
        .group_by(CollectionItem.collection_id)
        .subquery()
    )
    query = (
        select(Collection, func.coalesce(item_counts.c.bookmark_count, 0))
        .outerjoin(item_counts, item_counts.c.collection_id == Collection.id)
        .where(Collection.deleted_at.is_(None))
    )
    if profile_id is not None:
        query = query.where(Collection.profile_id == profile_id)

    result = await db.execute(query)
    records = [
        CollectionRecord.model_validate(collection).model_copy(
            update={"bookmark_count": count},
        )
        for collection, count in result.all()
    ]
    return flatten_collection_tree(records)


async def get_deleted_collections(
    db: AsyncSession,
    profile_id: str | None = None,
) -> list[CollectionRecord]:
    """
    List soft-deleted collections, most recently deleted first.

    Counts are not meaningful once a collection is detached from the live
    tree, so bookmark_count and depth are always 0.
    """
    query = (
        select(Collection)
        .where(Collection.deleted_at.is_not(None))
        .order_by(Collection.deleted_at.desc(), Collection.id.desc())
    )
    if profile_id is not None:
        query = query.where(Collection.profile_id == profile_id)

    result = await db.execute(query)
    return [CollectionRecord.model_validate(c) for c in result.scalars().all()]


async def _membership_targets_exist(
    db: AsyncSession,
    bookmark_id: str,
    collection_id: str,
) -> bool:
    result = await db.execute(
        select(
            exists().where(Bookmark.id == bookmark_id),
            exists().where(Collection.id == collection_id),
        ),
    )
    bookmark_found, collection_found = result.one()
    return bool(bookmark_found and collection_found)


async def add_bookmark_to_collection(
    db: AsyncSession,
    bookmark_id: str,
    collection_id: str,
) -> bool:
    """
    Append a bookmark to a collection.

    The new item takes position max + 1 (1 for an empty collection). Adding a
    pair that already exists is a no-op.

    Returns:
        True if a membership row was inserted; False if the pair already
        existed or either side does not exist.
    """
    if not await _membership_targets_exist(db, bookmark_id, collection_id):
        return False

    already_member = await db.execute(
        select(
            exists().where(
                CollectionItem.collection_id == collection_id,
                CollectionItem.bookmark_id == bookmark_id,
            ),
        ),
    )
    if already_member.scalar():
        return False

    max_position = await db.execute(
        select(func.coalesce(func.max(CollectionItem.position), 0)).where(
            CollectionItem.collection_id == collection_id,
        ),
    )
    position = max_position.scalar_one() + 1

    # The unique pair constraint absorbs a concurrent add of the same pair
    result = await db.execute(
        sqlite_insert(CollectionItem)
        .values(collection_id=collection_id, bookmark_id=bookmark_id, position=position)
        .on_conflict_do_nothing(index_elements=["collection_id", "bookmark_id"]),
    )
    return result.rowcount > 0


async def remove_bookmark_from_collection(
    db: AsyncSession,
    bookmark_id: str,
    collection_id: str,
) -> bool:
    """
    Remove a bookmark from a collection. Remaining positions are not renumbered.

    Returns:
        True if the bookmark was a member.
    """
    result = await db.execute(
        delete(CollectionItem).where(
            CollectionItem.collection_id == collection_id,
            CollectionItem.bookmark_id == bookmark_id,
        ),
    )
    return result.rowcount > 0


async def move_bookmark_to_collection(
    db: AsyncSession,
    bookmark_id: str,
    to_collection_id: str,
    from_collection_id: str | None = None,
) -> bool:
    """
    Move a bookmark between collections.

    Removes it from the source (if given) and appends it to the target, both
    in the caller's transaction. Without a source this is a plain add.

    Returns:
        True if the bookmark is in the target collection afterwards, including
        when it was already a member (its position is kept). False, with
        nothing removed, when the bookmark or target collection does not exist.
    """
    if not await _membership_targets_exist(db, bookmark_id, to_collection_id):
        return False
    if from_collection_id is not None:
        await remove_bookmark_from_collection(db, bookmark_id, from_collection_id)
    await add_bookmark_to_collection(db, bookmark_id, to_collection_id)
    return True
