"""
Service layer for snoozed items.

This is storage only. The loop that sweeps due snoozes, notifies the user and
restores the item lives with the host application; it uses get_due_snoozes,
mark_snooze_notified and delete_snooze.
"""
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bookmark_engine.models.base import utcnow
from bookmark_engine.models.snooze import SnoozedItem, SnoozeItemType
from bookmark_engine.schemas.snooze import SnoozeCreate, SnoozeUpdate
from bookmark_engine.schemas.validators import to_naive_utc


async def create_snooze(db: AsyncSession, data: SnoozeCreate) -> SnoozedItem:
    """Record a snooze; it starts un-notified."""
    snooze = SnoozedItem(
        item_type=data.item_type,
        item_id=data.item_id,
        profile_id=data.profile_id,
        space_id=data.space_id,
        snooze_until=data.snooze_until,
        snooze_type=data.snooze_type,
        snooze_label=data.snooze_label,
        original_data=data.original_data,
        snoozed_at=utcnow(),
        snoozed_from_space_id=data.snoozed_from_space_id,
        notification_sent=False,
    )
    db.add(snooze)
    await db.flush()
    await db.refresh(snooze)
    return snooze


async def get_snooze(db: AsyncSession, snooze_id: str) -> SnoozedItem | None:
    """Get a snooze by ID."""
    return await db.get(SnoozedItem, snooze_id)


async def get_snooze_for_item(
    db: AsyncSession,
    item_type: SnoozeItemType,
    item_id: str,
) -> SnoozedItem | None:
    """Get the most recent snooze for a bookmark or tab."""
    result = await db.execute(
        select(SnoozedItem)
        .where(SnoozedItem.item_type == item_type, SnoozedItem.item_id == item_id)
        .order_by(SnoozedItem.snoozed_at.desc(), SnoozedItem.id.desc())
        .limit(1),
    )
    return result.scalar_one_or_none()


async def get_snoozes(
    db: AsyncSession,
    profile_id: str | None = None,
    space_id: str | None = None,
) -> list[SnoozedItem]:
    """List snoozes, soonest wake time first."""
    query = select(SnoozedItem).order_by(SnoozedItem.snooze_until.asc(), SnoozedItem.id.asc())
    if profile_id is not None:
        query = query.where(SnoozedItem.profile_id == profile_id)
    if space_id is not None:
        query = query.where(SnoozedItem.space_id == space_id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_due_snoozes(
    db: AsyncSession,
    now: datetime | None = None,
) -> list[SnoozedItem]:
    """
    Get snoozes whose wake time has passed and that have not been notified.

    Args:
        db: Database session.
        now: Reference time. Defaults to the current UTC time.

    Returns:
        Due snoozes, soonest wake time first.
    """
    cutoff = to_naive_utc(now) if now is not None else utcnow()
    result = await db.execute(
        select(SnoozedItem)
        .where(
            SnoozedItem.snooze_until <= cutoff,
            SnoozedItem.notification_sent.is_(False),
        )
        .order_by(SnoozedItem.snooze_until.asc(), SnoozedItem.id.asc()),
    )
    return list(result.scalars().all())


async def mark_snooze_notified(
    db: AsyncSession,
    snooze_id: str,
    now: datetime | None = None,
) -> bool:
    """
    Record that the wake-up notification was delivered.

    Returns:
        True if the snooze exists.
    """
    notified_at = to_naive_utc(now) if now is not None else utcnow()
    result = await db.execute(
        update(SnoozedItem)
        .where(SnoozedItem.id == snooze_id)
        .values(notification_sent=True, wake_up_notified_at=notified_at),
    )
    return result.rowcount > 0


async def update_snooze(
    db: AsyncSession,
    snooze_id: str,
    data: SnoozeUpdate,
) -> SnoozedItem | None:
    """
    Reschedule a snooze.

    Moving snooze_until re-arms the notification so the new wake time fires.

    Returns:
        The updated snooze, or None if it does not exist.
    """
    snooze = await db.get(SnoozedItem, snooze_id)
    if snooze is None:
        return None

    update_data = data.model_dump(exclude_unset=True)
    new_until = update_data.pop("snooze_until", None)
    if new_until is not None and new_until != snooze.snooze_until:
        snooze.snooze_until = new_until
        snooze.notification_sent = False
        snooze.wake_up_notified_at = None
    if update_data.get("snooze_type") is not None:
        snooze.snooze_type = update_data["snooze_type"]
    if "snooze_label" in update_data:
        snooze.snooze_label = update_data["snooze_label"]

    await db.flush()
    await db.refresh(snooze)
    return snooze


async def delete_snooze(db: AsyncSession, snooze_id: str) -> bool:
    """
    Delete a snooze, typically once its item has been restored.

    Returns:
        True if the snooze existed.
    """
    result = await db.execute(delete(SnoozedItem).where(SnoozedItem.id == snooze_id))
    return result.rowcount > 0
