"""
Scheduled trash cleanup task.

Permanently deletes bookmarks and collections that have been in the trash for
longer than the configured expiry. Designed to run as a cron job (e.g., daily).

Usage:
    python -m bookmark_engine.tasks.cleanup
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bookmark_engine.core.config import get_settings
from bookmark_engine.engine import BookmarkEngine
from bookmark_engine.models.base import utcnow
from bookmark_engine.models.bookmark import Bookmark
from bookmark_engine.models.collection import Collection
from bookmark_engine.schemas.validators import to_naive_utc
from bookmark_engine.services.bookmark_service import purge_bookmark
from bookmark_engine.services.collection_service import purge_collection

logger = logging.getLogger(__name__)

# Default expiry for soft-deleted items (days in trash before permanent deletion)
SOFT_DELETE_EXPIRY_DAYS = 30


@dataclass
class CleanupStats:
    """Statistics from a cleanup run."""

    soft_deleted_expired: int = 0
    soft_deleted_by_type: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, int]:
        """Convert to simple dict for logging/return."""
        return {"soft_deleted_expired": self.soft_deleted_expired, **self.soft_deleted_by_type}


async def cleanup_soft_deleted_items(
    db: AsyncSession,
    now: datetime | None = None,
    expiry_days: int = SOFT_DELETE_EXPIRY_DAYS,
) -> CleanupStats:
    """
    Permanently delete trashed bookmarks and collections older than expiry_days.

    Labels and collection memberships are removed together with their owners.
    Does not commit; the caller owns the transaction.

    Args:
        db: Database session.
        now: Current time for cutoff calculation. Defaults to the current UTC time.
        expiry_days: Days after soft-delete before permanent deletion.

    Returns:
        CleanupStats with soft_deleted_by_type breakdown.
    """
    now = to_naive_utc(now) if now is not None else utcnow()
    cutoff = now - timedelta(days=expiry_days)
    stats = CleanupStats()

    purgers = [
        (Bookmark, purge_bookmark, "bookmarks"),
        (Collection, purge_collection, "collections"),
    ]
    for model, purge, type_key in purgers:
        result = await db.execute(
            select(model.id).where(
                model.deleted_at.is_not(None),
                model.deleted_at < cutoff,
            ),
        )
        expired_ids = list(result.scalars().all())

        deleted_count = 0
        for entity_id in expired_ids:
            if await purge(db, entity_id):
                deleted_count += 1

        if deleted_count > 0:
            stats.soft_deleted_by_type[type_key] = deleted_count
            stats.soft_deleted_expired += deleted_count
            logger.info(
                "Permanently deleted %d expired %s (soft-deleted > %d days)",
                deleted_count,
                type_key,
                expiry_days,
            )

    return stats


async def run_cleanup(
    engine: BookmarkEngine,
    now: datetime | None = None,
) -> CleanupStats:
    """
    Run the trash cleanup as one unit of work on an open engine.

    Args:
        engine: An open BookmarkEngine.
        now: Current time for cutoff calculation. Defaults to the current UTC time.

    Returns:
        CleanupStats for the run.
    """
    logger.info("Starting cleanup task")
    async with engine.unit_of_work() as db:
        stats = await cleanup_soft_deleted_items(
            db, now=now, expiry_days=engine.settings.trash_expiry_days,
        )
    logger.info("Cleanup complete: %s", stats.to_dict())
    return stats


async def _main() -> CleanupStats:
    async with BookmarkEngine(get_settings()) as engine:
        return await run_cleanup(engine)


def main() -> None:
    """Entry point for running cleanup as a script."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(_main())


if __name__ == "__main__":
    main()
