"""
BookmarkEngine: the public entry point of the storage engine.

One instance owns one async engine, its connection pool and the readiness
gate. Every public operation is one unit of work: it waits for the schema,
opens a session, runs the service calls, maps rows to records while the
session is still open, and commits. Any exception rolls the whole operation
back and propagates.
"""
import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from types import TracebackType

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from bookmark_engine.core.config import Settings, get_settings
from bookmark_engine.db.readiness import ReadinessGate
from bookmark_engine.db.schema import SchemaManager
from bookmark_engine.db.session import create_session_factory, create_storage_engine
from bookmark_engine.models.snooze import SnoozeItemType
from bookmark_engine.schemas.bookmark import (
    AILabelInput,
    BookmarkCreate,
    BookmarkFilter,
    BookmarkRecord,
    BookmarkUpdate,
    LabelCount,
)
from bookmark_engine.schemas.collection import CollectionCreate, CollectionRecord, CollectionUpdate
from bookmark_engine.schemas.import_stats import ImportStats
from bookmark_engine.schemas.snooze import SnoozeCreate, SnoozedItemRecord, SnoozeUpdate
from bookmark_engine.services import (
    bookmark_service,
    collection_service,
    import_service,
    label_service,
    snooze_service,
)
from bookmark_engine.services.exceptions import EngineClosedError, StorageUnavailableError

logger = logging.getLogger(__name__)


class BookmarkEngine:
    """
    Storage engine for bookmarks, collections, labels and snoozed items.

    Usage:
        async with BookmarkEngine(settings) as engine:
            bookmark = await engine.create_bookmark(BookmarkCreate(...))

    Schema initialization starts in the background on open(); operations
    issued before it finishes wait for it.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings if settings is not None else get_settings()
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._gate: ReadinessGate | None = None
        self._init_task: asyncio.Task[bool] | None = None

    # --- Lifecycle ---

    @property
    def is_open(self) -> bool:
        return self._session_factory is not None

    async def open(self) -> "BookmarkEngine":
        """Create the connection pool and start schema initialization. Idempotent."""
        if self.is_open:
            return self
        self._engine = create_storage_engine(self.settings)
        self._session_factory = create_session_factory(self._engine)
        self._gate = ReadinessGate()
        manager = SchemaManager(self._engine, self._gate, self.settings)
        self._init_task = asyncio.create_task(manager.initialize())
        logger.info("Opened bookmark storage at %s", self.settings.database_path)
        return self

    async def wait_ready(self) -> bool:
        """
        Wait for schema initialization to finish.

        Returns:
            True if the schema is known-good, False if storage is degraded.
        """
        gate = self._require_gate()
        await gate.wait()
        return gate.schema_ready

    async def close(self) -> None:
        """Wait for schema initialization, then dispose of the connection pool."""
        if not self.is_open:
            return
        if self._init_task is not None:
            await self._init_task
        self._session_factory = None
        engine, self._engine = self._engine, None
        self._gate = None
        self._init_task = None
        if engine is not None:
            await engine.dispose()
        logger.info("Closed bookmark storage at %s", self.settings.database_path)

    async def __aenter__(self) -> "BookmarkEngine":
        return await self.open()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def _require_gate(self) -> ReadinessGate:
        if self._gate is None:
            raise EngineClosedError()
        return self._gate

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[AsyncSession]:
        """
        Yield a session whose work is committed on success, rolled back on error.

        Raises:
            EngineClosedError: If the engine is not open.
            StorageUnavailableError: If a database error occurs after schema
                initialization gave up.
        """
        gate = self._require_gate()
        await gate.wait()
        session_factory = self._session_factory
        if session_factory is None:
            raise EngineClosedError()

        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except DBAPIError as e:
                await session.rollback()
                if not gate.schema_ready:
                    raise StorageUnavailableError(
                        f"Storage unavailable (schema initialization failed): {e}",
                    ) from e
                raise
            except Exception:
                await session.rollback()
                raise

    # --- Bookmarks ---

    async def create_bookmark(self, data: BookmarkCreate) -> BookmarkRecord:
        async with self.unit_of_work() as db:
            bookmark = await bookmark_service.create_bookmark(db, data)
            return BookmarkRecord.model_validate(bookmark)

    async def get_bookmark(self, bookmark_id: str) -> BookmarkRecord | None:
        async with self.unit_of_work() as db:
            bookmark = await bookmark_service.get_bookmark(db, bookmark_id)
            return BookmarkRecord.model_validate(bookmark) if bookmark else None

    async def update_bookmark(
        self,
        bookmark_id: str,
        data: BookmarkUpdate,
    ) -> BookmarkRecord | None:
        async with self.unit_of_work() as db:
            bookmark = await bookmark_service.update_bookmark(db, bookmark_id, data)
            return BookmarkRecord.model_validate(bookmark) if bookmark else None

    async def delete_bookmark(self, bookmark_id: str) -> bool:
        async with self.unit_of_work() as db:
            return await bookmark_service.delete_bookmark(db, bookmark_id)

    async def restore_bookmark(self, bookmark_id: str) -> bool:
        async with self.unit_of_work() as db:
            return await bookmark_service.restore_bookmark(db, bookmark_id)

    async def permanently_delete_bookmark(self, bookmark_id: str) -> bool:
        async with self.unit_of_work() as db:
            return await bookmark_service.purge_bookmark(db, bookmark_id)

    async def delete_bookmarks(self, bookmark_ids: list[str]) -> int:
        async with self.unit_of_work() as db:
            return await bookmark_service.delete_bookmarks(db, bookmark_ids)

    async def get_bookmarks(self, filters: BookmarkFilter | None = None) -> list[BookmarkRecord]:
        async with self.unit_of_work() as db:
            bookmarks = await bookmark_service.search_bookmarks(db, filters)
            return [BookmarkRecord.model_validate(b) for b in bookmarks]

    async def bookmark_exists(self, url: str, profile_id: str, space_id: str) -> bool:
        async with self.unit_of_work() as db:
            return await bookmark_service.bookmark_exists(db, url, profile_id, space_id)

    async def increment_visit_count(self, bookmark_id: str) -> bool:
        async with self.unit_of_work() as db:
            return await bookmark_service.increment_visit_count(db, bookmark_id)

    async def get_bookmarks_by_url(
        self,
        url: str,
        include_deleted: bool = False,
    ) -> list[BookmarkRecord]:
        async with self.unit_of_work() as db:
            bookmarks = await bookmark_service.get_bookmarks_by_url(db, url, include_deleted)
            return [BookmarkRecord.model_validate(b) for b in bookmarks]

    # --- Labels ---

    async def add_ai_labels(
        self,
        bookmark_id: str,
        labels: list[AILabelInput],
    ) -> BookmarkRecord | None:
        """Replace the bookmark's ai labels with a new batch. None if the bookmark is absent."""
        async with self.unit_of_work() as db:
            if await bookmark_service.get_bookmark(db, bookmark_id) is None:
                return None
            await label_service.set_ai_labels(db, bookmark_id, labels)
            bookmark = await bookmark_service.get_bookmark(db, bookmark_id)
            return BookmarkRecord.model_validate(bookmark)

    async def get_label_counts(self, profile_id: str | None = None) -> list[LabelCount]:
        async with self.unit_of_work() as db:
            return await label_service.get_label_counts(db, profile_id)

    # --- Collections ---

    async def create_collection(self, data: CollectionCreate) -> CollectionRecord:
        async with self.unit_of_work() as db:
            collection = await collection_service.create_collection(db, data)
            return CollectionRecord.model_validate(collection)

    async def get_collection(self, collection_id: str) -> CollectionRecord | None:
        async with self.unit_of_work() as db:
            collection = await collection_service.get_collection(db, collection_id)
            return CollectionRecord.model_validate(collection) if collection else None

    async def update_collection(
        self,
        collection_id: str,
        data: CollectionUpdate,
    ) -> CollectionRecord | None:
        async with self.unit_of_work() as db:
            collection = await collection_service.update_collection(db, collection_id, data)
            return CollectionRecord.model_validate(collection) if collection else None

    async def delete_collection(self, collection_id: str) -> bool:
        async with self.unit_of_work() as db:
            return await collection_service.delete_collection(db, collection_id)

    async def restore_collection(self, collection_id: str) -> bool:
        async with self.unit_of_work() as db:
            return await collection_service.restore_collection(db, collection_id)

    async def permanently_delete_collection(self, collection_id: str) -> bool:
        async with self.unit_of_work() as db:
            return await collection_service.purge_collection(db, collection_id)

    async def get_collections(self, profile_id: str | None = None) -> list[CollectionRecord]:
        async with self.unit_of_work() as db:
            return await collection_service.get_collections(db, profile_id)

    async def get_deleted_collections(
        self,
        profile_id: str | None = None,
    ) -> list[CollectionRecord]:
        async with self.unit_of_work() as db:
            return await collection_service.get_deleted_collections(db, profile_id)

    async def add_bookmark_to_collection(self, bookmark_id: str, collection_id: str) -> bool:
        async with self.unit_of_work() as db:
            return await collection_service.add_bookmark_to_collection(
                db, bookmark_id, collection_id,
            )

    async def remove_bookmark_from_collection(
        self,
        bookmark_id: str,
        collection_id: str,
    ) -> bool:
        async with self.unit_of_work() as db:
            return await collection_service.remove_bookmark_from_collection(
                db, bookmark_id, collection_id,
            )

    async def move_bookmark_to_collection(
        self,
        bookmark_id: str,
        to_collection_id: str,
        from_collection_id: str | None = None,
    ) -> bool:
        async with self.unit_of_work() as db:
            return await collection_service.move_bookmark_to_collection(
                db, bookmark_id, to_collection_id, from_collection_id,
            )

    # --- Snoozes ---

    async def snooze_item(self, data: SnoozeCreate) -> SnoozedItemRecord:
        async with self.unit_of_work() as db:
            snooze = await snooze_service.create_snooze(db, data)
            return SnoozedItemRecord.model_validate(snooze)

    async def get_snooze(self, snooze_id: str) -> SnoozedItemRecord | None:
        async with self.unit_of_work() as db:
            snooze = await snooze_service.get_snooze(db, snooze_id)
            return SnoozedItemRecord.model_validate(snooze) if snooze else None

    async def get_snooze_for_item(
        self,
        item_type: SnoozeItemType,
        item_id: str,
    ) -> SnoozedItemRecord | None:
        async with self.unit_of_work() as db:
            snooze = await snooze_service.get_snooze_for_item(db, item_type, item_id)
            return SnoozedItemRecord.model_validate(snooze) if snooze else None

    async def get_snoozes(
        self,
        profile_id: str | None = None,
        space_id: str | None = None,
    ) -> list[SnoozedItemRecord]:
        async with self.unit_of_work() as db:
            snoozes = await snooze_service.get_snoozes(db, profile_id, space_id)
            return [SnoozedItemRecord.model_validate(s) for s in snoozes]

    async def get_due_snoozes(self, now: datetime | None = None) -> list[SnoozedItemRecord]:
        async with self.unit_of_work() as db:
            snoozes = await snooze_service.get_due_snoozes(db, now)
            return [SnoozedItemRecord.model_validate(s) for s in snoozes]

    async def mark_snooze_notified(self, snooze_id: str, now: datetime | None = None) -> bool:
        async with self.unit_of_work() as db:
            return await snooze_service.mark_snooze_notified(db, snooze_id, now)

    async def update_snooze(
        self,
        snooze_id: str,
        data: SnoozeUpdate,
    ) -> SnoozedItemRecord | None:
        async with self.unit_of_work() as db:
            snooze = await snooze_service.update_snooze(db, snooze_id, data)
            return SnoozedItemRecord.model_validate(snooze) if snooze else None

    async def delete_snooze(self, snooze_id: str) -> bool:
        async with self.unit_of_work() as db:
            return await snooze_service.delete_snooze(db, snooze_id)

    # --- Import ---

    async def import_bookmarks(
        self,
        document: str | bytes,
        profile_id: str,
        space_id: str,
    ) -> ImportStats:
        """
        Import a Netscape/Chrome HTML export, skipping urls already present.

        Raises:
            BookmarkImportError: If the document cannot be parsed; nothing is written.
        """
        async with self.unit_of_work() as db:
            return await import_service.import_bookmarks(db, document, profile_id, space_id)
