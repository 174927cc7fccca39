"""Async SQLAlchemy engine and session factory for the embedded SQLite database."""
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from bookmark_engine.core.config import Settings


def create_storage_engine(settings: Settings) -> AsyncEngine:
    """
    Create the shared async engine.

    Every new DBAPI connection is configured for concurrent use:
    - WAL journal so readers don't block the single writer
    - NORMAL synchronous mode (safe with WAL)
    - busy_timeout so a contended write waits before failing
    - foreign_keys so junction rows cascade with their owners
    """
    settings.database_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_async_engine(
        settings.database_url,
        echo=False,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
    )

    busy_timeout_ms = settings.db_busy_timeout_ms
    cache_size_kb = settings.db_cache_size_kb

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record) -> None:  # noqa: ARG001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
        cursor.execute(f"PRAGMA cache_size=-{int(cache_size_kb)}")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        # Take over transaction control from the driver so SAVEPOINTs nest correctly
        dbapi_connection.isolation_level = None

    # Take the write lock up front: a deferred transaction that read first
    # cannot upgrade to a writer and fails with SQLITE_BUSY without waiting.
    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Return the session factory bound to the storage engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
