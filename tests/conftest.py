"""Pytest fixtures for testing."""
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from bookmark_engine.core.config import Settings
from bookmark_engine.db.schema import ensure_schema
from bookmark_engine.db.session import create_session_factory, create_storage_engine
from bookmark_engine.engine import BookmarkEngine


@pytest.fixture
def database_path(tmp_path: Path) -> Path:
    """A fresh database file per test."""
    return tmp_path / "bookmarks.db"


@pytest.fixture
def settings(database_path: Path) -> Settings:
    """Settings pointing at the per-test database, with no retry delay."""
    return Settings(
        database_path=database_path,
        schema_init_retry_delay=0,
    )


@pytest.fixture
async def async_engine(settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create the storage engine with an up-to-date schema."""
    engine = create_storage_engine(settings)
    await ensure_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """
    Create an async session for service-level tests.

    Services only flush, so tests see their own writes without committing.
    The database file is discarded with tmp_path.
    """
    session_factory = create_session_factory(async_engine)
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def bookmark_engine(settings: Settings) -> AsyncGenerator[BookmarkEngine]:
    """An opened BookmarkEngine whose schema is ready."""
    async with BookmarkEngine(settings) as engine:
        assert await engine.wait_ready()
        yield engine
