"""Tests for schema creation, additive migration and initialization retries."""
from types import SimpleNamespace

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncEngine

from bookmark_engine.core.config import Settings
from bookmark_engine.db import schema as schema_module
from bookmark_engine.db.readiness import ReadinessGate
from bookmark_engine.db.schema import SchemaChanges, SchemaManager, ensure_schema
from bookmark_engine.db.session import create_storage_engine

EXPECTED_TABLES = {
    "bookmarks",
    "bookmark_labels",
    "bookmark_collections",
    "collection_items",
    "snoozed_items",
}


async def table_names(engine: AsyncEngine) -> set[str]:
    async with engine.connect() as conn:
        return set(await conn.run_sync(lambda c: inspect(c).get_table_names()))


async def column_names(engine: AsyncEngine, table: str) -> set[str]:
    async with engine.connect() as conn:
        columns = await conn.run_sync(lambda c: inspect(c).get_columns(table))
    return {col["name"] for col in columns}


@pytest.fixture
async def raw_engine(settings: Settings):
    """A storage engine on an empty database file."""
    engine = create_storage_engine(settings)
    yield engine
    await engine.dispose()


# =============================================================================
# ensure_schema
# =============================================================================


async def test__ensure_schema__creates_all_tables(raw_engine: AsyncEngine) -> None:
    changes = await ensure_schema(raw_engine)

    assert set(changes.created_tables) == EXPECTED_TABLES
    assert changes.added_columns == []
    assert await table_names(raw_engine) >= EXPECTED_TABLES


async def test__ensure_schema__is_idempotent(raw_engine: AsyncEngine) -> None:
    await ensure_schema(raw_engine)

    second = await ensure_schema(raw_engine)

    assert second == SchemaChanges()
    assert not second.changed


async def test__ensure_schema__adds_missing_columns_without_losing_data(
    raw_engine: AsyncEngine,
) -> None:
    # A bookmarks table from before visit tracking and favicons existed
    async with raw_engine.begin() as conn:
        await conn.execute(
            text(
                "CREATE TABLE bookmarks ("
                "id VARCHAR(36) PRIMARY KEY, url TEXT NOT NULL, title VARCHAR(500) NOT NULL, "
                "description TEXT, profile_id VARCHAR(64) NOT NULL, "
                "space_id VARCHAR(64) NOT NULL, is_global BOOLEAN NOT NULL, "
                "date_added DATETIME NOT NULL, date_modified DATETIME, deleted_at DATETIME)",
            ),
        )
        await conn.execute(
            text(
                "INSERT INTO bookmarks (id, url, title, profile_id, space_id, is_global, "
                "date_added) VALUES ('legacy', 'https://old.com', 'Old', 'p', 's', 0, "
                "'2023-01-01 00:00:00.000000')",
            ),
        )

    changes = await ensure_schema(raw_engine)

    assert set(changes.added_columns) == {
        "bookmarks.favicon",
        "bookmarks.visit_count",
        "bookmarks.last_visited",
    }
    assert "bookmarks" not in changes.created_tables
    assert {"favicon", "visit_count", "last_visited"} <= await column_names(
        raw_engine, "bookmarks",
    )
    async with raw_engine.connect() as conn:
        row = (
            await conn.execute(text("SELECT title, visit_count FROM bookmarks WHERE id = 'legacy'"))
        ).one()
    assert row.title == "Old"
    # Backfilled from the column default
    assert row.visit_count == 0


# =============================================================================
# SchemaManager
# =============================================================================


async def test__schema_manager__success_releases_ready_gate(
    raw_engine: AsyncEngine,
    settings: Settings,
) -> None:
    gate = ReadinessGate()

    assert await SchemaManager(raw_engine, gate, settings).initialize() is True

    assert gate.is_released
    assert gate.schema_ready
    assert EXPECTED_TABLES <= await table_names(raw_engine)


async def test__schema_manager__retries_with_linear_backoff(
    raw_engine: AsyncEngine,
    database_path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    settings = Settings(database_path=database_path, schema_init_retry_delay=0.5)
    attempts = 0
    delays: list[float] = []
    real_ensure_schema = schema_module.ensure_schema

    async def flaky_ensure_schema(engine: AsyncEngine) -> SchemaChanges:
        nonlocal attempts
        attempts += 1
        if attempts < 3:
            raise OSError("database is locked")
        return await real_ensure_schema(engine)

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    monkeypatch.setattr(schema_module, "ensure_schema", flaky_ensure_schema)
    monkeypatch.setattr(schema_module, "asyncio", SimpleNamespace(sleep=fake_sleep))
    gate = ReadinessGate()

    assert await SchemaManager(raw_engine, gate, settings).initialize() is True

    assert attempts == 3
    assert delays == [0.5, 1.0]
    assert gate.schema_ready


async def test__schema_manager__exhausted_retries_still_release_gate(
    raw_engine: AsyncEngine,
    settings: Settings,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    attempts = 0
    error = OSError("disk I/O error")

    async def failing_ensure_schema(engine: AsyncEngine) -> SchemaChanges:
        nonlocal attempts
        attempts += 1
        raise error

    monkeypatch.setattr(schema_module, "ensure_schema", failing_ensure_schema)
    gate = ReadinessGate()

    assert await SchemaManager(raw_engine, gate, settings).initialize() is False

    assert attempts == settings.schema_init_max_attempts == 3
    assert gate.is_released
    assert gate.schema_ready is False
    assert gate.error is error
