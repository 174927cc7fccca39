"""
Schema creation and additive migration for the bookmark database.

The database is created on first use and evolved in place: missing tables are
created with their indexes and missing columns are appended with
ALTER TABLE ... ADD COLUMN. Nothing is ever dropped or rewritten, so running
this against an existing file is always safe.
"""
import asyncio
import logging
from dataclasses import dataclass, field

from sqlalchemy import Column, Connection, inspect, text
from sqlalchemy.ext.asyncio import AsyncEngine

import bookmark_engine.models  # noqa: F401 - registers every table on Base.metadata
from bookmark_engine.core.config import Settings
from bookmark_engine.db.readiness import ReadinessGate
from bookmark_engine.models.base import Base

logger = logging.getLogger(__name__)


@dataclass
class SchemaChanges:
    """What a schema pass had to change."""

    created_tables: list[str] = field(default_factory=list)
    added_columns: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.created_tables or self.added_columns)


def _default_literal(column: Column) -> str | None:
    """Render a scalar Python-side default as a SQL literal, if the column has one."""
    default = column.default
    if default is None or not default.is_scalar:
        return None
    value = default.arg
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int | float):
        return str(value)
    if isinstance(value, str):
        escaped = value.replace("'", "''")
        return f"'{escaped}'"
    return None


def _add_column_ddl(connection: Connection, table_name: str, column: Column) -> str:
    column_type = column.type.compile(dialect=connection.dialect)
    ddl = f'ALTER TABLE "{table_name}" ADD COLUMN "{column.name}" {column_type}'
    default = _default_literal(column)
    if default is not None:
        ddl += f" DEFAULT {default}"
        # SQLite only accepts NOT NULL on an added column when a default backfills it
        if not column.nullable:
            ddl += " NOT NULL"
    return ddl


def _ensure_schema_sync(connection: Connection) -> SchemaChanges:
    changes = SchemaChanges()
    inspector = inspect(connection)
    existing_tables = set(inspector.get_table_names())

    for table in Base.metadata.sorted_tables:
        if table.name not in existing_tables:
            table.create(connection)
            changes.created_tables.append(table.name)
            continue

        existing_columns = {col["name"] for col in inspector.get_columns(table.name)}
        for column in table.columns:
            if column.name in existing_columns:
                continue
            connection.execute(text(_add_column_ddl(connection, table.name, column)))
            changes.added_columns.append(f"{table.name}.{column.name}")

    return changes


async def ensure_schema(engine: AsyncEngine) -> SchemaChanges:
    """
    Create missing tables and add missing columns.

    Idempotent: a second call against an up-to-date database changes nothing.

    Args:
        engine: The storage engine.

    Returns:
        SchemaChanges listing the tables created and columns added.
    """
    async with engine.begin() as conn:
        return await conn.run_sync(_ensure_schema_sync)


class SchemaManager:
    """Runs schema initialization with retries and releases the readiness gate."""

    def __init__(self, engine: AsyncEngine, gate: ReadinessGate, settings: Settings) -> None:
        self.engine = engine
        self.gate = gate
        self.max_attempts = settings.schema_init_max_attempts
        self.retry_delay = settings.schema_init_retry_delay

    async def initialize(self) -> bool:
        """
        Bring the schema up to date, retrying with a linearly growing delay.

        The gate is released exactly once: with schema_ready=True on success,
        or with schema_ready=False after the final failed attempt.

        Returns:
            True if the schema is known-good.
        """
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                changes = await ensure_schema(self.engine)
            except Exception as e:
                last_error = e
                logger.warning(
                    "Schema initialization attempt %d/%d failed: %s",
                    attempt,
                    self.max_attempts,
                    e,
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.retry_delay * attempt)
                continue

            if changes.changed:
                logger.info(
                    "Schema updated: created tables=%s, added columns=%s",
                    changes.created_tables,
                    changes.added_columns,
                )
            logger.info("Database schema ready")
            self.gate.release(schema_ready=True)
            return True

        logger.error(
            "Schema initialization abandoned after %d attempts; storage is degraded",
            self.max_attempts,
        )
        self.gate.release(schema_ready=False, error=last_error)
        return False
