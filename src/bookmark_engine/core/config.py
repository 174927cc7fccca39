"""Engine configuration using pydantic-settings."""
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Storage settings loaded from environment variables (or an injected instance)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database file; the async URL is derived from it
    database_path: Path = Field(
        default=Path("bookmarks.db"), validation_alias="BOOKMARKS_DATABASE_PATH",
    )

    # Connection pool - SQLite serializes writers, so keep this small
    db_pool_size: int = Field(default=5, validation_alias="BOOKMARKS_DB_POOL_SIZE")
    db_max_overflow: int = Field(default=0, validation_alias="BOOKMARKS_DB_MAX_OVERFLOW")
    db_pool_timeout: float = Field(default=1.0, validation_alias="BOOKMARKS_DB_POOL_TIMEOUT")

    # PRAGMAs applied to every new connection
    db_busy_timeout_ms: int = Field(
        default=3000, validation_alias="BOOKMARKS_DB_BUSY_TIMEOUT_MS",
    )
    db_cache_size_kb: int = Field(default=64000, validation_alias="BOOKMARKS_DB_CACHE_SIZE_KB")

    # Schema initialization retries (delay grows linearly: 1x, 2x, 3x ...)
    schema_init_max_attempts: int = Field(
        default=3, validation_alias="BOOKMARKS_SCHEMA_INIT_MAX_ATTEMPTS",
    )
    schema_init_retry_delay: float = Field(
        default=1.0, validation_alias="BOOKMARKS_SCHEMA_INIT_RETRY_DELAY",
    )

    # Days a soft-deleted row stays in the trash before cleanup purges it
    trash_expiry_days: int = Field(default=30, validation_alias="BOOKMARKS_TRASH_EXPIRY_DAYS")

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        """Reject pool and retry settings that would deadlock or never initialize."""
        if self.db_pool_size < 1:
            raise ValueError("db_pool_size must be >= 1")
        if self.db_max_overflow < 0:
            raise ValueError("db_max_overflow must be >= 0")
        if self.schema_init_max_attempts < 1:
            raise ValueError("schema_init_max_attempts must be >= 1")
        if self.schema_init_retry_delay < 0:
            raise ValueError("schema_init_retry_delay must be >= 0")
        if self.trash_expiry_days < 0:
            raise ValueError("trash_expiry_days must be >= 0")
        return self

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL for the aiosqlite driver."""
        return f"sqlite+aiosqlite:///{self.database_path}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
