# ==============================================================================
# SETTINGS CONFIGURATION - Environment Management
# ==============================================================================
# Pydantic Settings for type-safe environment variable management
# Every value can be overridden explicitly by the caller
# ==============================================================================

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Library Settings Configuration.

    Holds the defaults used by the connection manager, the migration
    executor and the reference SQLite driver. Values are read from
    ``SQLDB_``-prefixed environment variables or a local ``.env`` file.

    Attributes:
        RETRY_DELAY_MS: Wait between two attempts of a retryable unit
        RETRY_MAX_ATTEMPTS: Attempt budget of a retryable unit
        MIGRATIONS_TABLE: Bookkeeping table for executed migrations
        MIGRATIONS_DIR: Default directory scanned for migration modules

    Example:
        >>> from sqldb.core.settings import settings
        >>> settings.RETRY_MAX_ATTEMPTS
        3
    """

    model_config = SettingsConfigDict(
        env_prefix="SQLDB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # --------------------------------------------------------------------------
    # RETRY POLICY
    # --------------------------------------------------------------------------
    RETRY_DELAY_MS: int = Field(
        default=500,
        ge=0,
        description="Delay in milliseconds before retrying a failed transaction"
    )
    RETRY_MAX_ATTEMPTS: int = Field(
        default=3,
        ge=1,
        description="Maximum number of attempts for a retryable unit of work"
    )

    # --------------------------------------------------------------------------
    # MIGRATIONS
    # --------------------------------------------------------------------------
    MIGRATIONS_TABLE: str = Field(
        default="migrations",
        min_length=1,
        description="Table used to record executed migrations"
    )
    MIGRATIONS_DIR: Optional[str] = Field(
        default=None,
        description="Directory holding migration modules"
    )

    # --------------------------------------------------------------------------
    # SQLITE REFERENCE DRIVER
    # --------------------------------------------------------------------------
    SQLITE_URL: str = Field(
        default="sqlite+aiosqlite:///:memory:",
        description="SQLite database URL used by SQLiteDriver"
    )
    DEBUG: bool = Field(
        default=False,
        description="Echo SQL statements emitted by the reference driver"
    )

    # --------------------------------------------------------------------------
    # LOGGING CONFIGURATION
    # --------------------------------------------------------------------------
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (TRACE, DEBUG, INFO, WARNING, ERROR)"
    )
    LOG_FORMAT: str = Field(
        default="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        description="Format string of the default console logger"
    )

    # --------------------------------------------------------------------------
    # VALIDATORS
    # --------------------------------------------------------------------------
    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept log levels in any case."""
        return v.upper()

    @field_validator("SQLITE_URL")
    @classmethod
    def ensure_async_sqlite_url(cls, v: str) -> str:
        """Make sure the aiosqlite dialect is used."""
        if v.startswith("sqlite://"):
            return v.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return v


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Returns:
        Settings: Cached settings instance
    """
    return Settings()


# Module-level settings instance for convenient imports
settings = get_settings()
