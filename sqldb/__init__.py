"""
sqldb
=====

Database-access middleware between application code and a pluggable SQL
driver: scoped client acquisition, an idempotent transaction lifecycle,
whole-unit retry of transactions whose commit fails, and ordered,
exactly-once migrations.

Example:
    >>> from sqldb import Database, SQLiteDriver
    >>> db = Database()
    >>> await db.initialize(SQLiteDriver())
    >>> async def add_user(conn):
    ...     await conn.execute("INSERT INTO users(name) VALUES (:name)", {"name": "mary"})
    ...     return await conn.query_single("SELECT COUNT(*) AS n FROM users")
    >>> await db.use_with_retry("immediate", add_user)
    {'n': 1}
"""

from sqldb.core.exceptions import (
    SqlDbException,
    ConfigurationError,
    InvalidDriverError,
    AlreadyInitializedError,
    NotInitializedError,
    MigrationError,
)
from sqldb.core.logger import Logger, StandardLogger, NoopLogger, setup_logger
from sqldb.core.settings import Settings, settings, get_settings
from sqldb.database import (
    BaseDriver,
    Connection,
    ConnectionManager,
    Database,
    DirectoryMigrationSource,
    MigrationExecutor,
    MigrationReport,
    RegistryMigrationSource,
    SQLiteDriver,
    ensure_driver,
)

__version__ = "1.0.0"

__all__ = [
    "Database",
    "Connection",
    "ConnectionManager",
    "MigrationExecutor",
    "MigrationReport",
    "DirectoryMigrationSource",
    "RegistryMigrationSource",
    "BaseDriver",
    "SQLiteDriver",
    "ensure_driver",
    "Logger",
    "StandardLogger",
    "NoopLogger",
    "setup_logger",
    "Settings",
    "settings",
    "get_settings",
    "SqlDbException",
    "ConfigurationError",
    "InvalidDriverError",
    "AlreadyInitializedError",
    "NotInitializedError",
    "MigrationError",
]
