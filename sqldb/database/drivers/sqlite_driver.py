# ==============================================================================
# SQLITE DRIVER - SQLAlchemy Async with aiosqlite
# ==============================================================================
# Reference implementation of the driver contract
# Lightweight backend for development, testing and embedded use
# ==============================================================================

from __future__ import annotations

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, ClassVar, Dict, List, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from sqldb.core.logger import Logger
from sqldb.core.settings import settings
from sqldb.database.drivers.base_driver import BaseDriver, Params, Row
from sqldb.utils.helpers import utc_timestamp

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _check_identifier(name: str) -> str:
    """Reject table names that would need quoting."""
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


class SQLiteDriver(BaseDriver):
    """
    SQLite driver using SQLAlchemy async with aiosqlite.

    The engine runs in ``AUTOCOMMIT`` mode so that transactions are
    controlled exclusively by the ``BEGIN`` / ``COMMIT`` / ``ROLLBACK``
    statements issued through the driver contract. In-memory databases
    use a single shared connection (``StaticPool``), so every client
    sees the same data. That connection is lent to one client at a time:
    ``get_client`` waits until the previous client has been released, so
    a unit of work must not acquire a second client while holding one.

    Isolation Levels:
        deferred   BEGIN DEFERRED   (SQLite default)
        immediate  BEGIN IMMEDIATE  (takes the write lock upfront)
        exclusive  BEGIN EXCLUSIVE

    Params:
        Named parameters (``:name``) given as a mapping.

    Example:
        >>> driver = SQLiteDriver("sqlite+aiosqlite:///./app.db")
        >>> db = Database()
        >>> await db.initialize(driver)
        >>> await db.execute("immediate", "INSERT INTO users(name) VALUES (:name)",
        ...                  {"name": "john"})
    """

    tx_isolation_levels: ClassVar[Mapping[str, str]] = {
        "DEFERRED": "deferred",
        "IMMEDIATE": "immediate",
        "EXCLUSIVE": "exclusive",
    }

    def __init__(self, database_url: Optional[str] = None, echo: Optional[bool] = None) -> None:
        """
        Initialize SQLite driver.

        Args:
            database_url: SQLite connection URL (defaults to settings)
            echo: Log emitted SQL (defaults to settings.DEBUG)
        """
        # Ensure async driver is used
        url = database_url or settings.SQLITE_URL
        if "sqlite://" in url and "aiosqlite" not in url:
            url = url.replace("sqlite://", "sqlite+aiosqlite://")

        self._database_url = url
        self._echo = settings.DEBUG if echo is None else echo
        self._engine: Optional[AsyncEngine] = None
        self._client_lock: Optional[asyncio.Lock] = None

    @classmethod
    def create_for_testing(cls) -> "SQLiteDriver":
        """
        Create an in-memory SQLite driver for testing.

        Note:
            In-memory databases are ephemeral - data is lost
            when the driver shuts down.
        """
        return cls(database_url="sqlite+aiosqlite:///:memory:", echo=False)

    @property
    def database_url(self) -> str:
        return self._database_url

    @property
    def is_memory(self) -> bool:
        return ":memory:" in self._database_url or self._database_url.rstrip("/").endswith(
            "sqlite+aiosqlite:"
        )

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Driver not initialized. Call initialize() first.")
        return self._engine

    # ==========================================================================
    # LIFECYCLE METHODS
    # ==========================================================================

    async def initialize(self, *, logger: Logger) -> None:
        """Create the async engine."""
        self.logger = logger

        engine_options: Dict[str, Any] = {
            "echo": self._echo,
            "isolation_level": "AUTOCOMMIT",
            "connect_args": {"check_same_thread": False},
        }
        if self.is_memory:
            engine_options["poolclass"] = StaticPool
            self._client_lock = asyncio.Lock()

        self._engine = create_async_engine(self._database_url, **engine_options)
        logger.debug("SQLite driver initialized for %s", self._database_url)

    async def shutdown(self) -> None:
        """Dispose the engine and its connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._client_lock = None
            logger.info("SQLite driver shut down")

    # ==========================================================================
    # CLIENT MANAGEMENT
    # ==========================================================================

    async def get_client(self) -> AsyncConnection:
        engine = self.engine
        if self._client_lock is None:
            return await engine.connect()

        # Single shared memory connection: one client at a time
        await self._client_lock.acquire()
        try:
            return await engine.connect()
        except Exception:
            self._client_lock.release()
            raise

    async def release_client(self, client: AsyncConnection) -> None:
        try:
            await client.close()
        finally:
            if self._client_lock is not None and self._client_lock.locked():
                self._client_lock.release()

    @asynccontextmanager
    async def _bookkeeping_client(self) -> AsyncIterator[AsyncConnection]:
        client = await self.get_client()
        try:
            yield client
        finally:
            await self.release_client(client)

    # ==========================================================================
    # STATEMENT EXECUTION
    # ==========================================================================

    async def query(
        self,
        client: AsyncConnection,
        sql: str,
        params: Params = None,
    ) -> List[Row]:
        result = await client.execute(text(sql), params or {})
        if not result.returns_rows:
            return []
        return [dict(row) for row in result.mappings().all()]

    async def execute(
        self,
        client: AsyncConnection,
        sql: str,
        params: Params = None,
    ) -> int:
        result = await client.execute(text(sql), params or {})
        return result.rowcount

    # ==========================================================================
    # TRANSACTIONS
    # ==========================================================================

    async def start_transaction(self, client: AsyncConnection, isolation_level: str) -> None:
        level = str(isolation_level).lower()
        if level not in self.tx_isolation_levels.values():
            raise ValueError(
                f"Unsupported SQLite isolation level {isolation_level!r}, "
                f"expected one of {sorted(self.tx_isolation_levels.values())}"
            )
        await client.exec_driver_sql(f"BEGIN {level.upper()}")

    async def commit_transaction(self, client: AsyncConnection) -> None:
        await client.exec_driver_sql("COMMIT")

    async def rollback_transaction(self, client: AsyncConnection, cause: Any = None) -> None:
        if cause is not None:
            logger.debug("Rolling back SQLite transaction: %s", cause)
        await client.exec_driver_sql("ROLLBACK")

    # ==========================================================================
    # MIGRATION BOOKKEEPING
    # ==========================================================================

    async def ensure_migrations_table(self, table_name: str) -> None:
        table = _check_identifier(table_name)
        async with self._bookkeeping_client() as client:
            await client.exec_driver_sql(
                f"CREATE TABLE IF NOT EXISTS {table} ("
                "name TEXT PRIMARY KEY, "
                "executed_at TEXT NOT NULL)"
            )

    async def list_executed_migration_names(self, table_name: str) -> List[str]:
        table = _check_identifier(table_name)
        async with self._bookkeeping_client() as client:
            result = await client.exec_driver_sql(
                f"SELECT name FROM {table} ORDER BY name ASC"
            )
            return [row[0] for row in result.all()]

    async def log_migration_successful(self, conn: Any, table_name: str, name: str) -> None:
        table = _check_identifier(table_name)
        await conn.execute(
            f"INSERT INTO {table} (name, executed_at) VALUES (:name, :executed_at)",
            {"name": name, "executed_at": utc_timestamp()},
        )

    def get_migration_transaction_isolation_level(self) -> str:
        return "immediate"
