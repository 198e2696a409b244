# ==============================================================================
# DATABASE HANDLE - Driver Lifecycle Management
# ==============================================================================
# Explicit handle owning one driver and its connection manager
# initialize() once, shutdown() to release, then initialize() again if needed
# ==============================================================================

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from sqldb.core.exceptions import (
    AlreadyInitializedError,
    ConfigurationError,
    NotInitializedError,
)
from sqldb.core.logger import Logger, noop_logger, setup_logger
from sqldb.core.settings import settings
from sqldb.database.drivers.base_driver import (
    DriverLike,
    Params,
    Row,
    ensure_driver,
    isolation_levels_of,
)
from sqldb.database.manager import ConnectionManager, Work
from sqldb.database.migrations import (
    MigrationExecutor,
    MigrationReport,
    MigrationSource,
    MigrationUnit,
)

MigrationsArg = Union[str, Path, Mapping[str, MigrationUnit], MigrationSource, None]

# Marks an omitted logger argument, as opposed to an explicit None
_DEFAULT_LOGGER: Any = object()


def resolve_logger(logger: Any) -> Logger:
    """
    Pick the logger used by a database handle.

    Args:
        logger: Omitted (console logger), ``None`` (no-op logger) or an
            object exposing trace/debug/info/warn/error

    Returns:
        Logger instance
    """
    if logger is _DEFAULT_LOGGER:
        return setup_logger("sqldb")
    if logger is None:
        return noop_logger
    return logger


class Database:
    """
    Database handle with an explicit lifecycle.

    Owns the driver and the connection manager between ``initialize()``
    and ``shutdown()``. Every unit of work method is delegated to the
    manager and fails with ``NotInitializedError`` outside that window.

    Attributes:
        tx_isolation_levels: Isolation level tokens declared by the driver,
            empty until initialized

    Example:
        >>> db = Database()
        >>> await db.initialize(SQLiteDriver(), run_migrations=True,
        ...                     migrations="./migrations")
        >>> users = await db.query(None, "SELECT * FROM users")
        >>> await db.shutdown()
    """

    def __init__(
        self,
        *,
        retry_delay_ms: Optional[int] = None,
        max_retry_attempts: Optional[int] = None,
        migrations_table: Optional[str] = None,
    ) -> None:
        """
        Create an uninitialized handle.

        Args:
            retry_delay_ms: Delay between retries (defaults to settings)
            max_retry_attempts: Attempt budget of retryable units (defaults to settings)
            migrations_table: Migration bookkeeping table (defaults to settings)
        """
        self._retry_delay_ms = retry_delay_ms
        self._max_retry_attempts = max_retry_attempts
        self._migrations_table = migrations_table or settings.MIGRATIONS_TABLE
        self._driver: Optional[DriverLike] = None
        self._manager: Optional[ConnectionManager] = None
        self._logger: Logger = noop_logger
        self.tx_isolation_levels: Dict[str, str] = {}

    # ==========================================================================
    # LIFECYCLE
    # ==========================================================================

    async def initialize(
        self,
        driver: DriverLike,
        *,
        logger: Any = _DEFAULT_LOGGER,
        run_migrations: bool = False,
        migrations: MigrationsArg = None,
    ) -> None:
        """
        Validate and initialize the driver, then build the manager.

        If anything fails once the driver is initialized, the driver is
        shut down again and the handle is left uninitialized.

        Args:
            driver: Object implementing the driver contract
            logger: Logger; omit for the console logger, ``None`` to mute
            run_migrations: Apply pending migrations once initialized
            migrations: Migration source used when ``run_migrations`` is set

        Raises:
            AlreadyInitializedError: If the handle is already initialized
            InvalidDriverError: If the driver misses required methods
            ConfigurationError: If migrations are requested without a source
        """
        if self._manager is not None:
            raise AlreadyInitializedError()

        ensure_driver(driver)
        if run_migrations:
            migrations = self._resolve_migrations(migrations)
        log = resolve_logger(logger)
        log.info("Initializing DB...")

        await driver.initialize(logger=log)

        try:
            self._logger = log
            self._driver = driver
            self._manager = ConnectionManager(
                driver,
                logger=log,
                retry_delay_ms=self._retry_delay_ms,
                max_retry_attempts=self._max_retry_attempts,
            )
            self.tx_isolation_levels = isolation_levels_of(driver)

            if run_migrations:
                await self.run_migrations(migrations)
        except Exception as e:
            log.error("DB initialization failed: %s", e)
            await self._abort_initialize(driver)
            raise

    async def _abort_initialize(self, driver: DriverLike) -> None:
        self._manager = None
        self._driver = None
        self.tx_isolation_levels = {}
        try:
            await driver.shutdown()
        except Exception as e:
            self._logger.warn("Ignoring driver shutdown failure: %s", e)

    async def shutdown(self) -> None:
        """
        Shut the driver down and forget it.

        Safe to call on a handle that is not initialized.
        """
        manager = self._manager
        self._manager = None
        self._driver = None
        self.tx_isolation_levels = {}

        if manager is not None:
            await manager.shutdown()
            self._logger.info("DB shut down")

    async def run_migrations(
        self,
        migrations: MigrationsArg = None,
        *,
        table_name: Optional[str] = None,
    ) -> MigrationReport:
        """
        Apply pending migrations.

        Args:
            migrations: Directory, mapping or source; ``None`` uses
                ``settings.MIGRATIONS_DIR``
            table_name: Bookkeeping table (defaults to the handle's)

        Returns:
            Report of the run

        Raises:
            NotInitializedError: If the handle is not initialized
            ConfigurationError: If no migration source can be determined
        """
        manager = self.manager

        executor = MigrationExecutor(
            manager,
            self._resolve_migrations(migrations),
            table_name=table_name or self._migrations_table,
            logger=self._logger,
        )
        return await executor.run()

    def _resolve_migrations(self, migrations: MigrationsArg) -> MigrationsArg:
        """Fall back to ``settings.MIGRATIONS_DIR`` when no source is given."""
        if migrations is not None:
            return migrations
        if not settings.MIGRATIONS_DIR:
            raise ConfigurationError(
                "No migrations given and SQLDB_MIGRATIONS_DIR is not set"
            )
        return settings.MIGRATIONS_DIR

    # ==========================================================================
    # STATE
    # ==========================================================================

    @property
    def is_initialized(self) -> bool:
        return self._manager is not None

    @property
    def manager(self) -> ConnectionManager:
        if self._manager is None:
            raise NotInitializedError()
        return self._manager

    @property
    def driver(self) -> DriverLike:
        if self._driver is None:
            raise NotInitializedError()
        return self._driver

    @property
    def logger(self) -> Logger:
        return self._logger

    # ==========================================================================
    # UNITS OF WORK
    # ==========================================================================

    async def use(self, target: Any, work: Optional[Work] = None) -> Any:
        return await self.manager.use(target, work)

    async def use_with_retry(self, target: Any, work: Optional[Work] = None) -> Any:
        return await self.manager.use_with_retry(target, work)

    async def query(self, target: Any, sql: str, params: Params = None) -> List[Row]:
        return await self.manager.query(target, sql, params)

    async def query_single(
        self,
        target: Any,
        sql: str,
        params: Params = None,
    ) -> Optional[Row]:
        return await self.manager.query_single(target, sql, params)

    async def execute(
        self,
        target: Any,
        sqls: Union[str, Sequence[str]],
        params: Params = None,
    ) -> Union[int, List[int]]:
        return await self.manager.execute(target, sqls, params)

    async def retryable_query(
        self,
        target: Any,
        sql: str,
        params: Params = None,
    ) -> List[Row]:
        return await self.manager.retryable_query(target, sql, params)

    async def retryable_execute(
        self,
        target: Any,
        sqls: Union[str, Sequence[str]],
        params: Params = None,
    ) -> Union[int, List[int]]:
        return await self.manager.retryable_execute(target, sqls, params)
