# ==============================================================================
# CONNECTION - Transaction-Aware Client Wrapper
# ==============================================================================
# Binds one driver client to an optional transaction
# This is the object handed to every unit of work
# ==============================================================================

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Union

from sqldb.core.logger import Logger, noop_logger
from sqldb.database.drivers.base_driver import DriverLike, Params, Row


class Connection:
    """
    Connection wrapper exposed to units of work.

    Wraps a single client borrowed from the driver. When created with an
    isolation level, a transaction is started as part of ``open()`` and
    the wrapper then accepts exactly one successful ``commit()`` or
    ``rollback()``; later calls to either are no-ops.

    A failed commit leaves the wrapper open so the caller can still roll
    the transaction back.

    Attributes:
        enable_trace_log: Log the cause of rollbacks at trace level

    Example:
        >>> conn = await Connection.open(driver, client, "immediate", logger)
        >>> await conn.execute("INSERT INTO users(name) VALUES (:name)", {"name": "john"})
        >>> await conn.commit()
    """

    def __init__(
        self,
        driver: DriverLike,
        client: Any,
        isolation_level: Optional[str] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self._driver = driver
        self._client = client
        self._isolation_level = isolation_level
        self._logger = logger or noop_logger
        self._ended = False
        self.enable_trace_log = True

    @classmethod
    async def open(
        cls,
        driver: DriverLike,
        client: Any,
        isolation_level: Optional[str] = None,
        logger: Optional[Logger] = None,
    ) -> "Connection":
        """
        Build a connection, starting its transaction if one is requested.

        Args:
            driver: Driver owning the client
            client: Client acquired from the driver
            isolation_level: Transaction isolation level, ``None`` for no transaction
            logger: Logger for failures and transaction tracing

        Returns:
            Ready to use connection

        Raises:
            Exception: Whatever ``driver.start_transaction`` raised
        """
        conn = cls(driver, client, isolation_level, logger)
        if isolation_level is not None:
            try:
                await driver.start_transaction(client, isolation_level)
            except Exception as e:
                conn._logger.error("Error starting new transaction: %s", e)
                raise
        return conn

    # ==========================================================================
    # PROPERTIES
    # ==========================================================================

    @property
    def client(self) -> Any:
        return self._client

    @property
    def isolation_level(self) -> Optional[str]:
        return self._isolation_level

    @property
    def in_transaction(self) -> bool:
        """True while a transaction was started and not yet ended."""
        return self._isolation_level is not None and not self._ended

    @property
    def ended(self) -> bool:
        return self._ended

    # ==========================================================================
    # STATEMENTS
    # ==========================================================================

    async def query(self, sql: str, params: Params = None) -> List[Row]:
        """
        Run a statement and return all of its rows.

        Returns:
            List of rows, ``[]`` when there is no data
        """
        try:
            return await self._driver.query(self._client, sql, params)
        except Exception as e:
            self._logger.error("Error performing DB query [%s]: %s", sql, e)
            raise

    async def query_single(self, sql: str, params: Params = None) -> Optional[Row]:
        """
        Run a statement and return its first row.

        Returns:
            First row, or ``None`` if the statement returned no data
        """
        rows = await self.query(sql, params)
        if not rows:
            return None
        return rows[0]

    async def execute(
        self,
        sqls: Union[str, Sequence[str]],
        params: Params = None,
    ) -> Union[int, List[int]]:
        """
        Run one statement, or several statements in order.

        Args:
            sqls: A statement, or a list/tuple of statements
            params: Parameters, only used for a single statement

        Returns:
            Affected row count for a single statement, or the list of
            counts (same order) for several statements
        """
        if isinstance(sqls, (list, tuple)):
            counts = []
            for sql in sqls:
                counts.append(await self._execute_one(sql, None))
            return counts
        return await self._execute_one(sqls, params)

    async def _execute_one(self, sql: str, params: Params) -> int:
        try:
            return await self._driver.execute(self._client, sql, params)
        except Exception as e:
            self._logger.error("Error executing DB statement [%s]: %s", sql, e)
            raise

    # ==========================================================================
    # TRANSACTION LIFECYCLE
    # ==========================================================================

    async def commit(self) -> None:
        """
        Commit the transaction.

        No-op without a transaction or once the connection has ended.
        The connection is marked ended only when the commit succeeds.
        """
        if self._ended or self._isolation_level is None:
            return

        try:
            self._logger.trace("Committing transaction")
            commit_transaction = getattr(self._driver, "commit_transaction", None)
            if commit_transaction is None:
                await self._driver.query(self._client, "COMMIT")
            else:
                await commit_transaction(self._client)
        except Exception as e:
            self._logger.error("Error committing transaction: %s", e)
            raise

        # Only once COMMIT went through, so a failed commit can be rolled back
        self._ended = True

    async def rollback(self, cause: Any = None) -> None:
        """
        Roll the transaction back.

        No-op without a transaction or once the connection has ended.

        Args:
            cause: Error (or reason) that triggered the rollback, handed to
                the driver for diagnostics
        """
        if self._ended or self._isolation_level is None:
            return

        try:
            if self.enable_trace_log:
                self._logger.trace("Rolling back transaction because of: %s", cause)

            rollback_transaction = getattr(self._driver, "rollback_transaction", None)
            if rollback_transaction is None:
                await self._driver.query(self._client, "ROLLBACK")
            else:
                await rollback_transaction(self._client, cause)
        except Exception as e:
            self._logger.error("Error rolling back transaction: %s", e)
            raise

        self._ended = True

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"isolation_level={self._isolation_level!r}, "
            f"ended={self._ended})"
        )
