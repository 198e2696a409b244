# ==============================================================================
# CONNECTION MANAGER - Units of Work, Transactions & Retry
# ==============================================================================
# Acquires a client, runs caller supplied work against a Connection and
# guarantees commit / rollback / release on every exit path
# ==============================================================================

from __future__ import annotations

import asyncio
from typing import (
    Any,
    Awaitable,
    Callable,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
    Union,
)

from sqldb.core.exceptions import ConfigurationError
from sqldb.core.logger import Logger, noop_logger
from sqldb.core.settings import settings
from sqldb.database.connection import Connection
from sqldb.database.drivers.base_driver import DriverLike, Params, Row

T = TypeVar("T")

Work = Callable[[Any], Awaitable[T]]


def is_connection(obj: Any) -> bool:
    """Tell a live connection apart from an isolation level token."""
    return callable(getattr(obj, "commit", None)) and callable(
        getattr(obj, "rollback", None)
    )


class CommitErrorRecorder:
    """
    Commit policy used by retryable units of work.

    A failing commit is recorded instead of raised, so the unit of work
    completes as if the commit had succeeded. The manager inspects
    ``error`` afterwards to decide whether the unit must run again.

    Once a failure is recorded the attempt is doomed, so later commits
    are skipped and the transaction is left for the rollback.
    """

    def __init__(self) -> None:
        self.error: Optional[BaseException] = None

    async def commit(self, conn: Any) -> None:
        if self.error is not None:
            return
        try:
            await conn.commit()
        except Exception as e:
            self.error = e


class RetryableConnection:
    """
    View of a connection whose ``commit()`` goes through a recorder.

    Everything else is forwarded to the wrapped connection, which is
    never modified.
    """

    def __init__(self, conn: Any, recorder: CommitErrorRecorder) -> None:
        self._conn = conn
        self._recorder = recorder

    @property
    def connection(self) -> Any:
        return self._conn

    @property
    def client(self) -> Any:
        return self._conn.client

    @property
    def isolation_level(self) -> Optional[str]:
        return self._conn.isolation_level

    @property
    def in_transaction(self) -> bool:
        return self._conn.in_transaction

    @property
    def ended(self) -> bool:
        return self._conn.ended

    async def query(self, sql: str, params: Params = None) -> List[Row]:
        return await self._conn.query(sql, params)

    async def query_single(self, sql: str, params: Params = None) -> Optional[Row]:
        return await self._conn.query_single(sql, params)

    async def execute(
        self,
        sqls: Union[str, Sequence[str]],
        params: Params = None,
    ) -> Union[int, List[int]]:
        return await self._conn.execute(sqls, params)

    async def commit(self) -> None:
        await self._recorder.commit(self._conn)

    async def rollback(self, cause: Any = None) -> None:
        await self._conn.rollback(cause)


class ConnectionManager:
    """
    Runs units of work against connections built from a driver.

    Features:
        - Client acquisition and release scoped to one unit of work
        - Optional transaction committed on success, rolled back on error
        - Reuse of an existing connection for nested units of work
        - Whole-unit retry when a commit fails (``use_with_retry``)

    Argument Resolution (``use`` and ``use_with_retry``):
        use(fn)               fresh client, no transaction
        use(None, fn)         fresh client, no transaction
        use("level", fn)      fresh client, transaction at that level
        use(connection, fn)   the given connection, untouched lifecycle

    Retry Semantics:
        A retried unit runs ``work`` again from the start. The database
        side of a failed attempt is rolled back, but anything ``work`` did
        outside the transaction is not; such side effects must be
        idempotent or deferred until the unit has returned.

    Example:
        >>> manager = ConnectionManager(driver, logger=logger)
        >>> async def transfer(conn):
        ...     await conn.execute("UPDATE accounts SET ...")
        ...     return await conn.query_single("SELECT ...")
        >>> row = await manager.use_with_retry("immediate", transfer)
    """

    def __init__(
        self,
        driver: DriverLike,
        *,
        logger: Optional[Logger] = None,
        retry_delay_ms: Optional[int] = None,
        max_retry_attempts: Optional[int] = None,
    ) -> None:
        """
        Initialize the connection manager.

        Args:
            driver: Initialized driver
            logger: Logger (defaults to a no-op logger)
            retry_delay_ms: Delay between attempts (defaults to settings)
            max_retry_attempts: Attempt budget (defaults to settings)
        """
        self._driver = driver
        self._logger = logger or noop_logger
        self._retry_delay_ms = (
            settings.RETRY_DELAY_MS if retry_delay_ms is None else retry_delay_ms
        )
        self._max_retry_attempts = (
            settings.RETRY_MAX_ATTEMPTS
            if max_retry_attempts is None
            else max_retry_attempts
        )
        if self._max_retry_attempts < 1:
            raise ConfigurationError(
                "max_retry_attempts must be at least 1",
                details={"max_retry_attempts": self._max_retry_attempts},
            )

    @property
    def retry_delay_ms(self) -> int:
        return self._retry_delay_ms

    @property
    def max_retry_attempts(self) -> int:
        return self._max_retry_attempts

    def get_driver(self) -> DriverLike:
        return self._driver

    async def shutdown(self) -> None:
        await self._driver.shutdown()

    # ==========================================================================
    # UNITS OF WORK
    # ==========================================================================

    async def use(self, target: Any, work: Optional[Work] = None) -> Any:
        """
        Run a unit of work.

        Args:
            target: The work itself, an isolation level, ``None`` or an
                existing connection (see class docstring)
            work: Coroutine function receiving the connection

        Returns:
            Whatever ``work`` returned

        Raises:
            ConfigurationError: If no work function is given
            Exception: Any error from the driver or from ``work``, after
                rollback and release
        """
        return await self._run(target, work)

    async def use_with_retry(self, target: Any, work: Optional[Work] = None) -> Any:
        """
        Run a unit of work, running it again when its commit fails.

        Each attempt commits through a ``CommitErrorRecorder``. When a
        commit failed, the unit is retried after ``retry_delay_ms`` until
        ``max_retry_attempts`` attempts have been made; the error of the
        last attempt is then raised as is.

        Returns:
            Result of the first attempt whose commit succeeded

        Raises:
            ConfigurationError: If no work function is given
            Exception: Last commit error once attempts are exhausted, or
                any other error raised by an attempt
        """
        self._resolve_arguments(target, work)

        attempts_remaining = self._max_retry_attempts
        while True:
            attempts_remaining -= 1
            recorder = CommitErrorRecorder()
            try:
                result = await self._run(target, work, recorder)
            except Exception:
                if recorder.error is None:
                    raise

            tx_error = recorder.error
            if tx_error is None:
                return result

            if attempts_remaining <= 0:
                self._logger.error(
                    "Retried executing db transaction too many times, aborting: %s",
                    tx_error,
                )
                raise tx_error

            self._logger.warn(
                "DB transaction error, wait a bit and retry (%d attempts left): %s",
                attempts_remaining,
                tx_error,
            )
            await asyncio.sleep(self._retry_delay_ms / 1000.0)

    def _resolve_arguments(
        self,
        target: Any,
        work: Optional[Work],
    ) -> Tuple[Optional[Any], Optional[str], Work]:
        """
        Split ``use`` arguments into (connection, isolation level, work).
        """
        if work is None:
            if target is None or not callable(target) or is_connection(target):
                raise ConfigurationError("Missing work function for use()")
            return None, None, target

        if not callable(work):
            raise ConfigurationError(
                "The work argument of use() must be callable",
                details={"work": type(work).__name__},
            )

        if is_connection(target):
            return target, None, work
        return None, target, work

    async def _run(
        self,
        target: Any,
        work: Optional[Work],
        recorder: Optional[CommitErrorRecorder] = None,
    ) -> Any:
        conn, isolation_level, work = self._resolve_arguments(target, work)

        # Caller owns this connection: no acquire, commit, rollback or release
        if conn is not None:
            if recorder is not None:
                conn = RetryableConnection(conn, recorder)
            return await work(conn)

        client = await self._driver.get_client()
        error: Optional[BaseException] = None
        try:
            conn = await Connection.open(
                self._driver, client, isolation_level, self._logger
            )
            unit_conn = conn if recorder is None else RetryableConnection(conn, recorder)
            try:
                result = await work(unit_conn)
                await unit_conn.commit()
            except Exception as e:
                await self._rollback_after_error(conn, e)
                raise

            # Commit failure absorbed by the recorder: discard the attempt
            if recorder is not None and recorder.error is not None:
                await self._rollback_after_error(conn, recorder.error)
            return result
        except Exception as e:
            error = e
            raise
        finally:
            await self._release_client(client, error)

    async def _rollback_after_error(self, conn: Connection, cause: BaseException) -> None:
        try:
            await conn.rollback(cause)
        except Exception as e:
            self._logger.warn(
                "Ignoring rollback failure (%s), keeping original error: %s", e, cause
            )

    async def _release_client(self, client: Any, error: Optional[BaseException]) -> None:
        try:
            await self._driver.release_client(client)
        except Exception as e:
            if error is None:
                raise
            self._logger.error("Error releasing DB client: %s", e)

    # ==========================================================================
    # SHORTCUTS
    # ==========================================================================

    async def query(self, target: Any, sql: str, params: Params = None) -> List[Row]:
        """Run a single query in its own unit of work."""
        return await self.use(target, lambda conn: conn.query(sql, params))

    async def query_single(
        self,
        target: Any,
        sql: str,
        params: Params = None,
    ) -> Optional[Row]:
        """Run a single query and return its first row or ``None``."""
        return await self.use(target, lambda conn: conn.query_single(sql, params))

    async def execute(
        self,
        target: Any,
        sqls: Union[str, Sequence[str]],
        params: Params = None,
    ) -> Union[int, List[int]]:
        """Run one or several statements in their own unit of work."""
        return await self.use(target, lambda conn: conn.execute(sqls, params))

    async def retryable_query(
        self,
        target: Any,
        sql: str,
        params: Params = None,
    ) -> List[Row]:
        """Same as ``query`` but retried when the commit fails."""
        return await self.use_with_retry(target, lambda conn: conn.query(sql, params))

    async def retryable_execute(
        self,
        target: Any,
        sqls: Union[str, Sequence[str]],
        params: Params = None,
    ) -> Union[int, List[int]]:
        """Same as ``execute`` but retried when the commit fails."""
        return await self.use_with_retry(target, lambda conn: conn.execute(sqls, params))
