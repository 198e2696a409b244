# ==============================================================================
# BASE DRIVER - Abstract Interface
# ==============================================================================
# Defines the contract every SQL driver plugged into sqldb must satisfy
# The core only talks to the database through these methods
# ==============================================================================

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import (
    TYPE_CHECKING,
    Any,
    ClassVar,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)

from sqldb.core.exceptions import InvalidDriverError
from sqldb.core.logger import Logger, noop_logger

if TYPE_CHECKING:
    from sqldb.database.connection import Connection

# A row as returned by a driver, usually a dict of column -> value
Row = Any
Params = Optional[Any]

# Required callables, in contract order
REQUIRED_DRIVER_METHODS: Tuple[str, ...] = (
    "initialize",
    "shutdown",
    "get_client",
    "release_client",
    "query",
    "execute",
    "start_transaction",
    "ensure_migrations_table",
    "list_executed_migration_names",
    "log_migration_successful",
    "get_migration_transaction_isolation_level",
)

# Optional hooks; the connection falls back to literal COMMIT / ROLLBACK
OPTIONAL_DRIVER_METHODS: Tuple[str, ...] = (
    "commit_transaction",
    "rollback_transaction",
)


class BaseDriver(ABC):
    """
    Abstract Base Class for SQL Drivers.

    A driver owns the physical connectivity (pool, network) and exposes it
    to sqldb through a small set of coroutines. All methods must report
    failures by raising; sqldb logs them and hands them to the caller
    unchanged.

    Optional Hooks:
        commit_transaction(client): commit the active transaction
        rollback_transaction(client, cause): roll back the active transaction

        Drivers that do not define them get a literal ``COMMIT`` /
        ``ROLLBACK`` statement issued through ``query`` instead.

    Class Attributes:
        tx_isolation_levels: Symbolic names of the isolation level tokens
            understood by ``start_transaction``
        logger: Logger handed over by ``initialize``

    Example:
        >>> driver = SQLiteDriver("sqlite+aiosqlite:///:memory:")
        >>> await driver.initialize(logger=NoopLogger())
        >>> client = await driver.get_client()
        >>> rows = await driver.query(client, "SELECT 1 AS one")
        >>> await driver.release_client(client)
    """

    tx_isolation_levels: ClassVar[Mapping[str, str]] = {}
    logger: Logger = noop_logger

    # ==========================================================================
    # LIFECYCLE METHODS
    # ==========================================================================

    @abstractmethod
    async def initialize(self, *, logger: Logger) -> None:
        """
        Prepare the driver for use.

        Called exactly once by ``Database.initialize`` before any client
        is requested.

        Args:
            logger: Logger used by the database handle
        """
        pass

    @abstractmethod
    async def shutdown(self) -> None:
        """
        Release every physical resource held by the driver.
        """
        pass

    # ==========================================================================
    # CLIENT MANAGEMENT
    # ==========================================================================

    @abstractmethod
    async def get_client(self) -> Any:
        """
        Acquire a client, i.e. one physical connection.

        Returns:
            Opaque client handle
        """
        pass

    @abstractmethod
    async def release_client(self, client: Any) -> None:
        """
        Return a client to the driver (or its pool).

        Args:
            client: Handle previously returned by ``get_client``
        """
        pass

    # ==========================================================================
    # STATEMENT EXECUTION
    # ==========================================================================

    @abstractmethod
    async def query(
        self,
        client: Any,
        sql: str,
        params: Params = None,
    ) -> List[Row]:
        """
        Run a statement and return its rows.

        Args:
            client: Client to run the statement on
            sql: Statement text
            params: Driver specific parameter values

        Returns:
            List of rows, ``[]`` when the statement returned no data
        """
        pass

    @abstractmethod
    async def execute(
        self,
        client: Any,
        sql: str,
        params: Params = None,
    ) -> int:
        """
        Run a statement and return the number of affected rows.

        Args:
            client: Client to run the statement on
            sql: Statement text
            params: Driver specific parameter values

        Returns:
            Number of rows affected by the statement
        """
        pass

    # ==========================================================================
    # TRANSACTIONS
    # ==========================================================================

    @abstractmethod
    async def start_transaction(self, client: Any, isolation_level: str) -> None:
        """
        Begin a transaction on the client.

        Args:
            client: Client to begin the transaction on
            isolation_level: Driver specific token, passed through untouched
        """
        pass

    # ==========================================================================
    # MIGRATION BOOKKEEPING
    # ==========================================================================

    @abstractmethod
    async def ensure_migrations_table(self, table_name: str) -> None:
        """
        Create the migrations table if it does not exist yet.
        """
        pass

    @abstractmethod
    async def list_executed_migration_names(self, table_name: str) -> List[str]:
        """
        List the migrations already executed.

        Returns:
            Migration names ordered ascending
        """
        pass

    @abstractmethod
    async def log_migration_successful(
        self,
        conn: "Connection",
        table_name: str,
        name: str,
    ) -> None:
        """
        Mark a migration as executed.

        The record must be written through ``conn`` so it shares the
        transaction of the migration itself.
        """
        pass

    @abstractmethod
    def get_migration_transaction_isolation_level(self) -> str:
        """
        Return the isolation level token used while running migrations.
        """
        pass


@runtime_checkable
class DriverLike(Protocol):
    """
    Structural protocol for objects usable as a driver.

    Drivers loaded dynamically do not have to subclass ``BaseDriver``;
    they only need the required methods.
    """

    async def initialize(self, *, logger: Logger) -> None:
        ...

    async def shutdown(self) -> None:
        ...

    async def get_client(self) -> Any:
        ...

    async def release_client(self, client: Any) -> None:
        ...

    async def query(self, client: Any, sql: str, params: Params = None) -> List[Row]:
        ...

    async def execute(self, client: Any, sql: str, params: Params = None) -> int:
        ...

    async def start_transaction(self, client: Any, isolation_level: str) -> None:
        ...

    async def ensure_migrations_table(self, table_name: str) -> None:
        ...

    async def list_executed_migration_names(self, table_name: str) -> List[str]:
        ...

    async def log_migration_successful(
        self, conn: "Connection", table_name: str, name: str
    ) -> None:
        ...

    def get_migration_transaction_isolation_level(self) -> str:
        ...


def missing_driver_methods(driver: Any) -> List[str]:
    """
    List the required driver methods the object does not provide.

    Args:
        driver: Candidate driver object

    Returns:
        Missing method names in contract order, ``[]`` if none
    """
    return [
        name for name in REQUIRED_DRIVER_METHODS
        if not callable(getattr(driver, name, None))
    ]


def ensure_driver(driver: Any) -> DriverLike:
    """
    Validate that an object implements the driver contract.

    The check is structural: it looks for every required callable and
    never relies on type identity.

    Raises:
        InvalidDriverError: Naming every missing capability
    """
    missing = missing_driver_methods(driver)
    if missing:
        raise InvalidDriverError(missing, driver)
    return driver


def isolation_levels_of(driver: Any) -> Dict[str, str]:
    """Copy of the isolation level tokens declared by the driver."""
    return dict(getattr(driver, "tx_isolation_levels", None) or {})


__all__ = [
    "BaseDriver",
    "DriverLike",
    "Row",
    "Params",
    "REQUIRED_DRIVER_METHODS",
    "OPTIONAL_DRIVER_METHODS",
    "missing_driver_methods",
    "ensure_driver",
    "isolation_levels_of",
]
