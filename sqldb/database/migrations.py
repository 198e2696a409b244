# ==============================================================================
# MIGRATIONS - Discovery & Sequential Execution
# ==============================================================================
# Applies pending migration units once, in name order, each inside its own
# transaction together with its bookkeeping record
# ==============================================================================

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from pathlib import Path
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Union,
    runtime_checkable,
)

from sqldb.core.exceptions import MigrationError
from sqldb.core.logger import Logger, noop_logger
from sqldb.core.settings import settings
from sqldb.utils.helpers import load_module_from_path

# A migration receives a live Connection and runs arbitrary statements on it
MigrationUnit = Callable[[Any], Awaitable[Any]]

# Name of the coroutine function every migration module must define
MIGRATION_ENTRYPOINT = "migrate"


# ==============================================================================
# MIGRATION SOURCES
# ==============================================================================

@runtime_checkable
class MigrationSource(Protocol):
    """Where migration units come from."""

    def list_names(self) -> List[str]:
        ...

    def load(self, name: str) -> MigrationUnit:
        ...


class DirectoryMigrationSource:
    """
    Migration modules stored as ``*.py`` files in one directory.

    Names are the lower-cased file names (``001-initial.py``); files
    starting with an underscore are ignored. Each module must define::

        async def migrate(conn):
            await conn.execute([...])
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)

    def _files(self) -> Dict[str, Path]:
        """
        Map migration names to their files.

        Raises:
            MigrationError: If two file names differ only in case
        """
        files: Dict[str, Path] = {}
        for path in sorted(self.directory.iterdir()):
            if (
                not path.is_file()
                or path.suffix.lower() != ".py"
                or path.name.startswith("_")
            ):
                continue

            name = path.name.lower()
            if name in files:
                raise MigrationError(
                    f"Migration files {files[name].name} and {path.name} "
                    f"share the name <{name}>",
                    migration=name,
                )
            files[name] = path
        return files

    def list_names(self) -> List[str]:
        return sorted(self._files())

    def load(self, name: str) -> MigrationUnit:
        path = self._files().get(name)
        if path is None:
            raise MigrationError(f"Migration <{name}> not found", migration=name)

        try:
            module = load_module_from_path(path, prefix="sqldb_migrations")
        except Exception as e:
            raise MigrationError(
                f"Migration <{name}> could not be loaded: {e}", migration=name
            ) from e

        unit = getattr(module, MIGRATION_ENTRYPOINT, None)
        if not callable(unit):
            raise MigrationError(
                f"Migration <{name}> does not define {MIGRATION_ENTRYPOINT}(conn)",
                migration=name,
            )
        return unit

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self.directory)!r})"


class RegistryMigrationSource:
    """
    Migration units registered in memory, keyed by name.

    Example:
        >>> source = RegistryMigrationSource({"001-users": create_users})
        >>> source.register("002-orders", create_orders)
    """

    def __init__(self, units: Optional[Mapping[str, MigrationUnit]] = None) -> None:
        self._units: Dict[str, MigrationUnit] = dict(units or {})

    def register(self, name: str, unit: MigrationUnit) -> None:
        if not callable(unit):
            raise MigrationError(f"Migration <{name}> is not callable", migration=name)
        self._units[name] = unit

    def list_names(self) -> List[str]:
        return sorted(self._units)

    def load(self, name: str) -> MigrationUnit:
        try:
            return self._units[name]
        except KeyError:
            raise MigrationError(f"Migration <{name}> not found", migration=name) from None


def as_migration_source(
    migrations: Union[str, Path, Mapping[str, MigrationUnit], MigrationSource],
) -> MigrationSource:
    """
    Turn a directory, a mapping or a source object into a source.

    Raises:
        TypeError: For anything else
    """
    if isinstance(migrations, (str, Path)):
        return DirectoryMigrationSource(migrations)
    if isinstance(migrations, Mapping):
        return RegistryMigrationSource(migrations)
    if isinstance(migrations, MigrationSource):
        return migrations
    raise TypeError(f"Unsupported migration source: {migrations!r}")


# ==============================================================================
# MIGRATION EXECUTOR
# ==============================================================================

@dataclass
class MigrationReport:
    """
    Outcome of one migration run.

    Attributes:
        pending: Migrations that were pending when the run started
        applied: Migrations applied by this run, in order
        failed: Name of the migration that aborted the run, if any
        error: Error raised by that migration
    """

    pending: List[str] = field(default_factory=list)
    applied: List[str] = field(default_factory=list)
    failed: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def aborted(self) -> bool:
        return self.failed is not None


class MigrationExecutor:
    """
    Applies pending migrations through a connection manager.

    Run Sequence:
        1. Make sure the bookkeeping table exists
        2. List all known migrations and the executed ones
        3. Apply the pending ones in ascending name order, each in its own
           transaction at the driver's migration isolation level, recording
           it in the same transaction
        4. Stop at the first failing migration; later ones are not tried

    A failing migration never raises out of ``run()``. It is logged and
    reported, and the next run starts again from it.
    """

    def __init__(
        self,
        manager: Any,
        source: Union[str, Path, Mapping[str, MigrationUnit], MigrationSource],
        *,
        table_name: Optional[str] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        """
        Initialize the executor.

        Args:
            manager: ConnectionManager used to run every migration
            source: Directory, mapping or MigrationSource listing migrations
            table_name: Bookkeeping table (defaults to settings)
            logger: Logger (defaults to a no-op logger)
        """
        self._manager = manager
        self._source = as_migration_source(source)
        self._table_name = table_name or settings.MIGRATIONS_TABLE
        self._logger = logger or noop_logger

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def source(self) -> MigrationSource:
        return self._source

    async def list_pending(self) -> List[str]:
        """Names of the migrations not executed yet, ascending."""
        driver = self._manager.get_driver()
        await driver.ensure_migrations_table(self._table_name)

        all_names = sorted(self._source.list_names())
        executed = set(await driver.list_executed_migration_names(self._table_name))
        return [name for name in all_names if name not in executed]

    async def run(self) -> MigrationReport:
        """
        Apply every pending migration.

        Returns:
            Report of the run
        """
        pending = await self.list_pending()
        report = MigrationReport(pending=list(pending))

        if not pending:
            self._logger.info("No migrations to execute")
            return report

        for name in pending:
            self._logger.info("Executing migration <%s>...", name)
            try:
                await self._apply(name)
            except Exception as e:
                self._logger.error("Migration <%s> failed: %s", name, e)
                report.failed = name
                report.error = e
                return report
            report.applied.append(name)

        self._logger.info("Migrations complete.")
        return report

    async def _apply(self, name: str) -> None:
        unit = self._source.load(name)
        driver = self._manager.get_driver()

        async def run_unit(conn: Any) -> None:
            result = unit(conn)
            if inspect.isawaitable(result):
                await result
            await driver.log_migration_successful(conn, self._table_name, name)

        await self._manager.use(
            driver.get_migration_transaction_isolation_level(), run_unit
        )
