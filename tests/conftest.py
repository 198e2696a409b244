# ==============================================================================
# CONFTEST - Pytest Fixtures and Configuration
# ==============================================================================
# Shared fixtures for all tests
# ==============================================================================

from __future__ import annotations

import os
from typing import AsyncGenerator, Callable, List
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

# Set test environment before importing the library
os.environ["SQLDB_RETRY_DELAY_MS"] = "0"
os.environ["SQLDB_LOG_LEVEL"] = "WARNING"

from sqldb import Database, SQLiteDriver  # noqa: E402


# ==============================================================================
# FAKE DRIVER
# ==============================================================================

class FakeDriver:
    """
    Duck-typed driver whose every method is a mock.

    Migration bookkeeping is kept in ``executed`` so migration runs can be
    chained like against a real database.
    """

    tx_isolation_levels = {"READ_COMMITTED": "rc", "SERIALIZABLE": "serializable"}

    def __init__(self) -> None:
        self.client = MagicMock(name="client")
        self.executed: List[str] = []

        self.initialize = AsyncMock()
        self.shutdown = AsyncMock()
        self.get_client = AsyncMock(return_value=self.client)
        self.release_client = AsyncMock()
        self.query = AsyncMock(return_value=[])
        self.execute = AsyncMock(return_value=0)
        self.start_transaction = AsyncMock()
        self.commit_transaction = AsyncMock()
        self.rollback_transaction = AsyncMock()
        self.ensure_migrations_table = AsyncMock()
        self.list_executed_migration_names = AsyncMock(
            side_effect=lambda table_name: sorted(self.executed)
        )
        self.log_migration_successful = AsyncMock(
            side_effect=lambda conn, table_name, name: self.executed.append(name)
        )
        self.get_migration_transaction_isolation_level = MagicMock(
            return_value="serializable"
        )


# ==============================================================================
# DRIVER & DATABASE FIXTURES
# ==============================================================================

@pytest.fixture
def driver() -> FakeDriver:
    """Provide a fresh fake driver."""
    return FakeDriver()


@pytest.fixture
def make_driver() -> Callable[[], FakeDriver]:
    """Factory for additional fake drivers."""
    return FakeDriver


@pytest.fixture
def logger() -> MagicMock:
    """Logger capturing every call."""
    return MagicMock(spec=["trace", "debug", "info", "warn", "error"])


@pytest_asyncio.fixture
async def db(driver: FakeDriver) -> AsyncGenerator[Database, None]:
    """Database handle initialized with the fake driver and no logging."""
    database = Database(retry_delay_ms=0)
    await database.initialize(driver, logger=None)

    yield database

    await database.shutdown()


@pytest_asyncio.fixture
async def sqlite_db() -> AsyncGenerator[Database, None]:
    """Database handle backed by an in-memory SQLite database."""
    database = Database(retry_delay_ms=0)
    await database.initialize(SQLiteDriver.create_for_testing(), logger=None)

    yield database

    await database.shutdown()
