# ==============================================================================
# DATABASE PACKAGE INITIALIZATION
# ==============================================================================
# Transactional connection lifecycle, retry engine and migrations
# ==============================================================================

"""
Database Module
===============

Key Components:
- Drivers: Contract every backend implements
- Connection: Transaction-aware wrapper around one driver client
- ConnectionManager: Units of work, commit/rollback/release and retry
- MigrationExecutor: Ordered, exactly-once schema migrations
- Database: Handle tying a driver to a manager between initialize/shutdown
"""

from sqldb.database.connection import Connection
from sqldb.database.manager import ConnectionManager
from sqldb.database.migrations import (
    MigrationExecutor,
    MigrationReport,
    DirectoryMigrationSource,
    RegistryMigrationSource,
)
from sqldb.database.database import Database
from sqldb.database.drivers import BaseDriver, SQLiteDriver, ensure_driver

__all__ = [
    "Connection",
    "ConnectionManager",
    "MigrationExecutor",
    "MigrationReport",
    "DirectoryMigrationSource",
    "RegistryMigrationSource",
    "Database",
    "BaseDriver",
    "SQLiteDriver",
    "ensure_driver",
]
