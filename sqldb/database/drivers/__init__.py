# ==============================================================================
# DATABASE DRIVERS PACKAGE
# ==============================================================================

"""
Database Drivers
================

- BaseDriver: Abstract driver contract
- DriverLike: Structural protocol for duck-typed drivers
- ensure_driver: Runtime validation of the contract
- SQLiteDriver: Reference driver using SQLAlchemy async + aiosqlite
"""

from sqldb.database.drivers.base_driver import (
    BaseDriver,
    DriverLike,
    REQUIRED_DRIVER_METHODS,
    OPTIONAL_DRIVER_METHODS,
    ensure_driver,
    missing_driver_methods,
)
from sqldb.database.drivers.sqlite_driver import SQLiteDriver

__all__ = [
    "BaseDriver",
    "DriverLike",
    "REQUIRED_DRIVER_METHODS",
    "OPTIONAL_DRIVER_METHODS",
    "ensure_driver",
    "missing_driver_methods",
    "SQLiteDriver",
]
