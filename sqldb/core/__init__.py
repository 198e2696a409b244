# ==============================================================================
# CORE PACKAGE INITIALIZATION
# ==============================================================================
# Core utilities: Settings, Exceptions, Logging
# ==============================================================================

"""
Core Module
===========

Contains core utilities and configurations for the library:
- settings: Environment configuration management
- exceptions: Custom exception classes
- logger: Injectable logging capability
"""

from sqldb.core.settings import settings, get_settings
from sqldb.core.exceptions import (
    SqlDbException,
    ConfigurationError,
    InvalidDriverError,
    AlreadyInitializedError,
    NotInitializedError,
    MigrationError,
)
from sqldb.core.logger import (
    Logger,
    StandardLogger,
    NoopLogger,
    setup_logger,
    get_logger,
)

__all__ = [
    "settings",
    "get_settings",
    "SqlDbException",
    "ConfigurationError",
    "InvalidDriverError",
    "AlreadyInitializedError",
    "NotInitializedError",
    "MigrationError",
    "Logger",
    "StandardLogger",
    "NoopLogger",
    "setup_logger",
    "get_logger",
]
