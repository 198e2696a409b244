# ==============================================================================
# CUSTOM EXCEPTIONS - Library Error Hierarchy
# ==============================================================================
# Configuration and migration errors raised by sqldb itself
# Driver errors are never wrapped: they reach the caller unchanged
# ==============================================================================

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence


class SqlDbException(Exception):
    """
    Base exception for all errors raised by sqldb.

    Provides a consistent interface for error handling with:
    - Error code for programmatic identification
    - Detailed message and optional context

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error identifier
        details: Additional context dictionary

    Example:
        >>> raise SqlDbException(
        ...     message="Something went wrong",
        ...     error_code="INTERNAL_ERROR",
        ... )
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary format.

        Returns:
            Dictionary containing error details
        """
        return {
            "code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}')"
        )


# ==============================================================================
# CONFIGURATION EXCEPTIONS
# ==============================================================================

class ConfigurationError(SqlDbException):
    """
    Raised when the library is used incorrectly.

    Configuration errors are detected before any I/O happens:
    - Missing unit of work function
    - Driver missing required capabilities
    - Double initialization or use before initialization
    """

    def __init__(
        self,
        message: str = "Invalid configuration",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details=details,
        )


class InvalidDriverError(ConfigurationError):
    """
    Raised when a driver does not implement the driver contract.

    Attributes:
        missing: Names of the required capabilities that were not found
    """

    def __init__(
        self,
        missing: Sequence[str],
        driver: Any = None,
    ) -> None:
        self.missing: List[str] = list(missing)
        super().__init__(
            message=(
                "Invalid DB driver, the following driver functions are "
                f"not found: {', '.join(self.missing)}"
            ),
            details={
                "missing": self.missing,
                "driver": type(driver).__name__,
            },
        )
        self.error_code = "INVALID_DRIVER"


class AlreadyInitializedError(ConfigurationError):
    """
    Raised when initialize() is called twice without shutdown().
    """

    def __init__(
        self,
        message: str = "DB already initialized",
    ) -> None:
        super().__init__(message=message)
        self.error_code = "ALREADY_INITIALIZED"


class NotInitializedError(ConfigurationError):
    """
    Raised when the database handle is used before initialize().
    """

    def __init__(
        self,
        message: str = "DB not initialized",
    ) -> None:
        super().__init__(message=message)
        self.error_code = "NOT_INITIALIZED"


# ==============================================================================
# MIGRATION EXCEPTIONS
# ==============================================================================

class MigrationError(SqlDbException):
    """
    Raised when a migration unit cannot be loaded.

    The migration executor catches it like any other migration failure,
    so it is only observable through the logs and the migration report.
    """

    def __init__(
        self,
        message: str = "Migration failed",
        migration: Optional[str] = None,
    ) -> None:
        details = {}
        if migration:
            details["migration"] = migration

        super().__init__(
            message=message,
            error_code="MIGRATION_ERROR",
            details=details,
        )
        self.migration = migration
