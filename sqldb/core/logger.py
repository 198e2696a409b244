# =============================================================================
# LOGGER - Injectable Logging Capability
# =============================================================================
# sqldb logs through an injected object exposing trace/debug/info/warn/error.
# The default implementation is backed by the standard logging module.
# =============================================================================

from __future__ import annotations

import logging
import sys
from typing import Any, Optional, Protocol, runtime_checkable

from sqldb.core.settings import settings

# Finer than DEBUG, used for transaction lifecycle chatter
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


@runtime_checkable
class Logger(Protocol):
    """Logging capability accepted by the database handle and the drivers."""

    def trace(self, msg: str, *args: Any) -> None:
        ...

    def debug(self, msg: str, *args: Any) -> None:
        ...

    def info(self, msg: str, *args: Any) -> None:
        ...

    def warn(self, msg: str, *args: Any) -> None:
        ...

    def error(self, msg: str, *args: Any) -> None:
        ...


class StandardLogger:
    """
    Adapt a ``logging.Logger`` to the ``Logger`` capability.

    Messages use ``%``-style arguments, exactly like the standard library.
    ``error`` attaches the traceback when the last argument is an exception.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def trace(self, msg: str, *args: Any) -> None:
        self._logger.log(TRACE, msg, *args)

    def debug(self, msg: str, *args: Any) -> None:
        self._logger.debug(msg, *args)

    def info(self, msg: str, *args: Any) -> None:
        self._logger.info(msg, *args)

    def warn(self, msg: str, *args: Any) -> None:
        self._logger.warning(msg, *args)

    def error(self, msg: str, *args: Any) -> None:
        exc_info = args[-1] if args and isinstance(args[-1], BaseException) else None
        self._logger.error(msg, *args, exc_info=exc_info)


class NoopLogger:
    """Logger that discards everything."""

    def trace(self, msg: str, *args: Any) -> None:
        pass

    def debug(self, msg: str, *args: Any) -> None:
        pass

    def info(self, msg: str, *args: Any) -> None:
        pass

    def warn(self, msg: str, *args: Any) -> None:
        pass

    def error(self, msg: str, *args: Any) -> None:
        pass


def setup_logger(
    name: str = "sqldb",
    level: Optional[str] = None,
    format_string: Optional[str] = None,
) -> StandardLogger:
    """
    Setup and configure the console logger.

    Args:
        name: Logger name
        level: Log level (TRACE, DEBUG, INFO, WARNING, ERROR), defaults to settings
        format_string: Custom format string, defaults to settings

    Returns:
        Configured logger wrapped as a ``StandardLogger``
    """
    logger = logging.getLogger(name)
    level = (level or settings.LOG_LEVEL).upper()
    logger.setLevel(TRACE if level == "TRACE" else getattr(logging, level, logging.INFO))

    # Clear existing handlers
    logger.handlers.clear()

    formatter = logging.Formatter(format_string or settings.LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return StandardLogger(logger)


def get_logger(name: str = "sqldb") -> StandardLogger:
    """
    Get a logger by name, without touching its configuration.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    return StandardLogger(logging.getLogger(name))


# Shared instance used when no logger is given at all
noop_logger = NoopLogger()
