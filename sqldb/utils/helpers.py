# ==============================================================================
# HELPER UTILITIES
# ==============================================================================
# Common utility functions used across the library
# ==============================================================================

from __future__ import annotations

import importlib.util
import re
from datetime import datetime, timezone
from pathlib import Path
from types import ModuleType
from typing import Union


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def utc_timestamp() -> str:
    """Current UTC time as an ISO 8601 string."""
    return utc_now().isoformat()


def module_name_for(path: Union[str, Path], prefix: str = "sqldb_dynamic") -> str:
    """
    Build an importable module name for a file.

    File names such as ``001-initial.py`` are not valid identifiers, so
    every non word character is replaced by an underscore.

    Args:
        path: Python source file
        prefix: Package-like prefix for the generated name

    Returns:
        Module name, e.g. ``sqldb_dynamic._001_initial``
    """
    stem = re.sub(r"\W", "_", Path(path).stem)
    return f"{prefix}._{stem}"


def load_module_from_path(path: Union[str, Path], prefix: str = "sqldb_dynamic") -> ModuleType:
    """
    Import a Python source file that does not live in a package.

    Args:
        path: Python source file
        prefix: Prefix of the generated module name

    Returns:
        Executed module object

    Raises:
        ImportError: If the file cannot be loaded
    """
    path = Path(path)
    spec = importlib.util.spec_from_file_location(module_name_for(path, prefix), path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load module from {path}")

    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module
