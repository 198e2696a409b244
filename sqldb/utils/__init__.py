from sqldb.utils.helpers import (
    utc_now,
    utc_timestamp,
    module_name_for,
    load_module_from_path,
)

__all__ = [
    "utc_now",
    "utc_timestamp",
    "module_name_for",
    "load_module_from_path",
]
