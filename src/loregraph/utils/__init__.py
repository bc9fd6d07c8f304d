"""Utility functions for loregraph.

Only dependency-free helpers are re-exported here; ``config`` and
``error_handling`` depend on the models package and are imported from their
modules directly.
"""

from .time_utils import (
    utc_now, ensure_utc, to_epoch, from_epoch, to_micros, from_micros,
    duration_to_micros, parse_datetime,
)
from .serialization import convert_numpy_types, dump_json, load_json, json_equal, contains_attributes
from .path_manager import PathManager

__all__ = [
    "utc_now", "ensure_utc", "to_epoch", "from_epoch", "to_micros", "from_micros",
    "duration_to_micros", "parse_datetime",
    "convert_numpy_types", "dump_json", "load_json", "json_equal", "contains_attributes",
    "PathManager",
]
