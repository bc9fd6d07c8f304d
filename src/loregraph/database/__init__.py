"""Database layer for loregraph."""

from .base import DBBase
from .sqlite import SQLiteDB, IN_JSON_EACH, build_match_query, json_array

__all__ = ["DBBase", "SQLiteDB", "IN_JSON_EACH", "build_match_query", "json_array"]
