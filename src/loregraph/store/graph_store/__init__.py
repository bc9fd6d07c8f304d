"""Graph store implementations for loregraph."""

from .base import GraphStore
from .sqlite_store import SQLiteGraphStore

__all__ = ["GraphStore", "SQLiteGraphStore"]
