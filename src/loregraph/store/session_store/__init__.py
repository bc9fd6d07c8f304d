"""Session store implementations for loregraph."""

from .sqlite_store import SQLiteSessionStore

__all__ = ["SQLiteSessionStore"]
