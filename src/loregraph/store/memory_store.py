"""Layered memory store for loregraph.

Bundles the three memory layers and the hybrid retrieval over one shared
SQLite connection:

- ``l1``: session log (:class:`SQLiteSessionStore`)
- ``l2``: semantic index (:class:`SQLiteVectorStore`)
- ``graph``: knowledge graph with graph RAG (:class:`SQLiteGraphRAGStore`)
"""

import sqlite3
from datetime import datetime
from typing import Callable, Optional

from loguru import logger

from ..database.sqlite import SQLiteDB
from ..rag.graph_rag import SQLiteGraphRAGStore
from ..utils.error_handling import StorageError
from ..utils.time_utils import utc_now
from .session_store.sqlite_store import SQLiteSessionStore
from .vector_store.sqlite_store import SQLiteVectorStore


class MemoryStore:
    """All memory layers of one database."""

    def __init__(
        self,
        db_path: str,
        embedding_dim: Optional[int] = None,
        operation_timeout: Optional[float] = None,
        search_limit: Optional[int] = None,
        max_visited: Optional[int] = None,
        context_limit: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the memory store.

        Unset arguments fall back to the loaded configuration.

        Args:
            db_path: SQLite database file (or ``:memory:``)
            embedding_dim: Dimension of the semantic index
            operation_timeout: Default per-operation deadline in seconds
            search_limit: Default session search cap
            max_visited: Hard cap on nodes visited per traversal
            context_limit: Result cap for full-text graph RAG queries
            clock: Source of "now" for session recency windows
        """
        self.db_path = db_path
        self.db = SQLiteDB(db_path)
        self.l1 = SQLiteSessionStore(
            self.db, search_limit=search_limit, clock=clock, operation_timeout=operation_timeout)
        self.l2 = SQLiteVectorStore(
            self.db, embedding_dim=embedding_dim, operation_timeout=operation_timeout)
        self.graph = SQLiteGraphRAGStore(
            self.db, max_visited=max_visited, context_limit=context_limit,
            operation_timeout=operation_timeout)
        self.initialized = False

    async def initialize(self) -> bool:
        """Create the schema and provision every layer.

        Returns:
            True if successful
        """
        if self.initialized:
            return True

        for store in (self.l1, self.l2, self.graph):
            try:
                await store.ensure_initialized()
            except sqlite3.Error as e:
                logger.error(f"Failed to initialize {store.layer.value} at {self.db_path}: {e}")
                raise StorageError(store.layer, "initialize", str(e), self.db_path) from e

        self.initialized = True
        logger.info(f"Memory store ready at {self.db_path}")
        return True

    async def close(self) -> None:
        """Release the shared connection."""
        self.db.close()
        self.initialized = False

    async def __aenter__(self) -> "MemoryStore":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
