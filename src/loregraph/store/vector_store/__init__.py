"""Vector store implementations for loregraph."""

from .sqlite_store import SQLiteVectorStore, chunk_filter_clause, nearest_chunk_ids

__all__ = ["SQLiteVectorStore", "chunk_filter_clause", "nearest_chunk_ids"]
