"""Retrieval implementations for loregraph.

This module provides passage retrieval anchored to knowledge graph entities.
"""

from .graph_rag import SQLiteGraphRAGStore

__all__ = [
    'SQLiteGraphRAGStore',
]
