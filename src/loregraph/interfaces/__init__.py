"""Interfaces module for loregraph.

This module contains the layer contracts implemented by the stores and
consumed by callers such as the resilience guard.
"""

from .memory_interface import (
    SessionStore,
    SemanticIndex,
    KnowledgeGraph,
    GraphRAGQuerier,
)

__all__ = [
    "SessionStore",
    "SemanticIndex",
    "KnowledgeGraph",
    "GraphRAGQuerier",
]
