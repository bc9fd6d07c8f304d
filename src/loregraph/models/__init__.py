"""Models package for loregraph.

Re-exports the record types, option models and configuration constants.
"""

# Core models and types
from .core import (
    # Session log
    TranscriptEntry,

    # Semantic index
    Chunk,
    ChunkResult,

    # Knowledge graph
    Entity,
    Provenance,
    Relationship,

    # Projections
    NPCIdentity,
    ContextResult,

    # Type definitions
    StoreBackend,
    LayerType,
)

# Query options
from .options import (
    SearchOpts,
    ChunkFilter,
    EntityFilter,
    RelQueryOptions,
    TraversalOptions,
)

# Configuration constants
from .config import (
    DEFAULT_DB_PATH,
    DEFAULT_EMBEDDING_DIM,
    DEFAULT_OPERATION_TIMEOUT,
    DEFAULT_SEARCH_LIMIT,
    DEFAULT_MAX_VISITED,
    DEFAULT_CONTEXT_LIMIT,
)

__all__ = [
    # Core models
    "TranscriptEntry", "Chunk", "ChunkResult", "Entity", "Provenance",
    "Relationship", "NPCIdentity", "ContextResult",

    # Type definitions
    "StoreBackend", "LayerType",

    # Query options
    "SearchOpts", "ChunkFilter", "EntityFilter", "RelQueryOptions",
    "TraversalOptions",

    # Configuration constants
    "DEFAULT_DB_PATH", "DEFAULT_EMBEDDING_DIM", "DEFAULT_OPERATION_TIMEOUT",
    "DEFAULT_SEARCH_LIMIT", "DEFAULT_MAX_VISITED", "DEFAULT_CONTEXT_LIMIT",
]
