"""loregraph: layered memory and graph retrieval for conversational agents.

Three memory layers share one SQLite database:

- L1, the session log: append-only transcript entries with keyword search
- L2, the semantic index: pre-embedded chunks ranked by cosine distance
- L3, the knowledge graph: typed entities and relationships with traversal,
  plus graph-anchored passage retrieval

Typical use::

    async with MemoryStore("data/campaign.db", embedding_dim=1536) as store:
        await store.graph.add_entity(Entity(id="grimjaw", type="npc", name="Grimjaw"))
        snapshot = await store.graph.identity_snapshot("grimjaw")
"""

from .models import (
    Chunk,
    ChunkFilter,
    ChunkResult,
    ContextResult,
    Entity,
    EntityFilter,
    LayerType,
    NPCIdentity,
    Provenance,
    Relationship,
    RelQueryOptions,
    SearchOpts,
    TranscriptEntry,
    TraversalOptions,
)
from .utils.error_handling import (
    ConstraintError,
    DeadlineExceededError,
    InvalidRequestError,
    MemoryStoreError,
    NotFoundError,
    StorageError,
)
from .store.memory_store import MemoryStore
from .store.factory import StoreFactory
from .services.memory_guard import MemoryGuard

__version__ = "0.1.0"

__all__ = [
    # Records
    "TranscriptEntry", "Chunk", "ChunkResult", "Entity", "Provenance",
    "Relationship", "NPCIdentity", "ContextResult", "LayerType",

    # Options
    "SearchOpts", "ChunkFilter", "EntityFilter", "RelQueryOptions",
    "TraversalOptions",

    # Errors
    "MemoryStoreError", "NotFoundError", "InvalidRequestError",
    "StorageError", "ConstraintError", "DeadlineExceededError",

    # Stores
    "MemoryStore", "StoreFactory", "MemoryGuard",
]
