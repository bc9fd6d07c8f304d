"""Store implementations for loregraph.

``MemoryStore`` and ``StoreFactory`` are imported from their modules
(``loregraph.store.memory_store``, ``loregraph.store.factory``) or from the
top-level package; they depend on the retrieval layer, which in turn builds on
the stores exported here.
"""

# Export main classes
from .base import StoreBase

# Export store implementations
from .graph_store.base import GraphStore
from .graph_store.sqlite_store import SQLiteGraphStore
from .session_store.sqlite_store import SQLiteSessionStore
from .vector_store.sqlite_store import SQLiteVectorStore

__all__ = [
    # Base classes
    'StoreBase',
    'GraphStore',

    # Implementations
    'SQLiteSessionStore',
    'SQLiteVectorStore',
    'SQLiteGraphStore',
]
