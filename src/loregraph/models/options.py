"""Query option models for loregraph.

These are the request-style inputs accepted by the store operations. Every
field is optional; unset fields place no constraint on the result and all
supplied fields are combined with AND. Time windows are half-open:
``after`` is inclusive and ``before`` is exclusive.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# Session store (L1) options
class SearchOpts(BaseModel):
    """Options for full-text search over transcript entries."""
    session_id: str = ""
    speaker_id: str = ""
    after: Optional[datetime] = None
    before: Optional[datetime] = None
    limit: int = 0  # 0 = configured default


# Semantic index (L2) options
class ChunkFilter(BaseModel):
    """Filter applied to a vector search over chunks."""
    session_id: str = ""
    speaker_id: str = ""
    entity_id: str = ""
    entity_ids: List[str] = Field(default_factory=list)  # graph scope, empty = any
    after: Optional[datetime] = None
    before: Optional[datetime] = None


# Knowledge graph (L3) options
class EntityFilter(BaseModel):
    """Predicates for entity lookup."""
    type: str = ""
    name: str = ""  # case-insensitive substring
    attribute_query: Dict[str, Any] = Field(default_factory=dict)


class RelQueryOptions(BaseModel):
    """Options for relationship lookup.

    With neither direction set only outgoing edges are returned.
    """
    rel_types: List[str] = Field(default_factory=list)
    incoming: bool = False
    outgoing: bool = False
    limit: int = 0  # 0 = no cap


class TraversalOptions(BaseModel):
    """Options for breadth-first neighbor expansion."""
    rel_types: List[str] = Field(default_factory=list)
    node_types: List[str] = Field(default_factory=list)
    max_nodes: int = 0  # 0 = bounded only by knowledge_graph.max_visited
