"""Memory layer interfaces for loregraph.

Each layer is an independent contract: a consumer that only needs the session
log depends on :class:`SessionStore`, one that only needs graph lookups
depends on :class:`KnowledgeGraph`, and so on. Every implementation accepts an
extra keyword-only ``timeout`` argument (seconds) on each operation.
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..models.core import (
    Chunk,
    ChunkResult,
    ContextResult,
    Entity,
    NPCIdentity,
    Relationship,
    TranscriptEntry,
)
from ..models.options import (
    ChunkFilter,
    EntityFilter,
    RelQueryOptions,
    SearchOpts,
    TraversalOptions,
)


class SessionStore(ABC):
    """Interface for the append-only session log (L1)."""

    @abstractmethod
    async def write_entry(self, session_id: str, entry: TranscriptEntry) -> None:
        """Append an entry to a session's log.

        Args:
            session_id: Session the entry belongs to
            entry: Entry to append
        """
        pass

    @abstractmethod
    async def get_recent(self, session_id: str, duration: timedelta) -> List[TranscriptEntry]:
        """Get every entry of a session newer than ``now - duration``, oldest first.

        Args:
            session_id: Session to read
            duration: Size of the look-back window

        Returns:
            List of entries (empty when none match)
        """
        pass

    @abstractmethod
    async def search(self, query: str, opts: Optional[SearchOpts] = None) -> List[TranscriptEntry]:
        """Keyword-search entry text, in chronological order.

        Args:
            query: Query text
            opts: Filters and result cap (optional)

        Returns:
            List of matching entries
        """
        pass

    @abstractmethod
    async def entry_count(self, session_id: str) -> int:
        """Count the entries logged for a session."""
        pass


class SemanticIndex(ABC):
    """Interface for the chunk vector index (L2)."""

    @abstractmethod
    async def index_chunk(self, chunk: Chunk) -> None:
        """Insert or replace a chunk by id."""
        pass

    @abstractmethod
    async def search(
        self,
        embedding: Sequence[float],
        top_k: int,
        filter: Optional[ChunkFilter] = None,
    ) -> List[ChunkResult]:
        """Find the chunks closest to an embedding.

        Args:
            embedding: Query embedding
            top_k: Maximum number of results
            filter: Narrowing filter (optional)

        Returns:
            Results in ascending distance order
        """
        pass

    @abstractmethod
    async def count(self) -> int:
        """Count the indexed chunks."""
        pass


class KnowledgeGraph(ABC):
    """Interface for the entity/relationship graph (L3)."""

    @abstractmethod
    async def add_entity(self, entity: Entity) -> None:
        pass

    @abstractmethod
    async def get_entity(self, entity_id: str) -> Optional[Entity]:
        pass

    @abstractmethod
    async def update_entity(self, entity_id: str, attributes: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def delete_entity(self, entity_id: str) -> None:
        pass

    @abstractmethod
    async def find_entities(self, filter: Optional[EntityFilter] = None) -> List[Entity]:
        pass

    @abstractmethod
    async def add_relationship(self, relationship: Relationship) -> None:
        pass

    @abstractmethod
    async def get_relationships(
        self,
        entity_id: str,
        opts: Optional[RelQueryOptions] = None,
    ) -> List[Relationship]:
        pass

    @abstractmethod
    async def delete_relationship(self, source_id: str, target_id: str, rel_type: str) -> None:
        pass

    @abstractmethod
    async def neighbors(
        self,
        entity_id: str,
        depth: int,
        opts: Optional[TraversalOptions] = None,
    ) -> List[Entity]:
        """Entities reachable from ``entity_id`` within ``depth`` directed hops."""
        pass

    @abstractmethod
    async def find_path(self, from_id: str, to_id: str, max_depth: int) -> List[Entity]:
        """Shortest directed path between two entities, endpoints included."""
        pass

    @abstractmethod
    async def visible_subgraph(self, entity_id: str) -> Tuple[List[Entity], List[Relationship]]:
        """One-hop ego network of an entity, both edge directions."""
        pass

    @abstractmethod
    async def identity_snapshot(self, entity_id: str) -> NPCIdentity:
        """Entity, its relationships in both directions and the resolved peers."""
        pass


class GraphRAGQuerier(KnowledgeGraph):
    """Knowledge graph with entity-anchored passage retrieval."""

    @abstractmethod
    async def query_with_context(
        self,
        query_text: str,
        graph_scope: Optional[Sequence[str]] = None,
    ) -> List[ContextResult]:
        """Full-text ranked passages anchored to entities in scope."""
        pass

    @abstractmethod
    async def query_with_embedding(
        self,
        embedding: Sequence[float],
        top_k: int,
        graph_scope: Optional[Sequence[str]] = None,
    ) -> List[ContextResult]:
        """Vector ranked passages anchored to entities in scope."""
        pass
