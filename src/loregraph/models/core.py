"""Core model classes and types for loregraph.

This module contains the record types stored by the three memory layers
(transcript entries, embedded chunks, graph entities and relationships) and the
read-only projections built from them (identity snapshots, context results).
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from ..utils.time_utils import ensure_utc, parse_datetime, utc_now


# Type definitions
class StoreBackend(str, Enum):
    """Store backend types."""

    SQLITE = "sqlite"


class LayerType(str, Enum):
    """Memory layers, used to prefix every error message."""

    SESSION = "session store"
    SEMANTIC = "semantic index"
    GRAPH = "knowledge graph"
    GRAPH_RAG = "graph rag"


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return ensure_utc(value).isoformat() if value is not None else None


# L1 records
@dataclass
class TranscriptEntry:
    """A single utterance written to the session log.

    Entries are immutable once written. An entry counts as NPC speech exactly
    when ``npc_id`` is non-empty.
    """
    speaker_id: str = ""
    speaker_name: str = ""
    text: str = ""
    raw_text: str = ""
    npc_id: str = ""
    timestamp: datetime = field(default_factory=utc_now)
    duration: timedelta = field(default_factory=timedelta)

    @property
    def is_npc(self) -> bool:
        return self.npc_id != ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "speaker_id": self.speaker_id,
            "speaker_name": self.speaker_name,
            "text": self.text,
            "raw_text": self.raw_text,
            "npc_id": self.npc_id,
            "is_npc": self.is_npc,
            "timestamp": _format_time(self.timestamp),
            "duration": self.duration.total_seconds(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptEntry":
        return cls(
            speaker_id=data.get("speaker_id", ""),
            speaker_name=data.get("speaker_name", ""),
            text=data.get("text", ""),
            raw_text=data.get("raw_text", ""),
            npc_id=data.get("npc_id", ""),
            timestamp=parse_datetime(data.get("timestamp")) or utc_now(),
            duration=timedelta(seconds=float(data.get("duration") or 0.0)),
        )


# L2 records
@dataclass
class Chunk:
    """A pre-embedded text segment stored in the semantic index."""
    id: str
    session_id: str
    content: str
    embedding: List[float] = field(default_factory=list)
    speaker_id: str = ""
    entity_id: str = ""
    topic: str = ""
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "content": self.content,
            "embedding": [float(v) for v in self.embedding],
            "speaker_id": self.speaker_id,
            "entity_id": self.entity_id,
            "topic": self.topic,
            "timestamp": _format_time(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Chunk":
        return cls(
            id=data["id"],
            session_id=data.get("session_id", ""),
            content=data.get("content", ""),
            embedding=list(data.get("embedding") or []),
            speaker_id=data.get("speaker_id", ""),
            entity_id=data.get("entity_id", ""),
            topic=data.get("topic", ""),
            timestamp=parse_datetime(data.get("timestamp")) or utc_now(),
        )


@dataclass
class ChunkResult:
    """A retrieved chunk and its cosine distance from the query (lower is closer)."""
    chunk: Chunk
    distance: float

    def to_dict(self) -> Dict[str, Any]:
        return {"chunk": self.chunk.to_dict(), "distance": self.distance}


# L3 records
@dataclass
class Entity:
    """A typed, named node in the knowledge graph."""
    id: str
    type: str
    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "attributes": dict(self.attributes),
            "created_at": _format_time(self.created_at),
            "updated_at": _format_time(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entity":
        return cls(
            id=data["id"],
            type=data.get("type", ""),
            name=data.get("name", ""),
            attributes=dict(data.get("attributes") or {}),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
        )


@dataclass
class Provenance:
    """Evidence trail for a relationship.

    The engine stores and returns provenance verbatim; weighting by confidence
    or confirmation is left to consumers.
    """
    session_id: str = ""
    timestamp: Optional[datetime] = None
    confidence: float = 0.0
    source: str = ""
    dm_confirmed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "timestamp": _format_time(self.timestamp),
            "confidence": self.confidence,
            "source": self.source,
            "dm_confirmed": self.dm_confirmed,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Provenance":
        data = data or {}
        return cls(
            session_id=data.get("session_id", ""),
            timestamp=parse_datetime(data.get("timestamp")),
            confidence=float(data.get("confidence") or 0.0),
            source=data.get("source", ""),
            dm_confirmed=bool(data.get("dm_confirmed", False)),
        )


@dataclass
class Relationship:
    """A directed, typed edge keyed by ``(source_id, target_id, rel_type)``."""
    source_id: str
    target_id: str
    rel_type: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    provenance: Provenance = field(default_factory=Provenance)
    created_at: Optional[datetime] = None

    @property
    def key(self) -> tuple:
        return (self.source_id, self.target_id, self.rel_type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_id": self.source_id,
            "target_id": self.target_id,
            "rel_type": self.rel_type,
            "attributes": dict(self.attributes),
            "provenance": self.provenance.to_dict(),
            "created_at": _format_time(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Relationship":
        return cls(
            source_id=data["source_id"],
            target_id=data["target_id"],
            rel_type=data["rel_type"],
            attributes=dict(data.get("attributes") or {}),
            provenance=Provenance.from_dict(data.get("provenance")),
            created_at=parse_datetime(data.get("created_at")),
        )


# Derived projections
@dataclass
class NPCIdentity:
    """One-hop projection of an entity: itself, its edges, and their peers."""
    entity: Entity
    relationships: List[Relationship] = field(default_factory=list)
    related_entities: List[Entity] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity": self.entity.to_dict(),
            "relationships": [r.to_dict() for r in self.relationships],
            "related_entities": [e.to_dict() for e in self.related_entities],
        }


@dataclass
class ContextResult:
    """A text passage anchored to a graph entity.

    ``score`` is higher for better matches; full-text and vector scores share
    the same orientation so callers can mix the two retrieval modes.
    """
    entity: Entity
    content: str
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity": self.entity.to_dict(),
            "content": self.content,
            "score": self.score,
        }
