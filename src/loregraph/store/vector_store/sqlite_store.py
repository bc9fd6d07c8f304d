"""SQLite vector store implementation for loregraph.

Chunks are stored with their embeddings as float32 blobs and ranked by exact
cosine distance computed with NumPy. The embedding dimension is fixed when the
index is first provisioned and recorded in the database.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from ...database.sqlite import IN_JSON_EACH, SQLiteDB, json_array
from ...interfaces import SemanticIndex
from ...models.core import Chunk, ChunkResult, LayerType
from ...models.options import ChunkFilter
from ...utils.config import get_embedding_dim
from ...utils.embeddings import (
    blob_to_embedding,
    blobs_to_matrix,
    cosine_distances,
    embedding_to_blob,
    is_finite,
    rank_by_distance,
)
from ...utils.error_handling import store_operation
from ...utils.time_utils import from_micros, to_micros
from ..base import StoreBase

EMBEDDING_DIM_KEY = "embedding_dim"


def chunk_filter_clause(filter: Optional[ChunkFilter], alias: str = "c") -> Tuple[List[str], List[Any]]:
    """Translate a chunk filter into SQL conditions.

    Args:
        filter: Filter to translate (None matches everything)
        alias: Table alias of the chunks table

    Returns:
        Tuple of (conditions, params)
    """
    conditions: List[str] = []
    params: List[Any] = []
    if filter is None:
        return conditions, params

    if filter.session_id:
        conditions.append(f"{alias}.session_id = ?")
        params.append(filter.session_id)
    if filter.speaker_id:
        conditions.append(f"{alias}.speaker_id = ?")
        params.append(filter.speaker_id)
    if filter.entity_id:
        conditions.append(f"{alias}.entity_id = ?")
        params.append(filter.entity_id)
    if filter.entity_ids:
        conditions.append(f"{alias}.entity_id {IN_JSON_EACH}")
        params.append(json_array(filter.entity_ids))
    if filter.after is not None:
        conditions.append(f"{alias}.timestamp >= ?")
        params.append(to_micros(filter.after))
    if filter.before is not None:
        conditions.append(f"{alias}.timestamp < ?")
        params.append(to_micros(filter.before))

    return conditions, params


def nearest_chunk_ids(
    db: SQLiteDB,
    embedding: Sequence[float],
    top_k: int,
    conditions: Sequence[str] = (),
    params: Sequence[Any] = (),
    join: str = "",
) -> List[Tuple[str, float]]:
    """Rank stored chunks by cosine distance to an embedding.

    Args:
        db: Database backend
        embedding: Query embedding (already validated)
        top_k: Maximum number of results
        conditions: SQL conditions over the ``c`` alias (ANDed)
        params: Parameters for ``join`` and ``conditions``, in order
        join: Extra JOIN clause

    Returns:
        List of (chunk id, distance), closest first, ties broken by id
    """
    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    rows = db.fetch_all(f"SELECT c.id, c.embedding FROM chunks c {join} {where}", params)
    if not rows:
        return []

    ids = [row["id"] for row in rows]
    matrix = blobs_to_matrix([row["embedding"] for row in rows], len(embedding))
    distances = cosine_distances(embedding, matrix)
    return [(ids[i], float(distances[i])) for i in rank_by_distance(ids, distances, top_k)]


def row_to_chunk(row: Any) -> Chunk:
    """Build a :class:`Chunk` from a ``chunks`` row."""
    return Chunk(
        id=row["id"],
        session_id=row["session_id"],
        content=row["content"],
        embedding=blob_to_embedding(row["embedding"]),
        speaker_id=row["speaker_id"],
        entity_id=row["entity_id"],
        topic=row["topic"],
        timestamp=from_micros(row["timestamp"]),
    )


class SQLiteVectorStore(StoreBase, SemanticIndex):
    """Semantic index over pre-embedded chunks."""

    layer = LayerType.SEMANTIC

    def __init__(self, db: SQLiteDB, embedding_dim: Optional[int] = None, **kwargs):
        """Initialize the vector store.

        Args:
            db: Database backend
            embedding_dim: Dimension of every stored embedding (defaults to
                ``store.embedding_dim``)
            **kwargs: Additional arguments passed to :class:`StoreBase`
        """
        super().__init__(db, **kwargs)
        self.embedding_dim = get_embedding_dim() if embedding_dim is None else int(embedding_dim)

    async def initialize(self) -> bool:
        """Create the schema and provision or verify the embedding dimension.

        Returns:
            True if successful

        Raises:
            InvalidRequestError: If the index was provisioned with a different dimension
        """
        if self.embedding_dim <= 0:
            raise self.invalid("initialize", f"embedding dimension must be positive, got {self.embedding_dim}")

        self.db.create_tables()
        stored = self.db.get_meta(EMBEDDING_DIM_KEY)
        if stored is None:
            self.db.set_meta(EMBEDDING_DIM_KEY, str(self.embedding_dim))
            logger.info(f"Semantic index provisioned with dimension {self.embedding_dim}")
        elif int(stored) != self.embedding_dim:
            raise self.invalid(
                "initialize",
                f"index was provisioned with dimension {stored}, configured dimension is {self.embedding_dim}",
            )

        self.initialized = True
        return True

    def validate_embedding(self, operation: str, embedding: Sequence[float], key: Optional[str] = None):
        """Reject embeddings of the wrong dimension or with non-finite components.

        Raises:
            InvalidRequestError: If the embedding is unusable
        """
        if embedding is None or len(embedding) != self.embedding_dim:
            size = 0 if embedding is None else len(embedding)
            raise self.invalid(operation, f"expected embedding of dimension {self.embedding_dim}, got {size}", key)
        try:
            finite = is_finite(embedding)
        except (TypeError, ValueError):
            finite = False
        if not finite:
            raise self.invalid(operation, "embedding must contain only finite numbers", key)

    def _upsert_chunk(self, chunk: Chunk) -> None:
        with self.db.transaction():
            self.db.execute(
                """
                INSERT INTO chunks (id, session_id, content, embedding, speaker_id, entity_id, topic, timestamp)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    session_id = excluded.session_id,
                    content = excluded.content,
                    embedding = excluded.embedding,
                    speaker_id = excluded.speaker_id,
                    entity_id = excluded.entity_id,
                    topic = excluded.topic,
                    timestamp = excluded.timestamp
                """,
                (
                    chunk.id,
                    chunk.session_id or "",
                    chunk.content or "",
                    embedding_to_blob(chunk.embedding),
                    chunk.speaker_id or "",
                    chunk.entity_id or "",
                    chunk.topic or "",
                    to_micros(chunk.timestamp),
                ),
            )
            rowid = self.db.fetch_one("SELECT rowid FROM chunks WHERE id = ?", (chunk.id,))[0]
            self.db.execute("DELETE FROM chunks_fts WHERE rowid = ?", (rowid,))
            self.db.execute(
                "INSERT INTO chunks_fts (rowid, content) VALUES (?, ?)",
                (rowid, chunk.content or ""),
            )

    @store_operation(LayerType.SEMANTIC, "index chunk", key="chunk")
    async def index_chunk(self, chunk: Chunk) -> None:
        """Insert or replace a chunk by id.

        Args:
            chunk: Chunk to store; its embedding must match the index dimension
        """
        if chunk is None or not chunk.id:
            raise self.invalid("index chunk", "chunk id is required")
        self.validate_embedding("index chunk", chunk.embedding, chunk.id)

        await self.run(self._upsert_chunk, chunk)
        logger.debug(f"Indexed chunk {chunk.id}")

    def _nearest_chunks(
        self,
        embedding: Sequence[float],
        top_k: int,
        filter: Optional[ChunkFilter],
    ) -> List[ChunkResult]:
        conditions, params = chunk_filter_clause(filter)
        ranked = nearest_chunk_ids(self.db, embedding, top_k, conditions, params)
        if not ranked:
            return []

        rows = self.db.fetch_all(
            f"SELECT * FROM chunks WHERE id {IN_JSON_EACH}",
            (json_array(chunk_id for chunk_id, _ in ranked),),
        )
        chunks: Dict[str, Chunk] = {row["id"]: row_to_chunk(row) for row in rows}
        return [ChunkResult(chunk=chunks[chunk_id], distance=distance) for chunk_id, distance in ranked]

    @store_operation(LayerType.SEMANTIC, "search")
    async def search(
        self,
        embedding: Sequence[float],
        top_k: int,
        filter: Optional[ChunkFilter] = None,
    ) -> List[ChunkResult]:
        """Find the chunks closest to an embedding.

        Args:
            embedding: Query embedding
            top_k: Maximum number of results (must be positive)
            filter: Session, speaker, entity and ``[after, before)`` filters

        Returns:
            Results in ascending cosine distance, ties broken by chunk id
        """
        if top_k <= 0:
            raise self.invalid("search", f"top_k must be positive, got {top_k}")
        self.validate_embedding("search", embedding)

        return await self.run(self._nearest_chunks, embedding, top_k, filter)

    @store_operation(LayerType.SEMANTIC, "count")
    async def count(self) -> int:
        """Count the indexed chunks."""
        row = await self.run(self.db.fetch_one, "SELECT COUNT(*) AS n FROM chunks")
        return int(row["n"])
