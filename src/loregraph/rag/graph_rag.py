"""Graph-anchored retrieval for loregraph.

This module extends the SQLite knowledge graph with two retrieval modes over
the chunks of the semantic index. Each chunk is anchored to a graph entity via
``chunks.entity_id``; both modes join against the entity table, so chunks
whose anchor entity does not exist are never returned, and both accept a graph
scope restricting the anchor entities considered.

Scores share one orientation (higher is better) so callers can switch between
the modes depending on whether an embedding is available:

- full-text: ``|bm25| / (1 + |bm25|)``, in ``[0, 1)``
- vector: ``1 - cosine_distance``, in ``[-1, 1]``
"""

from typing import Any, List, Optional, Sequence

from loguru import logger

from ..database.sqlite import IN_JSON_EACH, build_match_query, json_array
from ..interfaces import GraphRAGQuerier
from ..models.core import ContextResult, LayerType
from ..store.graph_store.sqlite_store import ENTITY_COLUMNS, SQLiteGraphStore, row_to_entity
from ..store.vector_store.sqlite_store import EMBEDDING_DIM_KEY, nearest_chunk_ids
from ..utils.config import get_context_limit
from ..utils.embeddings import is_finite
from ..utils.error_handling import store_operation

# Anchor entity columns, prefixed to avoid clashing with chunk columns
_ANCHOR_COLUMNS = ", ".join(f"e.{column} AS e_{column}" for column in ENTITY_COLUMNS.split(", "))


def _scope_condition(graph_scope: Optional[Sequence[str]]) -> tuple:
    if not graph_scope:
        return [], []
    return [f"c.entity_id {IN_JSON_EACH}"], [json_array(graph_scope)]


def relevance_score(rank: float) -> float:
    """Map an FTS5 ``bm25()`` rank onto ``[0, 1)``, growing with relevance."""
    magnitude = abs(rank)
    return magnitude / (1.0 + magnitude)


class SQLiteGraphRAGStore(SQLiteGraphStore, GraphRAGQuerier):
    """SQLite knowledge graph with entity-anchored passage retrieval."""

    def __init__(self, db, context_limit: Optional[int] = None, **kwargs):
        """Initialize the store.

        Args:
            db: Database backend (shared with the semantic index)
            context_limit: Result cap for full-text queries (defaults to
                ``graph_rag.context_limit``)
            **kwargs: Additional arguments passed to :class:`SQLiteGraphStore`
        """
        super().__init__(db, **kwargs)
        self.context_limit = get_context_limit() if context_limit is None else int(context_limit)

    def _to_result(self, row: Any, score: float) -> ContextResult:
        return ContextResult(entity=row_to_entity(row, prefix="e_"), content=row["content"], score=score)

    @store_operation(LayerType.GRAPH_RAG, "query with context", key="query_text")
    async def query_with_context(
        self,
        query_text: str,
        graph_scope: Optional[Sequence[str]] = None,
    ) -> List[ContextResult]:
        """Full-text ranked passages anchored to entities in scope.

        Every query word must appear in a passage (stemmed, case-insensitive).

        Args:
            query_text: Free-form query
            graph_scope: Anchor entity ids to consider (empty = all)

        Returns:
            Results ordered from most to least relevant, at most ``context_limit``
        """
        match_query = build_match_query(query_text)
        if not match_query:
            return []

        # bm25() is negative and lower for better matches, so rank ascending
        conditions, params = _scope_condition(graph_scope)
        sql = f"""
            SELECT c.id AS chunk_id, c.content AS content, {_ANCHOR_COLUMNS},
                   bm25(chunks_fts) AS rank
            FROM chunks_fts
            JOIN chunks c ON c.rowid = chunks_fts.rowid
            JOIN entities e ON e.id = c.entity_id
            WHERE chunks_fts MATCH ?
        """
        for condition in conditions:
            sql += f" AND {condition}"
        sql += " ORDER BY rank ASC, c.id ASC LIMIT ?"

        rows = await self.run(self.db.fetch_all, sql, [match_query] + params + [self.context_limit])
        logger.debug(f"Context query '{query_text}' matched {len(rows)} passages")
        return [self._to_result(row, relevance_score(row["rank"])) for row in rows]

    def _nearest_passages(
        self,
        embedding: Sequence[float],
        top_k: int,
        graph_scope: Optional[Sequence[str]],
    ) -> List[ContextResult]:
        conditions, params = _scope_condition(graph_scope)
        ranked = nearest_chunk_ids(
            self.db,
            embedding,
            top_k,
            conditions,
            params,
            join="JOIN entities e ON e.id = c.entity_id",
        )
        if not ranked:
            return []

        rows = self.db.fetch_all(
            f"""
            SELECT c.id AS chunk_id, c.content AS content, {_ANCHOR_COLUMNS}
            FROM chunks c
            JOIN entities e ON e.id = c.entity_id
            WHERE c.id {IN_JSON_EACH}
            """,
            (json_array(chunk_id for chunk_id, _ in ranked),),
        )
        by_id = {row["chunk_id"]: row for row in rows}
        return [
            self._to_result(by_id[chunk_id], 1.0 - distance)
            for chunk_id, distance in ranked
            if chunk_id in by_id
        ]

    @store_operation(LayerType.GRAPH_RAG, "query with embedding")
    async def query_with_embedding(
        self,
        embedding: Sequence[float],
        top_k: int,
        graph_scope: Optional[Sequence[str]] = None,
    ) -> List[ContextResult]:
        """Vector ranked passages anchored to entities in scope.

        Args:
            embedding: Query embedding
            top_k: Maximum number of results (must be positive)
            graph_scope: Anchor entity ids to consider (empty = all)

        Returns:
            Results ordered by descending score (``1 - cosine distance``)
        """
        if top_k <= 0:
            raise self.invalid("query with embedding", f"top_k must be positive, got {top_k}")

        stored_dim = await self.run(self.db.get_meta, EMBEDDING_DIM_KEY)
        if stored_dim is None:
            # No semantic index provisioned, so there is nothing to rank
            return []
        if embedding is None or len(embedding) != int(stored_dim):
            size = 0 if embedding is None else len(embedding)
            raise self.invalid("query with embedding", f"expected embedding of dimension {stored_dim}, got {size}")
        try:
            finite = is_finite(embedding)
        except (TypeError, ValueError):
            finite = False
        if not finite:
            raise self.invalid("query with embedding", "embedding must contain only finite numbers")

        return await self.run(self._nearest_passages, embedding, top_k, graph_scope)
