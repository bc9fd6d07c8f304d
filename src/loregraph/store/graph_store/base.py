"""Base graph store module for loregraph.

Traversal is implemented once here, as bounded breadth-first search over two
backend primitives: fetching the outgoing edges of a frontier and fetching
entities by id. A global visited set makes every traversal terminate on cyclic
graphs and return each entity at most once; a hard cap on visited nodes bounds
memory on dense graphs.
"""

import asyncio
from abc import abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger

from ...database.sqlite import SQLiteDB
from ...interfaces import KnowledgeGraph
from ...models.core import Entity, LayerType, NPCIdentity, Relationship
from ...models.options import TraversalOptions
from ...utils.config import get_max_visited
from ...utils.error_handling import NotFoundError, store_operation
from ..base import StoreBase


class GraphStore(StoreBase, KnowledgeGraph):
    """Base class for graph store implementations."""

    layer = LayerType.GRAPH

    def __init__(self, db: SQLiteDB, max_visited: Optional[int] = None, **kwargs):
        """Initialize the graph store.

        Args:
            db: Database backend
            max_visited: Hard cap on nodes visited by one traversal (defaults
                to ``knowledge_graph.max_visited``)
            **kwargs: Additional arguments passed to :class:`StoreBase`
        """
        super().__init__(db, **kwargs)
        self.max_visited = get_max_visited() if max_visited is None else int(max_visited)

    @abstractmethod
    async def _fetch_entities(self, entity_ids: Sequence[str]) -> Dict[str, Entity]:
        """Load the entities that exist among ``entity_ids``, keyed by id."""
        pass

    @abstractmethod
    async def _fetch_out_edges(
        self,
        frontier: Sequence[str],
        rel_types: Sequence[str] = (),
    ) -> List[Tuple[str, str]]:
        """Load ``(source_id, target_id)`` for every edge leaving the frontier.

        Args:
            frontier: Source entity ids
            rel_types: Only follow these relationship types (empty = all)

        Returns:
            Edges sorted by source id then target id
        """
        pass

    @abstractmethod
    async def _fetch_relationships(
        self,
        entity_id: str,
        outgoing: bool = True,
        incoming: bool = False,
        rel_types: Sequence[str] = (),
        limit: int = 0,
    ) -> List[Relationship]:
        """Load the relationships touching an entity, oldest first."""
        pass

    async def _peer_view(self, entity_id: str) -> Optional[NPCIdentity]:
        entities = await self._fetch_entities([entity_id])
        if entity_id not in entities:
            return None

        relationships = await self._fetch_relationships(entity_id, outgoing=True, incoming=True)

        # Peers in first-seen order, subject excluded
        peer_ids: List[str] = []
        seen = {entity_id}
        for rel in relationships:
            for peer_id in (rel.source_id, rel.target_id):
                if peer_id not in seen:
                    seen.add(peer_id)
                    peer_ids.append(peer_id)

        peers = await self._fetch_entities(peer_ids)
        return NPCIdentity(
            entity=entities[entity_id],
            relationships=relationships,
            related_entities=[peers[peer_id] for peer_id in peer_ids if peer_id in peers],
        )

    @store_operation(LayerType.GRAPH, "neighbors", key="entity_id")
    async def neighbors(
        self,
        entity_id: str,
        depth: int,
        opts: Optional[TraversalOptions] = None,
    ) -> List[Entity]:
        """Entities reachable from ``entity_id`` within ``depth`` directed hops.

        The start entity is never part of the result. ``opts.rel_types``
        restricts which edges are followed; ``opts.node_types`` restricts which
        entities are returned and expanded, so traversal never passes through an
        entity of another type. Results are ordered by hop distance, then id.

        Args:
            entity_id: Start entity
            depth: Maximum number of hops (0 yields an empty result)
            opts: Traversal options (optional)

        Returns:
            List of entities, each at most once
        """
        if depth < 0:
            raise self.invalid("neighbors", f"negative depth {depth}", entity_id)
        opts = opts or TraversalOptions()
        if opts.max_nodes < 0:
            raise self.invalid("neighbors", f"negative max_nodes {opts.max_nodes}", entity_id)

        if depth == 0:
            return []
        if entity_id not in await self._fetch_entities([entity_id]):
            return []

        node_types = set(opts.node_types)
        visited = {entity_id}
        frontier = [entity_id]
        result: List[Entity] = []

        for hop in range(1, depth + 1):
            edges = await self._fetch_out_edges(frontier, opts.rel_types)
            discovered = sorted({target for _, target in edges if target not in visited})
            if not discovered:
                break

            budget = self.max_visited - len(visited)
            capped = len(discovered) > budget
            if capped:
                logger.warning(
                    f"Traversal from {entity_id} reached the visited-node cap of {self.max_visited} at hop {hop}")
                discovered = discovered[:max(budget, 0)]

            visited.update(discovered)
            entities = await self._fetch_entities(discovered)
            matched = [
                entities[node_id]
                for node_id in discovered
                if node_id in entities and (not node_types or entities[node_id].type in node_types)
            ]
            result.extend(matched)

            if opts.max_nodes and len(result) >= opts.max_nodes:
                return result[:opts.max_nodes]
            if capped:
                break

            frontier = [entity.id for entity in matched]
            # Yield between hops so deadlines and cancellation can interrupt
            await asyncio.sleep(0)

        logger.debug(f"Neighbors of {entity_id} within {depth} hops: {len(result)}")
        return result

    @store_operation(LayerType.GRAPH, "find path", key="from_id")
    async def find_path(self, from_id: str, to_id: str, max_depth: int) -> List[Entity]:
        """Shortest directed path between two entities, endpoints included.

        A path from an entity to itself is that single entity. Otherwise the
        search needs at least one hop of budget; when the endpoints are not
        connected within ``max_depth`` hops the result is empty. Among equally
        short paths the one through the smallest ids wins.

        Args:
            from_id: Start entity
            to_id: Target entity
            max_depth: Maximum number of hops

        Returns:
            Entities along the path, or an empty list
        """
        if max_depth < 0:
            raise self.invalid("find path", f"negative max_depth {max_depth}", from_id)

        endpoints = await self._fetch_entities([from_id, to_id])
        if from_id not in endpoints or to_id not in endpoints:
            return []
        if from_id == to_id:
            return [endpoints[from_id]]

        parents: Dict[str, Optional[str]] = {from_id: None}
        frontier = [from_id]

        for _ in range(max_depth):
            next_frontier: List[str] = []
            for source, target in await self._fetch_out_edges(frontier):
                if target in parents:
                    continue
                if len(parents) >= self.max_visited:
                    logger.warning(f"Path search from {from_id} reached the visited-node cap of {self.max_visited}")
                    return []
                parents[target] = source
                if target == to_id:
                    return await self._resolve_path(parents, to_id)
                next_frontier.append(target)

            if not next_frontier:
                break
            frontier = sorted(next_frontier)
            await asyncio.sleep(0)

        return []

    async def _resolve_path(self, parents: Dict[str, Optional[str]], to_id: str) -> List[Entity]:
        path: List[str] = []
        node: Optional[str] = to_id
        while node is not None:
            path.append(node)
            node = parents[node]
        path.reverse()

        entities = await self._fetch_entities(path)
        return [entities[node_id] for node_id in path if node_id in entities]

    @store_operation(LayerType.GRAPH, "visible subgraph", key="entity_id")
    async def visible_subgraph(self, entity_id: str) -> Tuple[List[Entity], List[Relationship]]:
        """One-hop ego network of an entity, both edge directions included.

        Args:
            entity_id: Center entity

        Returns:
            Tuple of (entities, relationships); the center entity comes first.
            Both lists are empty when the entity does not exist.
        """
        view = await self._peer_view(entity_id)
        if view is None:
            return [], []
        return [view.entity] + view.related_entities, view.relationships

    @store_operation(LayerType.GRAPH, "identity snapshot", key="entity_id")
    async def identity_snapshot(self, entity_id: str) -> NPCIdentity:
        """Entity, its relationships in both directions and the resolved peers.

        Raises:
            NotFoundError: If the entity does not exist
        """
        view = await self._peer_view(entity_id)
        if view is None:
            raise NotFoundError(self.layer, "identity snapshot", "entity not found", entity_id)
        return view
