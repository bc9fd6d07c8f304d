"""SQLite graph store implementation for loregraph.

Entities and relationships live in two tables. Relationships reference both
endpoints with ``ON DELETE CASCADE`` foreign keys, so deleting an entity drops
every edge touching it, and a relationship can only be stored when both of its
endpoints exist.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from ...database.sqlite import IN_JSON_EACH, json_array
from ...models.core import Entity, LayerType, Provenance, Relationship
from ...models.options import EntityFilter, RelQueryOptions
from ...utils.error_handling import NotFoundError, store_operation
from ...utils.serialization import contains_attributes, convert_numpy_types, dump_json, load_json
from ...utils.time_utils import from_micros, to_micros, utc_now
from .base import GraphStore

ENTITY_COLUMNS = "id, type, name, attributes, created_at, updated_at"
RELATIONSHIP_COLUMNS = "source_id, target_id, rel_type, attributes, provenance, created_at"


def row_to_entity(row: Any, prefix: str = "") -> Entity:
    """Build an :class:`Entity` from a row, optionally with prefixed column names."""
    return Entity(
        id=row[f"{prefix}id"],
        type=row[f"{prefix}type"],
        name=row[f"{prefix}name"],
        attributes=load_json(row[f"{prefix}attributes"]),
        created_at=from_micros(row[f"{prefix}created_at"]),
        updated_at=from_micros(row[f"{prefix}updated_at"]),
    )


def row_to_relationship(row: Any) -> Relationship:
    return Relationship(
        source_id=row["source_id"],
        target_id=row["target_id"],
        rel_type=row["rel_type"],
        attributes=load_json(row["attributes"]),
        provenance=Provenance.from_dict(load_json(row["provenance"])),
        created_at=from_micros(row["created_at"]),
    )


class SQLiteGraphStore(GraphStore):
    """Knowledge graph backed by SQLite tables."""

    def _encode(self, operation: str, data: Optional[Dict[str, Any]], key: Optional[str]) -> str:
        try:
            return dump_json(data)
        except (TypeError, ValueError) as e:
            raise self.invalid(operation, f"attributes are not JSON-serializable: {e}", key) from e

    # Entity operations

    @store_operation(LayerType.GRAPH, "add entity", key="entity")
    async def add_entity(self, entity: Entity) -> None:
        """Insert an entity, or replace its type, name and attributes.

        ``created_at`` is kept from the first insert; ``updated_at`` is
        refreshed on every call.

        Args:
            entity: Entity to store
        """
        if entity is None or not entity.id:
            raise self.invalid("add entity", "entity id is required")
        attributes = self._encode("add entity", entity.attributes, entity.id)

        now = to_micros(utc_now())
        created_at = to_micros(entity.created_at) if entity.created_at is not None else now
        await self.run(
            self.db.write,
            f"""
            INSERT INTO entities ({ENTITY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                type = excluded.type,
                name = excluded.name,
                attributes = excluded.attributes,
                updated_at = excluded.updated_at
            """,
            (entity.id, entity.type or "", entity.name or "", attributes, created_at, now),
        )
        logger.debug(f"Stored entity {entity.id} ({entity.type})")

    @store_operation(LayerType.GRAPH, "get entity", key="entity_id")
    async def get_entity(self, entity_id: str) -> Optional[Entity]:
        """Get an entity by id.

        Returns:
            The entity, or None when it does not exist
        """
        row = await self.run(
            self.db.fetch_one, f"SELECT {ENTITY_COLUMNS} FROM entities WHERE id = ?", (entity_id,))
        return row_to_entity(row) if row is not None else None

    def _merge_attributes(self, entity_id: str, attributes: Dict[str, Any]) -> None:
        with self.db.transaction():
            row = self.db.fetch_one("SELECT attributes FROM entities WHERE id = ?", (entity_id,))
            if row is None:
                raise NotFoundError(self.layer, "update entity", "entity not found", entity_id)

            merged = load_json(row["attributes"])
            merged.update(convert_numpy_types(attributes))
            self.db.execute(
                "UPDATE entities SET attributes = ?, updated_at = ? WHERE id = ?",
                (dump_json(merged), to_micros(utc_now()), entity_id),
            )

    @store_operation(LayerType.GRAPH, "update entity", key="entity_id")
    async def update_entity(self, entity_id: str, attributes: Dict[str, Any]) -> None:
        """Shallow-merge ``attributes`` into an entity's attributes.

        Keys absent from ``attributes`` are preserved; keys present are
        overwritten.

        Raises:
            NotFoundError: If the entity does not exist
        """
        if not isinstance(attributes, dict):
            raise self.invalid("update entity", "attributes must be a mapping", entity_id)
        self._encode("update entity", attributes, entity_id)

        await self.run(self._merge_attributes, entity_id, attributes)

    @store_operation(LayerType.GRAPH, "delete entity", key="entity_id")
    async def delete_entity(self, entity_id: str) -> None:
        """Delete an entity and every relationship touching it.

        Deleting a missing entity is not an error.
        """
        deleted = await self.run(self.db.write, "DELETE FROM entities WHERE id = ?", (entity_id,))
        if deleted:
            logger.debug(f"Deleted entity {entity_id}")

    @store_operation(LayerType.GRAPH, "find entities")
    async def find_entities(self, filter: Optional[EntityFilter] = None) -> List[Entity]:
        """Find entities by type, name substring and attribute values.

        Args:
            filter: ``type`` matches exactly, ``name`` is a case-insensitive
                substring, and every ``attribute_query`` pair must be present
                with an equal value (None matches every entity)

        Returns:
            Matching entities ordered by name, then id
        """
        filter = filter or EntityFilter()

        conditions: List[str] = []
        params: List[Any] = []
        if filter.type:
            conditions.append("type = ?")
            params.append(filter.type)
        if filter.name:
            conditions.append("instr(casefold(name), ?) > 0")
            params.append(filter.name.casefold())

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = await self.run(
            self.db.fetch_all, f"SELECT {ENTITY_COLUMNS} FROM entities {where} ORDER BY name, id", params)
        entities = [row_to_entity(row) for row in rows]

        if filter.attribute_query:
            query = convert_numpy_types(filter.attribute_query)
            entities = [e for e in entities if contains_attributes(e.attributes, query)]
        return entities

    # Relationship operations

    @store_operation(LayerType.GRAPH, "add relationship", key="relationship")
    async def add_relationship(self, relationship: Relationship) -> None:
        """Insert a relationship, or replace its attributes and provenance.

        The relationship is keyed by ``(source_id, target_id, rel_type)`` and
        keeps the ``created_at`` of its first insert.

        Raises:
            ConstraintError: If either endpoint does not exist
        """
        if relationship is None or not (relationship.source_id and relationship.target_id and relationship.rel_type):
            raise self.invalid("add relationship", "source_id, target_id and rel_type are required")

        key = f"{relationship.source_id}-[{relationship.rel_type}]->{relationship.target_id}"
        attributes = self._encode("add relationship", relationship.attributes, key)
        provenance = self._encode(
            "add relationship",
            (relationship.provenance or Provenance()).to_dict(),
            key,
        )
        created_at = (
            to_micros(relationship.created_at) if relationship.created_at is not None else to_micros(utc_now())
        )

        await self.run(
            self.db.write,
            f"""
            INSERT INTO relationships ({RELATIONSHIP_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(source_id, target_id, rel_type) DO UPDATE SET
                attributes = excluded.attributes,
                provenance = excluded.provenance
            """,
            (
                relationship.source_id,
                relationship.target_id,
                relationship.rel_type,
                attributes,
                provenance,
                created_at,
            ),
        )
        logger.debug(f"Stored relationship {key}")

    @store_operation(LayerType.GRAPH, "get relationships", key="entity_id")
    async def get_relationships(
        self,
        entity_id: str,
        opts: Optional[RelQueryOptions] = None,
    ) -> List[Relationship]:
        """Get the relationships touching an entity.

        Only outgoing edges are returned unless ``opts.incoming`` is set;
        setting both ``incoming`` and ``outgoing`` returns both directions.

        Args:
            entity_id: Entity whose edges to load
            opts: Direction, type filter and result cap (optional)

        Returns:
            Relationships ordered by creation time
        """
        opts = opts or RelQueryOptions()
        if opts.limit < 0:
            raise self.invalid("get relationships", f"negative limit {opts.limit}", entity_id)

        outgoing = opts.outgoing or not opts.incoming
        return await self._fetch_relationships(
            entity_id,
            outgoing=outgoing,
            incoming=opts.incoming,
            rel_types=opts.rel_types,
            limit=opts.limit,
        )

    @store_operation(LayerType.GRAPH, "delete relationship", key="source_id")
    async def delete_relationship(self, source_id: str, target_id: str, rel_type: str) -> None:
        """Delete a relationship. Deleting a missing relationship is not an error."""
        await self.run(
            self.db.write,
            "DELETE FROM relationships WHERE source_id = ? AND target_id = ? AND rel_type = ?",
            (source_id, target_id, rel_type),
        )

    # Traversal primitives

    async def _fetch_entities(self, entity_ids: Sequence[str]) -> Dict[str, Entity]:
        ids = list(dict.fromkeys(entity_ids))
        if not ids:
            return {}
        rows = await self.run(
            self.db.fetch_all,
            f"SELECT {ENTITY_COLUMNS} FROM entities WHERE id {IN_JSON_EACH}",
            (json_array(ids),),
        )
        return {row["id"]: row_to_entity(row) for row in rows}

    async def _fetch_out_edges(
        self,
        frontier: Sequence[str],
        rel_types: Sequence[str] = (),
    ) -> List[Tuple[str, str]]:
        if not frontier:
            return []

        sql = f"SELECT DISTINCT source_id, target_id FROM relationships WHERE source_id {IN_JSON_EACH}"
        params: List[Any] = [json_array(frontier)]
        if rel_types:
            sql += f" AND rel_type {IN_JSON_EACH}"
            params.append(json_array(rel_types))
        sql += " ORDER BY source_id, target_id"

        rows = await self.run(self.db.fetch_all, sql, params)
        return [(row["source_id"], row["target_id"]) for row in rows]

    async def _fetch_relationships(
        self,
        entity_id: str,
        outgoing: bool = True,
        incoming: bool = False,
        rel_types: Sequence[str] = (),
        limit: int = 0,
    ) -> List[Relationship]:
        directions: List[str] = []
        params: List[Any] = []
        if outgoing:
            directions.append("source_id = ?")
            params.append(entity_id)
        if incoming:
            directions.append("target_id = ?")
            params.append(entity_id)
        if not directions:
            return []

        sql = f"SELECT {RELATIONSHIP_COLUMNS} FROM relationships WHERE ({' OR '.join(directions)})"
        if rel_types:
            sql += f" AND rel_type {IN_JSON_EACH}"
            params.append(json_array(rel_types))
        sql += " ORDER BY created_at, source_id, target_id, rel_type"
        if limit:
            sql += " LIMIT ?"
            params.append(limit)

        rows = await self.run(self.db.fetch_all, sql, params)
        return [row_to_relationship(row) for row in rows]
