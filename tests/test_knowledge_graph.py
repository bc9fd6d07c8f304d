import pytest

from loregraph.models import Entity, EntityFilter, Provenance, Relationship, RelQueryOptions
from loregraph.utils.error_handling import ConstraintError, InvalidRequestError, NotFoundError


@pytest.fixture
async def tavern(graph):
    for entity in (
        Entity(id="grimjaw", type="npc", name="Grimjaw", attributes={"race": "dwarf", "level": 5, "hostile": False}),
        Entity(id="mirela", type="npc", name="Mirela the Bold", attributes={"race": "human", "level": 1}),
        Entity(id="forge", type="location", name="Old Forge"),
        Entity(id="hammer", type="item", name="Grimjaw's Hammer", attributes={"level": True}),
    ):
        await graph.add_entity(entity)

    await graph.add_relationship(Relationship(source_id="grimjaw", target_id="forge", rel_type="LOCATED_AT"))
    await graph.add_relationship(Relationship(source_id="grimjaw", target_id="hammer", rel_type="OWNS"))
    await graph.add_relationship(Relationship(source_id="mirela", target_id="grimjaw", rel_type="KNOWS"))
    await graph.add_relationship(Relationship(source_id="mirela", target_id="forge", rel_type="LOCATED_AT"))


@pytest.mark.asyncio
async def test_add_entity_is_idempotent(graph) -> None:
    entity = Entity(id="grimjaw", type="npc", name="Grimjaw", attributes={"mood": "grumpy"})
    await graph.add_entity(entity)
    first = await graph.get_entity("grimjaw")

    await graph.add_entity(entity)
    second = await graph.get_entity("grimjaw")

    assert (second.type, second.name, second.attributes) == (first.type, first.name, first.attributes)
    assert second.created_at == first.created_at
    assert second.updated_at >= first.updated_at


@pytest.mark.asyncio
async def test_add_entity_replaces_fields(graph) -> None:
    await graph.add_entity(Entity(id="grimjaw", type="npc", name="Grimjaw", attributes={"a": 1}))
    await graph.add_entity(Entity(id="grimjaw", type="npc", name="Grimjaw Ironhand", attributes={"b": 2}))

    entity = await graph.get_entity("grimjaw")
    assert entity.name == "Grimjaw Ironhand"
    assert entity.attributes == {"b": 2}


@pytest.mark.asyncio
async def test_get_missing_entity_returns_none(graph) -> None:
    assert await graph.get_entity("ghost") is None


@pytest.mark.asyncio
async def test_add_entity_requires_id(graph) -> None:
    with pytest.raises(InvalidRequestError):
        await graph.add_entity(Entity(id="", type="npc", name="Nobody"))


@pytest.mark.asyncio
async def test_add_entity_rejects_unserializable_attributes(graph) -> None:
    with pytest.raises(InvalidRequestError):
        await graph.add_entity(Entity(id="odd", type="npc", name="Odd", attributes={"when": object()}))
    assert await graph.get_entity("odd") is None


@pytest.mark.asyncio
async def test_update_entity_merges_shallowly(graph, tavern) -> None:
    await graph.update_entity("grimjaw", {"level": 6, "mood": "wary"})

    entity = await graph.get_entity("grimjaw")
    assert entity.attributes == {"race": "dwarf", "level": 6, "hostile": False, "mood": "wary"}
    assert entity.updated_at >= entity.created_at


@pytest.mark.asyncio
async def test_update_missing_entity_raises_not_found(graph) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        await graph.update_entity("ghost", {"level": 1})

    assert str(excinfo.value) == "knowledge graph: update entity [ghost]: entity not found"
    assert excinfo.value.key == "ghost"


@pytest.mark.asyncio
async def test_delete_entity_cascades_to_relationships(graph, tavern) -> None:
    await graph.delete_entity("grimjaw")

    assert await graph.get_entity("grimjaw") is None
    remaining = await graph.get_relationships("mirela")
    assert [r.target_id for r in remaining] == ["forge"]
    assert await graph.get_relationships("forge", RelQueryOptions(incoming=True)) == remaining


@pytest.mark.asyncio
async def test_delete_entity_is_idempotent(graph) -> None:
    await graph.delete_entity("ghost")
    await graph.delete_entity("ghost")


@pytest.mark.asyncio
async def test_find_entities_by_type_and_name(graph, tavern) -> None:
    npcs = await graph.find_entities(EntityFilter(type="npc"))
    assert [e.id for e in npcs] == ["grimjaw", "mirela"]

    named = await graph.find_entities(EntityFilter(name="GRIMJAW"))
    assert [e.id for e in named] == ["grimjaw", "hammer"]

    both = await graph.find_entities(EntityFilter(type="item", name="hammer"))
    assert [e.id for e in both] == ["hammer"]

    everything = await graph.find_entities()
    assert [e.name for e in everything] == ["Grimjaw", "Grimjaw's Hammer", "Mirela the Bold", "Old Forge"]


@pytest.mark.asyncio
async def test_find_entities_by_attributes(graph, tavern) -> None:
    dwarves = await graph.find_entities(EntityFilter(attribute_query={"race": "dwarf", "level": 5}))
    assert [e.id for e in dwarves] == ["grimjaw"]

    # True is not the number 1
    assert await graph.find_entities(EntityFilter(attribute_query={"level": 1})) == [
        await graph.get_entity("mirela")
    ]
    assert [e.id for e in await graph.find_entities(EntityFilter(attribute_query={"level": True}))] == ["hammer"]
    assert await graph.find_entities(EntityFilter(attribute_query={"hostile": 0})) == []


@pytest.mark.asyncio
async def test_relationship_requires_existing_endpoints(graph, tavern) -> None:
    with pytest.raises(ConstraintError) as excinfo:
        await graph.add_relationship(Relationship(source_id="grimjaw", target_id="ghost", rel_type="HAUNTS"))

    assert str(excinfo.value).startswith("knowledge graph: add relationship [grimjaw-[HAUNTS]->ghost]:")
    assert await graph.get_relationships("grimjaw", RelQueryOptions(rel_types=["HAUNTS"])) == []


@pytest.mark.asyncio
async def test_relationship_requires_key_fields(graph, tavern) -> None:
    with pytest.raises(InvalidRequestError):
        await graph.add_relationship(Relationship(source_id="grimjaw", target_id="forge", rel_type=""))


@pytest.mark.asyncio
async def test_relationship_upsert_keeps_created_at(graph, tavern) -> None:
    [before] = await graph.get_relationships("grimjaw", RelQueryOptions(rel_types=["LOCATED_AT"]))

    await graph.add_relationship(
        Relationship(
            source_id="grimjaw",
            target_id="forge",
            rel_type="LOCATED_AT",
            attributes={"since": "dawn"},
            provenance=Provenance(session_id="s1", confidence=0.8, source="observed", dm_confirmed=True),
        )
    )

    [after] = await graph.get_relationships("grimjaw", RelQueryOptions(rel_types=["LOCATED_AT"]))
    assert after.created_at == before.created_at
    assert after.attributes == {"since": "dawn"}
    assert after.provenance.dm_confirmed is True
    assert after.provenance.confidence == pytest.approx(0.8)


@pytest.mark.asyncio
async def test_get_relationships_directions(graph, tavern) -> None:
    def keys(rels):
        return sorted(r.key for r in rels)

    default = await graph.get_relationships("grimjaw")
    assert keys(default) == [("grimjaw", "forge", "LOCATED_AT"), ("grimjaw", "hammer", "OWNS")]

    assert keys(await graph.get_relationships("grimjaw", RelQueryOptions(outgoing=True))) == keys(default)

    inbound = await graph.get_relationships("grimjaw", RelQueryOptions(incoming=True))
    assert keys(inbound) == [("mirela", "grimjaw", "KNOWS")]

    both = await graph.get_relationships("grimjaw", RelQueryOptions(incoming=True, outgoing=True))
    assert keys(both) == keys(default + inbound)


@pytest.mark.asyncio
async def test_get_relationships_type_filter_and_limit(graph, tavern) -> None:
    owns = await graph.get_relationships("grimjaw", RelQueryOptions(rel_types=["OWNS"]))
    assert [r.target_id for r in owns] == ["hammer"]

    limited = await graph.get_relationships("grimjaw", RelQueryOptions(limit=1))
    assert len(limited) == 1

    with pytest.raises(InvalidRequestError):
        await graph.get_relationships("grimjaw", RelQueryOptions(limit=-1))


@pytest.mark.asyncio
async def test_get_relationships_of_unknown_entity_is_empty(graph) -> None:
    assert await graph.get_relationships("ghost") == []


@pytest.mark.asyncio
async def test_delete_relationship_is_idempotent(graph, tavern) -> None:
    await graph.delete_relationship("grimjaw", "hammer", "OWNS")
    await graph.delete_relationship("grimjaw", "hammer", "OWNS")

    assert [r.target_id for r in await graph.get_relationships("grimjaw")] == ["forge"]
    assert await graph.get_entity("hammer") is not None
