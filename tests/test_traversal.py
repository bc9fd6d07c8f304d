import pytest

from loregraph.models import Entity, Relationship, TraversalOptions
from loregraph.utils.error_handling import InvalidRequestError, NotFoundError

# a <-> b, a -> c, b -> d, c -> d, d -> e
EDGES = [
    ("a", "b", "KNOWS"),
    ("b", "a", "KNOWS"),
    ("a", "c", "ROAD"),
    ("b", "d", "ROAD"),
    ("c", "d", "ROAD"),
    ("d", "e", "KNOWS"),
]
TYPES = {"a": "npc", "b": "npc", "c": "location", "d": "location", "e": "npc"}


@pytest.fixture
async def world(graph):
    for entity_id, entity_type in TYPES.items():
        await graph.add_entity(Entity(id=entity_id, type=entity_type, name=entity_id.upper()))
    for source, target, rel_type in EDGES:
        await graph.add_relationship(Relationship(source_id=source, target_id=target, rel_type=rel_type))


def ids(entities):
    return [e.id for e in entities]


@pytest.mark.asyncio
async def test_neighbors_grow_by_hop(graph, world) -> None:
    assert ids(await graph.neighbors("a", 1)) == ["b", "c"]
    assert ids(await graph.neighbors("a", 2)) == ["b", "c", "d"]
    assert ids(await graph.neighbors("a", 3)) == ["b", "c", "d", "e"]


@pytest.mark.asyncio
async def test_neighbors_saturate_on_cycles(graph, world) -> None:
    result = await graph.neighbors("a", 50)
    assert ids(result) == ["b", "c", "d", "e"]
    assert "a" not in ids(result)


@pytest.mark.asyncio
async def test_two_node_cycle_returns_peer_once(graph, world) -> None:
    assert ids(await graph.neighbors("b", 2, TraversalOptions(rel_types=["KNOWS"]))) == ["a"]


@pytest.mark.asyncio
async def test_neighbors_depth_zero_and_missing_start(graph, world) -> None:
    assert await graph.neighbors("a", 0) == []
    assert await graph.neighbors("ghost", 3) == []
    assert await graph.neighbors("e", 3) == []


@pytest.mark.asyncio
async def test_neighbors_follow_only_selected_relationship_types(graph, world) -> None:
    assert ids(await graph.neighbors("a", 5, TraversalOptions(rel_types=["ROAD"]))) == ["c", "d"]


@pytest.mark.asyncio
async def test_node_types_restrict_traversal(graph, world) -> None:
    result = await graph.neighbors("a", 3, TraversalOptions(node_types=["npc"]))
    # e is only reachable through the location d, which is never expanded
    assert ids(result) == ["b"]

    result = await graph.neighbors("a", 3, TraversalOptions(node_types=["npc", "location"]))
    assert ids(result) == ["b", "c", "d", "e"]

    assert ids(await graph.neighbors("a", 3, TraversalOptions(node_types=["location"]))) == ["c", "d"]


@pytest.mark.asyncio
async def test_max_nodes_caps_results(graph, world) -> None:
    assert ids(await graph.neighbors("a", 3, TraversalOptions(max_nodes=2))) == ["b", "c"]
    assert ids(await graph.neighbors("a", 3, TraversalOptions(max_nodes=3))) == ["b", "c", "d"]


@pytest.mark.asyncio
async def test_visited_cap_bounds_traversal(graph, world) -> None:
    graph.max_visited = 2

    assert ids(await graph.neighbors("a", 5)) == ["b"]
    assert await graph.find_path("a", "d", 5) == []


@pytest.mark.asyncio
async def test_traversal_rejects_negative_bounds(graph, world) -> None:
    with pytest.raises(InvalidRequestError) as excinfo:
        await graph.neighbors("a", -1)
    assert str(excinfo.value) == "knowledge graph: neighbors [a]: negative depth -1"

    with pytest.raises(InvalidRequestError):
        await graph.neighbors("a", 1, TraversalOptions(max_nodes=-1))
    with pytest.raises(InvalidRequestError):
        await graph.find_path("a", "d", -1)


@pytest.mark.asyncio
async def test_find_path_prefers_smallest_ids(graph, world) -> None:
    assert ids(await graph.find_path("a", "d", 5)) == ["a", "b", "d"]
    assert ids(await graph.find_path("c", "e", 5)) == ["c", "d", "e"]


@pytest.mark.asyncio
async def test_find_path_takes_direct_edge_over_long_route(graph) -> None:
    for entity_id in ("a", "b", "c", "d"):
        await graph.add_entity(Entity(id=entity_id, type="npc", name=entity_id))
    for source, target in (("a", "b"), ("b", "c"), ("c", "d"), ("a", "d")):
        await graph.add_relationship(Relationship(source_id=source, target_id=target, rel_type="KNOWS"))

    assert ids(await graph.find_path("a", "d", 5)) == ["a", "d"]


@pytest.mark.asyncio
async def test_find_path_respects_max_depth(graph, world) -> None:
    assert await graph.find_path("a", "e", 2) == []
    assert ids(await graph.find_path("a", "e", 3)) == ["a", "b", "d", "e"]


@pytest.mark.asyncio
async def test_find_path_to_self(graph, world) -> None:
    assert ids(await graph.find_path("a", "a", 0)) == ["a"]
    assert await graph.find_path("a", "b", 0) == []


@pytest.mark.asyncio
async def test_find_path_is_directed(graph, world) -> None:
    assert await graph.find_path("e", "a", 10) == []
    assert await graph.find_path("a", "ghost", 10) == []


@pytest.mark.asyncio
async def test_find_path_edges_exist(graph, world) -> None:
    path = ids(await graph.find_path("a", "e", 10))
    edges = {(source, target) for source, target, _ in EDGES}
    assert all(step in edges for step in zip(path, path[1:]))


@pytest.mark.asyncio
async def test_visible_subgraph(graph, world) -> None:
    entities, relationships = await graph.visible_subgraph("b")

    assert entities[0].id == "b"
    assert sorted(ids(entities[1:])) == ["a", "d"]
    assert sorted(r.key for r in relationships) == [
        ("a", "b", "KNOWS"),
        ("b", "a", "KNOWS"),
        ("b", "d", "ROAD"),
    ]

    assert await graph.visible_subgraph("ghost") == ([], [])


@pytest.mark.asyncio
async def test_identity_snapshot(graph, world) -> None:
    identity = await graph.identity_snapshot("d")

    assert identity.entity.id == "d"
    assert sorted(r.key for r in identity.relationships) == [
        ("b", "d", "ROAD"),
        ("c", "d", "ROAD"),
        ("d", "e", "KNOWS"),
    ]
    assert sorted(ids(identity.related_entities)) == ["b", "c", "e"]


@pytest.mark.asyncio
async def test_identity_snapshot_of_missing_entity(graph) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        await graph.identity_snapshot("ghost")
    assert str(excinfo.value) == "knowledge graph: identity snapshot [ghost]: entity not found"
