import pytest

from conftest import NOW
from loregraph.models import Chunk, Entity
from loregraph.utils.error_handling import InvalidRequestError


@pytest.fixture
async def lore(memory_store):
    graph, index = memory_store.graph, memory_store.l2
    await graph.add_entity(Entity(id="grimjaw", type="npc", name="Grimjaw"))
    await graph.add_entity(Entity(id="mirela", type="npc", name="Mirela"))
    await graph.add_entity(Entity(id="forge", type="location", name="Old Forge"))

    chunks = [
        ("c1", "grimjaw", "The dragon attacked the forge at dawn.", [1, 0, 0, 0]),
        ("c2", "mirela", "Mirela saw a dragon circling over the hills.", [0, 1, 0, 0]),
        ("c3", "nobody", "A dragon story told by a stranger.", [1, 0, 0, 0]),
        ("c4", "forge", "Dragons once nested in the forge chimney, dragons everywhere.", [0, 0, 1, 0]),
        ("c5", "grimjaw", "Grimjaw sharpens his axe.", [0, 0, 0, 1]),
    ]
    for chunk_id, entity_id, content, embedding in chunks:
        await index.index_chunk(
            Chunk(id=chunk_id, session_id="s1", content=content, embedding=embedding, entity_id=entity_id, timestamp=NOW)
        )
    return graph


@pytest.mark.asyncio
async def test_context_query_skips_orphan_chunks(lore) -> None:
    results = await lore.query_with_context("dragon")

    assert sorted(r.entity.id for r in results) == ["forge", "grimjaw", "mirela"]
    assert all("stranger" not in r.content for r in results)


@pytest.mark.asyncio
async def test_context_scores_are_ordered_and_bounded(lore) -> None:
    results = await lore.query_with_context("dragon")
    scores = [r.score for r in results]

    assert scores == sorted(scores, reverse=True)
    assert all(0.0 < score < 1.0 for score in scores)


@pytest.mark.asyncio
async def test_context_query_respects_graph_scope(lore) -> None:
    results = await lore.query_with_context("dragon", graph_scope=["grimjaw"])

    assert [r.content for r in results] == ["The dragon attacked the forge at dawn."]
    assert results[0].entity.name == "Grimjaw"


@pytest.mark.asyncio
async def test_context_query_requires_every_word(lore) -> None:
    results = await lore.query_with_context("dragon forge")
    assert sorted(r.entity.id for r in results) == ["forge", "grimjaw"]


@pytest.mark.asyncio
async def test_context_query_caps_results(lore) -> None:
    lore.context_limit = 1
    assert len(await lore.query_with_context("dragon")) == 1


@pytest.mark.asyncio
async def test_context_query_without_matches(lore) -> None:
    assert await lore.query_with_context("zeppelin") == []
    assert await lore.query_with_context("...") == []
    assert await lore.query_with_context("dragon", graph_scope=["ghost"]) == []


@pytest.mark.asyncio
async def test_embedding_query_scores_by_similarity(lore) -> None:
    results = await lore.query_with_embedding([1, 0, 0, 0], top_k=3)

    assert [r.entity.id for r in results] == ["grimjaw", "mirela", "forge"]
    assert results[0].score == pytest.approx(1.0, abs=1e-6)
    assert results[1].score == pytest.approx(0.0, abs=1e-6)
    assert results[0].content == "The dragon attacked the forge at dawn."


@pytest.mark.asyncio
async def test_embedding_query_top_k_and_scope(lore) -> None:
    assert [r.entity.id for r in await lore.query_with_embedding([1, 0, 0, 0], top_k=1)] == ["grimjaw"]

    scoped = await lore.query_with_embedding([0, 0, 1, 0], top_k=5, graph_scope=["mirela", "forge"])
    assert [r.entity.id for r in scoped] == ["forge", "mirela"]


@pytest.mark.asyncio
async def test_embedding_query_validates_input(lore) -> None:
    with pytest.raises(InvalidRequestError):
        await lore.query_with_embedding([1, 0, 0, 0], top_k=0)
    with pytest.raises(InvalidRequestError) as excinfo:
        await lore.query_with_embedding([1, 0], top_k=1)
    assert str(excinfo.value).startswith("graph rag: query with embedding:")


@pytest.mark.asyncio
async def test_embedding_query_on_empty_index(graph) -> None:
    assert await graph.query_with_embedding([1, 0, 0, 0], top_k=5) == []


async def index_passages(memory_store, passages):
    graph, index = memory_store.graph, memory_store.l2
    for entity_id in sorted({entity_id for _, entity_id, _, _ in passages}):
        await graph.add_entity(Entity(id=entity_id, type="npc", name=entity_id.title()))
    for chunk_id, entity_id, content, embedding in passages:
        await index.index_chunk(
            Chunk(id=chunk_id, session_id="s1", content=content, embedding=embedding, entity_id=entity_id, timestamp=NOW)
        )
    return graph


@pytest.mark.asyncio
async def test_context_query_ranks_stronger_match_first(memory_store) -> None:
    passages = [
        ("a-weak", "mirela",
         "Mirela walked the long road past the mill, the river, the old chapel and the market "
         "square, and somewhere far behind the hills she thought she heard a dragon.",
         [0, 1, 0, 0]),
        ("b-strong", "forge", "dragon dragon dragon dragon attack", [0, 0, 1, 0]),
    ]
    passages += [
        (f"filler{i}", "grimjaw", f"Grimjaw counts barrel number {i} in the cellar.", [0, 0, 0, 1])
        for i in range(8)
    ]
    graph = await index_passages(memory_store, passages)

    results = await graph.query_with_context("dragon")

    assert [r.entity.id for r in results] == ["forge", "mirela"]
    assert results[0].score > results[1].score > 0.0
    assert results[0].score < 1.0


@pytest.mark.asyncio
async def test_embedding_query_ranks_closer_vector_first(memory_store) -> None:
    graph = await index_passages(memory_store, [
        ("a-far", "forge", "The forge glows.", [0.1, 0.9, 0, 0]),
        ("b-near", "mirela", "Mirela hums by the well.", [0.9, 0.1, 0, 0]),
        ("c-opposite", "grimjaw", "Grimjaw sleeps.", [-1, 0, 0, 0]),
    ])

    results = await graph.query_with_embedding([1, 0, 0, 0], top_k=3)

    assert [r.entity.id for r in results] == ["mirela", "forge", "grimjaw"]
    assert results[0].score > results[1].score > results[2].score
    assert results[2].score == pytest.approx(-1.0, abs=1e-6)
