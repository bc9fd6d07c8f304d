import asyncio
import sqlite3
import time

import pytest

from loregraph.models import Entity, EntityFilter, LayerType, Relationship
from loregraph.utils.error_handling import (
    ConstraintError,
    DeadlineExceededError,
    InvalidRequestError,
    MemoryStoreError,
    NotFoundError,
    StorageError,
    describe_key,
    store_operation,
)


class StubStore:
    """Minimal store exposing the attributes the decorator relies on."""

    def __init__(self, operation_timeout: float = 0.0):
        self.operation_timeout = operation_timeout
        self.init_calls = 0
        self.aborted = []

    async def ensure_initialized(self) -> bool:
        self.init_calls += 1
        return True

    def abort(self, handle) -> None:
        self.aborted.append(handle)

    @store_operation(LayerType.SESSION, "sleep", key="name")
    async def sleep(self, name: str, seconds: float) -> str:
        await asyncio.sleep(seconds)
        return name

    @store_operation(LayerType.GRAPH, "fail", key="record")
    async def fail(self, record, error: Exception) -> None:
        raise error


def test_message_format() -> None:
    error = NotFoundError(LayerType.GRAPH, "update entity", "entity not found", "grimjaw")
    assert str(error) == "knowledge graph: update entity [grimjaw]: entity not found"
    assert (error.layer, error.operation, error.key) == (LayerType.GRAPH, "update entity", "grimjaw")

    keyless = InvalidRequestError(LayerType.SEMANTIC, "search", "top_k must be positive, got 0")
    assert str(keyless) == "semantic index: search: top_k must be positive, got 0"


def test_error_hierarchy() -> None:
    assert issubclass(ConstraintError, StorageError)
    for error_type in (NotFoundError, InvalidRequestError, StorageError, DeadlineExceededError):
        assert issubclass(error_type, MemoryStoreError)


def test_describe_key() -> None:
    assert describe_key(None) is None
    assert describe_key("") is None
    assert describe_key("s1") == "s1"
    assert describe_key(Entity(id="grimjaw", type="npc", name="Grimjaw")) == "grimjaw"
    assert describe_key(Relationship(source_id="a", target_id="b", rel_type="KNOWS")) == "a-[KNOWS]->b"


@pytest.mark.asyncio
async def test_operation_returns_value_and_initializes() -> None:
    store = StubStore()
    assert await store.sleep("fast", 0) == "fast"
    assert store.init_calls == 1


@pytest.mark.asyncio
async def test_default_deadline_applies() -> None:
    store = StubStore(operation_timeout=0.01)

    with pytest.raises(DeadlineExceededError) as excinfo:
        await store.sleep("slow", 1)

    assert str(excinfo.value).startswith("session store: sleep [slow]: deadline of 0.01s exceeded")
    assert [handle.operation for handle in store.aborted] == ["sleep"]


@pytest.mark.asyncio
async def test_per_call_timeout_overrides_default() -> None:
    store = StubStore(operation_timeout=0.01)
    assert await store.sleep("patient", 0.05, timeout=0) == "patient"

    with pytest.raises(DeadlineExceededError):
        await StubStore().sleep("hurried", 1, timeout=0.01)


@pytest.mark.asyncio
async def test_integrity_errors_become_constraint_errors() -> None:
    with pytest.raises(ConstraintError) as excinfo:
        await StubStore().fail(
            Relationship(source_id="a", target_id="ghost", rel_type="KNOWS"),
            sqlite3.IntegrityError("FOREIGN KEY constraint failed"),
        )

    assert str(excinfo.value) == "knowledge graph: fail [a-[KNOWS]->ghost]: FOREIGN KEY constraint failed"
    assert isinstance(excinfo.value.__cause__, sqlite3.IntegrityError)


@pytest.mark.asyncio
async def test_backend_errors_become_storage_errors() -> None:
    with pytest.raises(StorageError) as excinfo:
        await StubStore().fail("e1", sqlite3.OperationalError("database is locked"))

    assert not isinstance(excinfo.value, ConstraintError)
    assert excinfo.value.detail == "database is locked"


@pytest.mark.asyncio
async def test_store_errors_pass_through_unchanged() -> None:
    inner_error = NotFoundError(LayerType.GRAPH, "inner", "entity not found", "x")
    with pytest.raises(NotFoundError) as excinfo:
        await StubStore().fail("x", inner_error)
    assert excinfo.value is inner_error


@pytest.mark.asyncio
async def test_other_exceptions_propagate() -> None:
    with pytest.raises(KeyError):
        await StubStore().fail("x", KeyError("boom"))


@pytest.mark.asyncio
async def test_cancellation_is_not_translated() -> None:
    store = StubStore(operation_timeout=5)
    task = asyncio.create_task(store.sleep("cancelled", 5))
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert [handle.operation for handle in store.aborted] == ["sleep"]


def slow_casefold(value):
    time.sleep(0.1)
    return value.casefold() if value is not None else None


@pytest.fixture
async def slow_graph(memory_store):
    graph = memory_store.graph
    for i in range(20):
        await graph.add_entity(Entity(id=f"npc{i:02d}", type="npc", name=f"Villager {i}"))
    # Name filters call casefold() once per row, so each row now costs 0.1s
    memory_store.db.conn.create_function("casefold", 1, slow_casefold)
    return graph


@pytest.mark.asyncio
async def test_deadline_interrupts_running_query(slow_graph) -> None:
    started = time.monotonic()
    with pytest.raises(DeadlineExceededError) as excinfo:
        await slow_graph.find_entities(EntityFilter(name="villager"), timeout=0.05)
    assert str(excinfo.value) == "knowledge graph: find entities: deadline of 0.05s exceeded"

    # Waits for the interrupted query to release the connection
    entity = await slow_graph.get_entity("npc00")
    assert entity.name == "Villager 0"
    assert time.monotonic() - started < 1.0


@pytest.mark.asyncio
async def test_cancellation_interrupts_running_query(slow_graph) -> None:
    started = time.monotonic()
    task = asyncio.create_task(slow_graph.find_entities(EntityFilter(name="villager"), timeout=0))
    await asyncio.sleep(0.05)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert (await slow_graph.get_entity("npc19")).id == "npc19"
    assert time.monotonic() - started < 1.0


@pytest.mark.asyncio
async def test_abandoned_write_is_not_applied(memory_store) -> None:
    graph = memory_store.graph
    await graph.add_entity(Entity(id="grimjaw", type="npc", name="Grimjaw"))

    # Hold the connection so the write queues behind it and times out
    memory_store.db._lock.acquire()
    try:
        with pytest.raises(DeadlineExceededError):
            await graph.delete_entity("grimjaw", timeout=0.05)
    finally:
        memory_store.db._lock.release()

    assert (await graph.get_entity("grimjaw")).name == "Grimjaw"
