from datetime import datetime, timezone
from pathlib import Path

import pytest

from loregraph.store.factory import StoreFactory
from loregraph.store.memory_store import MemoryStore
from loregraph.utils.config import config_manager

EMBEDDING_DIM = 4
NOW = datetime(2024, 5, 1, 20, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _fresh_config():
    config_manager.reset()
    yield
    config_manager.reset()


@pytest.fixture
async def store_factory():
    yield StoreFactory
    await StoreFactory.reset()


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "loregraph.db")


@pytest.fixture
async def memory_store(db_path: str):
    store = MemoryStore(db_path, embedding_dim=EMBEDDING_DIM, clock=lambda: NOW)
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def session_store(memory_store):
    return memory_store.l1


@pytest.fixture
def vector_store(memory_store):
    return memory_store.l2


@pytest.fixture
def graph(memory_store):
    return memory_store.graph
