"""Store factory for loregraph."""

from typing import Any, Dict, Optional

from loguru import logger

from ..models import StoreBackend
from ..utils.config import (
    config_manager,
    get_context_limit,
    get_db_path,
    get_embedding_dim,
    get_max_visited,
    get_operation_timeout,
    get_search_limit,
)
from .memory_store import MemoryStore


class StoreFactory:
    """Factory for creating store instances."""

    # Class variables to store singleton instances
    _memory_store_instances: Dict[str, MemoryStore] = {}

    @classmethod
    def _generate_stable_key(cls, **kwargs) -> str:
        """Generate a stable cache key that is not affected by argument order.

        Args:
            **kwargs: Parameters to include in the key

        Returns:
            A stable string key for caching
        """
        key_parts = []

        for param_name in sorted(kwargs.keys()):
            value = kwargs.get(param_name)
            if value is not None:
                key_parts.append(f"{param_name}={value}")

        # Join all parts with a separator that's unlikely to appear in the values
        return "|||".join(key_parts)

    @classmethod
    async def create_memory_store(
        cls,
        db_path: Optional[str] = None,
        embedding_dim: Optional[int] = None,
        **kwargs: Any
    ) -> MemoryStore:
        """Create (or reuse) an initialized memory store.

        Args:
            db_path: SQLite database file (defaults to ``store.db_path``)
            embedding_dim: Dimension of the semantic index (defaults to
                ``store.embedding_dim``)
            **kwargs: Overrides for ``operation_timeout``, ``search_limit``,
                ``max_visited``, ``context_limit`` and ``clock``

        Returns:
            A memory store instance
        """
        backend = config_manager.get_store_backend()
        if backend != StoreBackend.SQLITE:
            raise ValueError(f"Unsupported store backend: {backend}")

        db_path = str(db_path or get_db_path())
        embedding_dim = int(embedding_dim or get_embedding_dim())
        settings = {
            "operation_timeout": kwargs.pop("operation_timeout", None),
            "search_limit": kwargs.pop("search_limit", None),
            "max_visited": kwargs.pop("max_visited", None),
            "context_limit": kwargs.pop("context_limit", None),
        }
        if settings["operation_timeout"] is None:
            settings["operation_timeout"] = get_operation_timeout()
        if settings["search_limit"] is None:
            settings["search_limit"] = get_search_limit()
        if settings["max_visited"] is None:
            settings["max_visited"] = get_max_visited()
        if settings["context_limit"] is None:
            settings["context_limit"] = get_context_limit()

        # Generate a stable key for caching
        stable_key = cls._generate_stable_key(
            backend=backend.value,
            db_path=db_path,
            embedding_dim=embedding_dim,
            clock=id(kwargs["clock"]) if "clock" in kwargs else None,
            **settings,
        )

        if stable_key in cls._memory_store_instances:
            logger.debug(f"Reusing existing memory store instance for {db_path}")
            return cls._memory_store_instances[stable_key]

        store = MemoryStore(db_path=db_path, embedding_dim=embedding_dim, **settings, **kwargs)
        await store.initialize()

        cls._memory_store_instances[stable_key] = store
        logger.info(f"Created memory store for {db_path}")
        return store

    @classmethod
    async def reset(cls) -> None:
        """Close and forget every cached store."""
        for store in cls._memory_store_instances.values():
            await store.close()
        cls._memory_store_instances = {}
