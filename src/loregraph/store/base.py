"""Base store module for loregraph."""

import asyncio
from abc import ABC
from typing import Any, Callable, Optional, TypeVar

from ..database.sqlite import SQLiteDB
from ..models.core import LayerType
from ..utils.config import get_operation_timeout
from ..utils.error_handling import InvalidRequestError, OperationHandle, current_operation

T = TypeVar('T')


class StoreBase(ABC):
    """Base class for all store implementations.

    Every layer runs on a shared :class:`SQLiteDB`. Initialization (schema
    creation plus any layer-specific provisioning) happens lazily on first use
    and at most once, guarded by a lock. Statements issued by operations run
    on a worker thread through :meth:`run`, so the event loop stays free to
    enforce deadlines and deliver cancellation.
    """

    layer: LayerType

    def __init__(self, db: SQLiteDB, operation_timeout: Optional[float] = None, **kwargs):
        """Initialize the store.

        Args:
            db: Database backend shared by the layers
            operation_timeout: Default deadline in seconds (0 disables it;
                None uses the configured value)
            **kwargs: Additional arguments
        """
        self.db = db
        self.operation_timeout = (
            get_operation_timeout() if operation_timeout is None else float(operation_timeout)
        )
        self.initialized = False
        self._lock: Optional[asyncio.Lock] = None

    async def initialize(self) -> bool:
        """Initialize the storage.

        Returns:
            True if successful
        """
        self.db.create_tables()
        self.initialized = True
        return True

    async def ensure_initialized(self) -> bool:
        """Ensure the store is initialized.

        Returns:
            True if successful
        """
        if self.initialized:
            return True

        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            if not self.initialized:
                return await self.initialize()
            return True

    async def run(self, func: Callable[..., T], *args: Any) -> T:
        """Run blocking database work on a worker thread.

        The work is tagged with the current operation so a missed deadline or
        a cancelled caller can stop it.
        """
        return await asyncio.to_thread(self.db.run, current_operation.get(), func, *args)

    def abort(self, handle: OperationHandle) -> None:
        """Stop the database work of an abandoned operation."""
        self.db.interrupt(handle)

    async def close(self) -> None:
        """Release the database connection.

        Operations issued after closing fail with a storage error.
        """
        self.db.close()

    def invalid(self, operation: str, detail: str, key: Optional[str] = None) -> InvalidRequestError:
        """Build a validation error for this layer."""
        return InvalidRequestError(self.layer, operation, detail, key)
