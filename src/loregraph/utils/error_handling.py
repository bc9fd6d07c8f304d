"""Error handling utilities for loregraph.

Every failure surfaced by a store is a :class:`MemoryStoreError` whose message
names the layer, the operation and, where there is one, the key involved::

    knowledge graph: update entity [grimjaw]: entity not found

The :func:`store_operation` decorator wraps each public store coroutine so
backend exceptions and deadlines are translated into this taxonomy. Task
cancellation is never translated: ``asyncio.CancelledError`` reaches the caller
unchanged.
"""

import asyncio
import functools
import inspect
import sqlite3
from contextvars import ContextVar
from typing import Any, Awaitable, Callable, Optional, TypeVar

from loguru import logger

from ..models.core import LayerType


T = TypeVar('T')


class MemoryStoreError(Exception):
    """Base class for all errors raised by the memory stores."""

    def __init__(self, layer: LayerType, operation: str, detail: str, key: Optional[str] = None):
        self.layer = LayerType(layer)
        self.operation = operation
        self.detail = detail
        self.key = key
        super().__init__(self._format())

    def _format(self) -> str:
        scope = f"{self.operation} [{self.key}]" if self.key else self.operation
        return f"{self.layer.value}: {scope}: {self.detail}"


class NotFoundError(MemoryStoreError):
    """A mutation or snapshot required a record that does not exist."""


class InvalidRequestError(MemoryStoreError):
    """Malformed arguments, rejected before the store is touched."""


class StorageError(MemoryStoreError):
    """The backing store failed (I/O, connection, SQL)."""


class ConstraintError(StorageError):
    """The backing store rejected a write, e.g. a foreign key violation."""


class DeadlineExceededError(MemoryStoreError):
    """The operation did not complete within its deadline."""


def describe_key(value: Any) -> Optional[str]:
    """Render a record or identifier for use in an error message.

    Args:
        value: Identifier string or record object

    Returns:
        Short description, or None when there is nothing to show
    """
    if value is None or value == "":
        return None
    if hasattr(value, "source_id") and hasattr(value, "rel_type"):
        return f"{value.source_id}-[{value.rel_type}]->{value.target_id}"
    if hasattr(value, "id"):
        return str(value.id)
    return str(value)


class OperationHandle:
    """Identifies one in-flight store operation.

    The database runs the operation's statements on a worker thread under this
    handle; once the operation is abandoned (deadline or cancellation) no
    further statement runs for it and the statement in progress is
    interrupted.
    """

    __slots__ = ("layer", "operation", "abandoned")

    def __init__(self, layer: LayerType, operation: str):
        self.layer = layer
        self.operation = operation
        self.abandoned = False


# Handle of the store operation running in the current task
current_operation: ContextVar[Optional[OperationHandle]] = ContextVar("current_operation", default=None)


def store_operation(
    layer: LayerType,
    operation: str,
    key: Optional[str] = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator for public store coroutines.

    The wrapped coroutine gains a keyword-only ``timeout`` argument (seconds).
    When it is omitted the store's ``operation_timeout`` applies; a value of 0
    disables the deadline. When the deadline passes or the calling task is
    cancelled, the store's ``abort`` is called with the operation handle so
    the database work stops as well.

    Args:
        layer: Layer reported in error messages
        operation: Operation name reported in error messages
        key: Name of the argument identifying the record (optional)

    Returns:
        The decorated coroutine function
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        signature = inspect.signature(func)

        @functools.wraps(func)
        async def wrapper(self, *args: Any, timeout: Optional[float] = None, **kwargs: Any) -> T:
            key_value = None
            if key is not None:
                bound = signature.bind_partial(self, *args, **kwargs)
                key_value = describe_key(bound.arguments.get(key))

            deadline = self.operation_timeout if timeout is None else timeout
            handle = OperationHandle(layer, operation)
            token = current_operation.set(handle)

            try:
                await self.ensure_initialized()
                if deadline and deadline > 0:
                    return await asyncio.wait_for(func(self, *args, **kwargs), deadline)
                return await func(self, *args, **kwargs)
            except MemoryStoreError:
                raise
            except asyncio.CancelledError:
                self.abort(handle)
                raise
            except asyncio.TimeoutError as e:
                self.abort(handle)
                logger.warning(f"{layer.value}: {operation} timed out after {deadline}s")
                raise DeadlineExceededError(
                    layer, operation, f"deadline of {deadline}s exceeded", key_value) from e
            except sqlite3.IntegrityError as e:
                logger.error(f"{layer.value}: {operation} rejected by store: {e}")
                raise ConstraintError(layer, operation, str(e), key_value) from e
            except sqlite3.Error as e:
                logger.error(f"{layer.value}: {operation} failed: {e}")
                raise StorageError(layer, operation, str(e), key_value) from e
            finally:
                current_operation.reset(token)

        return wrapper
    return decorator
