"""Resilience wrapper around the session log.

The stores never degrade on their own: every failure reaches the caller. A
caller that prefers availability over completeness wraps its session store in
a :class:`MemoryGuard`, which turns failures into empty defaults, logs the
cause, and reports a degraded state until the next successful call.

Task cancellation is not a failure and always propagates.
"""

from datetime import timedelta
from typing import Any, List, Optional

from loguru import logger

from ..interfaces import SessionStore
from ..models.core import TranscriptEntry
from ..models.options import SearchOpts


class MemoryGuard(SessionStore):
    """Session store wrapper that degrades instead of failing."""

    def __init__(self, store: SessionStore):
        """Wrap a session store.

        Args:
            store: Store whose failures should be absorbed
        """
        self._store = store
        self._degraded = False

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def is_degraded(self) -> bool:
        """Whether the most recent call failed."""
        return self._degraded

    def _record_failure(self, operation: str, error: Exception) -> None:
        if not self._degraded:
            logger.warning(f"Memory guard entering degraded mode after {operation} failed: {error}")
        else:
            logger.warning(f"Memory guard: {operation} failed: {error}")
        self._degraded = True

    def _record_success(self) -> None:
        if self._degraded:
            logger.info("Memory guard recovered, session store is healthy again")
        self._degraded = False

    async def write_entry(self, session_id: str, entry: TranscriptEntry, **kwargs: Any) -> None:
        """Append an entry; a failed write is logged and dropped."""
        try:
            await self._store.write_entry(session_id, entry, **kwargs)
        except Exception as e:
            self._record_failure("write entry", e)
            return
        self._record_success()

    async def get_recent(self, session_id: str, duration: timedelta, **kwargs: Any) -> List[TranscriptEntry]:
        """Recent entries, or an empty list when the store fails."""
        try:
            entries = await self._store.get_recent(session_id, duration, **kwargs)
        except Exception as e:
            self._record_failure("get recent", e)
            return []
        self._record_success()
        return entries

    async def search(self, query: str, opts: Optional[SearchOpts] = None, **kwargs: Any) -> List[TranscriptEntry]:
        """Search results, or an empty list when the store fails."""
        try:
            entries = await self._store.search(query, opts, **kwargs)
        except Exception as e:
            self._record_failure("search", e)
            return []
        self._record_success()
        return entries

    async def entry_count(self, session_id: str, **kwargs: Any) -> int:
        """Entry count, or 0 when the store fails."""
        try:
            count = await self._store.entry_count(session_id, **kwargs)
        except Exception as e:
            self._record_failure("entry count", e)
            return 0
        self._record_success()
        return count
