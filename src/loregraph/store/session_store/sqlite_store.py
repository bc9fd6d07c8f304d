"""SQLite session store implementation for loregraph.

The session log (L1) is an append-only table of transcript entries with an
FTS5 index over the entry text. Keyword search uses the porter stemmer, so
"forging" matches "forge", and every query word must be present.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional

from loguru import logger

from ...database.sqlite import SQLiteDB, build_match_query
from ...interfaces import SessionStore
from ...models.core import LayerType, TranscriptEntry
from ...models.options import SearchOpts
from ...utils.config import get_search_limit
from ...utils.error_handling import store_operation
from ...utils.time_utils import duration_to_micros, from_micros, to_micros, utc_now
from ..base import StoreBase


class SQLiteSessionStore(StoreBase, SessionStore):
    """Session log backed by SQLite and FTS5."""

    layer = LayerType.SESSION

    def __init__(
        self,
        db: SQLiteDB,
        search_limit: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
        **kwargs
    ):
        """Initialize the session store.

        Args:
            db: Database backend
            search_limit: Result cap applied when a search does not set one
            clock: Source of "now" for recency windows
            **kwargs: Additional arguments passed to :class:`StoreBase`
        """
        super().__init__(db, **kwargs)
        self.search_limit = get_search_limit() if search_limit is None else int(search_limit)
        self.clock = clock

    @staticmethod
    def _row_to_entry(row: Any) -> TranscriptEntry:
        return TranscriptEntry(
            speaker_id=row["speaker_id"],
            speaker_name=row["speaker_name"],
            text=row["text"],
            raw_text=row["raw_text"],
            npc_id=row["npc_id"],
            timestamp=from_micros(row["timestamp"]),
            duration=timedelta(microseconds=row["duration_us"]),
        )

    def _insert_entry(self, session_id: str, entry: TranscriptEntry) -> int:
        with self.db.transaction():
            cursor = self.db.execute(
                """
                INSERT INTO session_entries
                    (session_id, speaker_id, speaker_name, text, raw_text, npc_id, timestamp, duration_us)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session_id,
                    entry.speaker_id or "",
                    entry.speaker_name or "",
                    entry.text or "",
                    entry.raw_text or "",
                    entry.npc_id or "",
                    to_micros(entry.timestamp),
                    duration_to_micros(entry.duration),
                ),
            )
            self.db.execute(
                "INSERT INTO session_entries_fts (rowid, text) VALUES (?, ?)",
                (cursor.lastrowid, entry.text or ""),
            )
        return cursor.lastrowid

    @store_operation(LayerType.SESSION, "write entry", key="session_id")
    async def write_entry(self, session_id: str, entry: TranscriptEntry) -> None:
        """Append an entry to a session's log.

        Entries are never deduplicated: writing the same entry twice logs it
        twice.

        Args:
            session_id: Session the entry belongs to
            entry: Entry to append
        """
        if not session_id:
            raise self.invalid("write entry", "session_id is required")
        if entry is None:
            raise self.invalid("write entry", "entry is required", session_id)

        entry_id = await self.run(self._insert_entry, session_id, entry)
        logger.debug(f"Logged entry {entry_id} for session {session_id}")

    @store_operation(LayerType.SESSION, "get recent", key="session_id")
    async def get_recent(self, session_id: str, duration: timedelta) -> List[TranscriptEntry]:
        """Get every entry of a session newer than ``now - duration``, oldest first.

        Args:
            session_id: Session to read
            duration: Size of the look-back window

        Returns:
            List of entries (empty when none match)
        """
        if not isinstance(duration, timedelta):
            raise self.invalid("get recent", "duration must be a timedelta", session_id)
        if duration < timedelta(0):
            raise self.invalid("get recent", f"negative duration {duration}", session_id)

        cutoff = to_micros(self.clock() - duration)
        rows = await self.run(
            self.db.fetch_all,
            """
            SELECT * FROM session_entries
            WHERE session_id = ? AND timestamp >= ?
            ORDER BY timestamp ASC, id ASC
            """,
            (session_id, cutoff),
        )
        return [self._row_to_entry(row) for row in rows]


    @store_operation(LayerType.SESSION, "search", key="query")
    async def search(self, query: str, opts: Optional[SearchOpts] = None) -> List[TranscriptEntry]:
        """Keyword-search entry text, in chronological order.

        Args:
            query: Query text; every word must match (stemmed, case-insensitive)
            opts: Session, speaker and ``[after, before)`` filters and a result
                cap (0 uses the configured default)

        Returns:
            List of matching entries
        """
        opts = opts or SearchOpts()
        if opts.limit < 0:
            raise self.invalid("search", f"negative limit {opts.limit}", query)

        match_query = build_match_query(query)
        if not match_query:
            logger.debug("Search query has no words, nothing to match")
            return []

        sql = """
            SELECT e.* FROM session_entries_fts
            JOIN session_entries e ON e.id = session_entries_fts.rowid
            WHERE session_entries_fts MATCH ?
        """
        params: List[Any] = [match_query]

        if opts.session_id:
            sql += " AND e.session_id = ?"
            params.append(opts.session_id)
        if opts.speaker_id:
            sql += " AND e.speaker_id = ?"
            params.append(opts.speaker_id)
        if opts.after is not None:
            sql += " AND e.timestamp >= ?"
            params.append(to_micros(opts.after))
        if opts.before is not None:
            sql += " AND e.timestamp < ?"
            params.append(to_micros(opts.before))

        sql += " ORDER BY e.timestamp ASC, e.id ASC LIMIT ?"
        params.append(opts.limit or self.search_limit)

        rows = await self.run(self.db.fetch_all, sql, params)
        logger.debug(f"Search for '{query}' matched {len(rows)} entries")
        return [self._row_to_entry(row) for row in rows]

    @store_operation(LayerType.SESSION, "entry count", key="session_id")
    async def entry_count(self, session_id: str) -> int:
        """Count the entries logged for a session."""
        row = await self.run(
            self.db.fetch_one,
            "SELECT COUNT(*) AS n FROM session_entries WHERE session_id = ?",
            (session_id,),
        )
        return int(row["n"])
