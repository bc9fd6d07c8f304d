"""SQLite backend for loregraph database."""

import json
import re
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence, TypeVar

from loguru import logger

from ..utils.path_manager import PathManager
from .base import DBBase

FTS_TOKENIZERS = (
    "porter unicode61 remove_diacritics 1",
    "porter unicode61",
    "unicode61",
)

T = TypeVar("T")

_WORD_RE = re.compile(r"\w+", re.UNICODE)

# Binds a whole id list to one parameter: "col IN (SELECT value FROM json_each(?))"
IN_JSON_EACH = "IN (SELECT value FROM json_each(?))"


def json_array(values: Iterable[Any]) -> str:
    """Encode values for binding to an :data:`IN_JSON_EACH` clause."""
    return json.dumps(list(values))


def build_match_query(text: str) -> str:
    """Turn free text into an FTS5 query requiring every word.

    Each word is quoted so FTS5 operators in user input are matched literally.

    Args:
        text: Free-form query text

    Returns:
        FTS5 MATCH expression, or an empty string when the text has no words
    """
    tokens = _WORD_RE.findall(text or "")
    return " ".join(f'"{token}"' for token in tokens)


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value is not None else None


class SQLiteDB(DBBase):
    """SQLite backend for loregraph database.

    Holds the session log, chunk index, and graph tables in one file so that
    hybrid queries can join chunks to entities directly.

    The connection is shared by the event loop thread and the worker threads
    that run store operations, so every access holds ``_lock``. Work submitted
    through :meth:`run` is tagged with an operation handle, which
    :meth:`interrupt` uses to stop that operation's statements.
    """

    def __init__(self, db_path: str):
        """Initialize the SQLite backend.

        Args:
            db_path: Path to the SQLite database file (or ``:memory:``)
        """
        self.db_path = db_path
        self.conn: Optional[sqlite3.Connection] = None
        self.fts_tokenizer: Optional[str] = None
        self._closed = False
        self._schema_ready = False
        self._lock = threading.RLock()
        self._active: Optional[Any] = None

    def connect(self):
        """Open the connection and configure it."""
        with self._lock:
            if self.conn is not None:
                return
            if self._closed:
                raise sqlite3.ProgrammingError("database connection is closed")

            path = PathManager.prepare_file_path(self.db_path)
            self.conn = sqlite3.connect(path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA foreign_keys = ON")
            if path != ":memory:":
                self.conn.execute("PRAGMA journal_mode = WAL")
            self.conn.create_function("casefold", 1, _casefold, deterministic=True)

        logger.info(f"SQLite backend initialized at {path}")

    @property
    def is_open(self) -> bool:
        return self.conn is not None

    def run(self, handle: Optional[Any], func: Callable[..., T], *args: Any) -> T:
        """Run ``func(*args)`` with exclusive use of the connection.

        Meant to be called from a worker thread. Nothing runs for a handle
        that has already been abandoned.

        Args:
            handle: Operation the work belongs to (None for untracked work)
            func: Callable issuing the statements
            *args: Arguments for ``func``

        Returns:
            Whatever ``func`` returns
        """
        with self._lock:
            self._active = handle
            try:
                self._check_abandoned()
                return func(*args)
            finally:
                self._active = None

    def interrupt(self, handle: Any):
        """Abandon an operation and interrupt its running statement, if any."""
        handle.abandoned = True
        conn = self.conn
        if conn is not None and self._active is handle:
            conn.interrupt()
            logger.debug(f"Interrupted {handle.operation} on {self.db_path}")

    def _check_abandoned(self):
        if self._active is not None and self._active.abandoned:
            raise sqlite3.OperationalError("interrupted")

    def execute(self, query: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """Execute a SQL query.

        Args:
            query: SQL query
            params: Query parameters

        Returns:
            SQLite cursor
        """
        with self._lock:
            if self.conn is None:
                raise sqlite3.ProgrammingError("database connection is closed")
            self._check_abandoned()
            cursor = self.conn.cursor()
            cursor.execute(query, tuple(params))
            return cursor

    def fetch_all(self, query: str, params: Sequence[Any] = ()) -> List[Any]:
        """Execute a query and return every row."""
        with self._lock:
            return self.execute(query, params).fetchall()

    def fetch_one(self, query: str, params: Sequence[Any] = ()) -> Optional[Any]:
        """Execute a query and return the first row, or None."""
        with self._lock:
            return self.execute(query, params).fetchone()

    def write(self, query: str, params: Sequence[Any] = ()) -> int:
        """Execute one statement in its own transaction.

        Returns:
            Number of rows changed
        """
        with self.transaction():
            return self.execute(query, params).rowcount

    @contextmanager
    def transaction(self) -> Iterator["SQLiteDB"]:
        """Hold the connection for the whole transaction."""
        with self._lock:
            with super().transaction():
                yield self

    def commit(self):
        """Commit changes to the database."""
        with self._lock:
            if self.conn is not None:
                self.conn.commit()

    def rollback(self):
        """Discard uncommitted changes."""
        with self._lock:
            if self.conn is not None:
                self.conn.rollback()

    def close(self):
        """Close the database connection."""
        with self._lock:
            if self.conn is not None:
                self.conn.close()
                self.conn = None
                self._closed = True
            logger.debug(f"SQLite connection to {self.db_path} closed")

    def _create_fts_table(self, name: str, columns: str):
        """Create an FTS5 table with the best tokenizer this SQLite build offers."""
        last_error: Optional[sqlite3.OperationalError] = None
        for tokenizer in FTS_TOKENIZERS:
            try:
                self.execute(
                    f"CREATE VIRTUAL TABLE IF NOT EXISTS {name} USING fts5("
                    f"{columns}, tokenize='{tokenizer}')"
                )
                self.fts_tokenizer = tokenizer
                logger.debug(f"Created FTS5 table {name} with tokenizer '{tokenizer}'")
                return
            except sqlite3.OperationalError as e:
                last_error = e
        raise last_error

    def create_tables(self):
        """Create database tables if they don't exist."""
        self.connect()
        if self._schema_ready:
            return

        # Provisioning values such as the embedding dimension
        self.execute('''
        CREATE TABLE IF NOT EXISTS store_meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        ''')

        # Session log (L1); append-only, rowid doubles as the FTS rowid
        self.execute('''
        CREATE TABLE IF NOT EXISTS session_entries (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_id TEXT NOT NULL,
            speaker_id TEXT NOT NULL DEFAULT '',
            speaker_name TEXT NOT NULL DEFAULT '',
            text TEXT NOT NULL DEFAULT '',
            raw_text TEXT NOT NULL DEFAULT '',
            npc_id TEXT NOT NULL DEFAULT '',
            timestamp INTEGER NOT NULL,
            duration_us INTEGER NOT NULL DEFAULT 0
        )
        ''')
        self.execute('''
        CREATE INDEX IF NOT EXISTS idx_session_entries_session_ts
        ON session_entries (session_id, timestamp)
        ''')
        self._create_fts_table("session_entries_fts", "text")

        # Chunk index (L2)
        self.execute('''
        CREATE TABLE IF NOT EXISTS chunks (
            id TEXT PRIMARY KEY,
            session_id TEXT NOT NULL DEFAULT '',
            content TEXT NOT NULL DEFAULT '',
            embedding BLOB NOT NULL,
            speaker_id TEXT NOT NULL DEFAULT '',
            entity_id TEXT NOT NULL DEFAULT '',
            topic TEXT NOT NULL DEFAULT '',
            timestamp INTEGER NOT NULL
        )
        ''')
        self.execute("CREATE INDEX IF NOT EXISTS idx_chunks_session ON chunks (session_id)")
        self.execute("CREATE INDEX IF NOT EXISTS idx_chunks_entity ON chunks (entity_id)")
        self._create_fts_table("chunks_fts", "content")

        # Knowledge graph (L3)
        self.execute('''
        CREATE TABLE IF NOT EXISTS entities (
            id TEXT PRIMARY KEY,
            type TEXT NOT NULL,
            name TEXT NOT NULL,
            attributes TEXT NOT NULL DEFAULT '{}',
            created_at INTEGER NOT NULL,
            updated_at INTEGER NOT NULL
        )
        ''')
        self.execute("CREATE INDEX IF NOT EXISTS idx_entities_type ON entities (type)")

        self.execute('''
        CREATE TABLE IF NOT EXISTS relationships (
            source_id TEXT NOT NULL REFERENCES entities (id) ON DELETE CASCADE,
            target_id TEXT NOT NULL REFERENCES entities (id) ON DELETE CASCADE,
            rel_type TEXT NOT NULL,
            attributes TEXT NOT NULL DEFAULT '{}',
            provenance TEXT NOT NULL DEFAULT '{}',
            created_at INTEGER NOT NULL,
            PRIMARY KEY (source_id, target_id, rel_type)
        )
        ''')
        self.execute("CREATE INDEX IF NOT EXISTS idx_relationships_target ON relationships (target_id)")

        self.commit()
        self._schema_ready = True
        logger.info(f"SQLite schema ready at {self.db_path}")

    def get_meta(self, key: str) -> Optional[str]:
        row = self.fetch_one("SELECT value FROM store_meta WHERE key = ?", (key,))
        return row["value"] if row is not None else None

    def set_meta(self, key: str, value: str):
        self.execute(
            "INSERT INTO store_meta (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )
        self.commit()
