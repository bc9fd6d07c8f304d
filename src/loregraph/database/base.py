"""Abstract database interface for loregraph."""

import abc
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Sequence


class DBBase(abc.ABC):
    """Abstract base class for database backends.

    A backend owns one connection shared by every memory layer built on it.
    Statements are synchronous; callers group writes with :meth:`transaction`.
    """

    @abc.abstractmethod
    def connect(self):
        """Open the connection."""
        pass

    @abc.abstractmethod
    def execute(self, query: str, params: Sequence[Any] = ()):
        """Execute a SQL query.

        Args:
            query: SQL query
            params: Query parameters

        Returns:
            Database cursor
        """
        pass

    @abc.abstractmethod
    def commit(self):
        """Commit changes to the database."""
        pass

    @abc.abstractmethod
    def rollback(self):
        """Discard uncommitted changes."""
        pass

    @abc.abstractmethod
    def close(self):
        """Close the database connection."""
        pass

    @abc.abstractmethod
    def create_tables(self):
        """Create database tables if they don't exist."""
        pass

    @abc.abstractmethod
    def get_meta(self, key: str) -> Optional[str]:
        """Read a provisioning value (e.g. the embedding dimension)."""
        pass

    @abc.abstractmethod
    def set_meta(self, key: str, value: str):
        """Record a provisioning value."""
        pass

    def fetch_all(self, query: str, params: Sequence[Any] = ()) -> List[Any]:
        """Execute a query and return every row."""
        return self.execute(query, params).fetchall()

    def fetch_one(self, query: str, params: Sequence[Any] = ()) -> Optional[Any]:
        """Execute a query and return the first row, or None."""
        return self.execute(query, params).fetchone()

    @contextmanager
    def transaction(self) -> Iterator["DBBase"]:
        """Commit the enclosed statements together, or roll all of them back."""
        try:
            yield self
            self.commit()
        except Exception:
            self.rollback()
            raise
