"""
Store facade.

Store is the single boundary callers use: it owns the connection pool,
applies the schema on open and exposes the relational and vector
operations. A store moves Unopened -> Open -> Closed; operations are only
accepted while it is Open.
"""

import enum
import sqlite3
from abc import ABC, abstractmethod
from typing import List, Optional

from .core import config
from .core.cancel import CancelToken
from .core.dao import DateLike, RelationalStore
from .core.db import ConnectionPool, apply_schema, enable_wal
from .core.errors import StoreConnectionError, StoreError, StoreStateError
from .core.schema import Entry, Finding, Metric, SimilarResult, Summary
from .util.logging import logger
from .vector.codec import VectorLike
from .vector.index import VectorIndex


class StoreState(enum.Enum):
    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"


class IStore(ABC):
    """Abstract interface for all persistence operations."""

    # Entry operations
    @abstractmethod
    def save_entry(self, entry: Entry, cancel: Optional[CancelToken] = None) -> Entry:
        pass

    @abstractmethod
    def get_entries_by_date_range(self, category: str, from_date: DateLike, to_date: DateLike,
                                  cancel: Optional[CancelToken] = None) -> List[Entry]:
        pass

    @abstractmethod
    def get_entry_by_id(self, entry_id: str, cancel: Optional[CancelToken] = None) -> Entry:
        pass

    # Finding operations
    @abstractmethod
    def save_finding(self, finding: Finding, cancel: Optional[CancelToken] = None) -> Finding:
        pass

    @abstractmethod
    def get_recent_findings(self, limit: int, cancel: Optional[CancelToken] = None) -> List[Finding]:
        pass

    # Summary operations
    @abstractmethod
    def save_summary(self, summary: Summary, cancel: Optional[CancelToken] = None) -> Summary:
        pass

    @abstractmethod
    def get_summaries(self, category: str, from_date: DateLike, to_date: DateLike,
                      cancel: Optional[CancelToken] = None) -> List[Summary]:
        pass

    # Metric operations
    @abstractmethod
    def save_metrics(self, entry_id: str, metrics: List[Metric],
                     cancel: Optional[CancelToken] = None) -> List[Metric]:
        pass

    @abstractmethod
    def get_metrics(self, category: str, key: str, from_date: DateLike, to_date: DateLike,
                    cancel: Optional[CancelToken] = None) -> List[Metric]:
        pass

    # Vector operations
    @abstractmethod
    def save_embedding(self, source_id: str, source_type: str, vector: VectorLike,
                       cancel: Optional[CancelToken] = None) -> int:
        pass

    @abstractmethod
    def search_similar(self, query_vector: VectorLike, source_type: str, k: int,
                       cancel: Optional[CancelToken] = None) -> List[SimilarResult]:
        pass

    # Lifecycle
    @abstractmethod
    def close(self) -> None:
        pass


class Store(IStore):
    """SQLite-backed implementation of IStore."""

    def __init__(self, db_path: Optional[str] = None, embedding_dimension: Optional[int] = None,
                 busy_timeout_ms: Optional[int] = None, search_batch_size: Optional[int] = None):
        """
        Args:
            db_path: SQLite file path or ":memory:" (default: config.DB_PATH)
            embedding_dimension: Length of every embedding (default: config.EMBEDDING_DIMENSION)
            busy_timeout_ms: Lock wait per connection (default: config.DB_BUSY_TIMEOUT_MS)
            search_batch_size: Vectors scored per search chunk (default: config.VECTOR_SEARCH_BATCH_SIZE)
        """
        self.db_path = db_path or config.DB_PATH
        self.embedding_dimension = embedding_dimension if embedding_dimension is not None else config.EMBEDDING_DIMENSION
        self.busy_timeout_ms = busy_timeout_ms if busy_timeout_ms is not None else config.DB_BUSY_TIMEOUT_MS
        self.search_batch_size = search_batch_size if search_batch_size is not None else config.VECTOR_SEARCH_BATCH_SIZE

        self._state = StoreState.UNOPENED
        self._pool: Optional[ConnectionPool] = None
        self._relational: Optional[RelationalStore] = None
        self._vectors: Optional[VectorIndex] = None

    @property
    def state(self) -> StoreState:
        return self._state

    def open(self) -> "Store":
        """
        Open the database and apply the schema.

        Returns:
            self, now Open

        Raises:
            StoreStateError: the store was already opened
            StoreConnectionError: the database could not be opened or initialised
        """
        if self._state is not StoreState.UNOPENED:
            raise StoreStateError(f"cannot open a store that is {self._state.value}")

        pool = None
        try:
            config.ensure_db_directory(self.db_path)
            pool = ConnectionPool(self.db_path, self.busy_timeout_ms)
            with pool.connection() as conn:
                journal_mode = enable_wal(conn)
                apply_schema(conn, self.embedding_dimension)
            vectors = VectorIndex(pool, self.embedding_dimension, self.search_batch_size)
        except (sqlite3.Error, OSError, ValueError, StoreError) as e:
            if pool is not None:
                pool.close_all()
            if isinstance(e, StoreConnectionError):
                raise
            raise StoreConnectionError(f"open database {self.db_path!r}: {e}") from e

        self._pool = pool
        self._relational = RelationalStore(pool)
        self._vectors = vectors
        self._state = StoreState.OPEN

        logger.log_operation("store.open", "success", {
            "db_path": self.db_path,
            "journal_mode": journal_mode,
            "dimension": self.embedding_dimension,
        })
        return self

    def close(self) -> None:
        """Release all connections. Safe to call in any state, any number of times."""
        if self._pool is not None:
            self._pool.close_all()
            self._pool = None
        self._relational = None
        self._vectors = None
        if self._state is not StoreState.CLOSED:
            self._state = StoreState.CLOSED
            logger.log_operation("store.close", "success", {"db_path": self.db_path})

    def __enter__(self):
        if self._state is StoreState.UNOPENED:
            self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _require_open(self) -> None:
        if self._state is not StoreState.OPEN:
            raise StoreStateError(f"store is {self._state.value}")

    # -------------------------------------------------------------------------
    # Relational operations
    # -------------------------------------------------------------------------

    def save_entry(self, entry, cancel=None):
        self._require_open()
        return self._relational.save_entry(entry, cancel)

    def get_entries_by_date_range(self, category, from_date, to_date, cancel=None):
        self._require_open()
        return self._relational.get_entries_by_date_range(category, from_date, to_date, cancel)

    def get_entry_by_id(self, entry_id, cancel=None):
        self._require_open()
        return self._relational.get_entry_by_id(entry_id, cancel)

    def save_finding(self, finding, cancel=None):
        self._require_open()
        return self._relational.save_finding(finding, cancel)

    def get_recent_findings(self, limit, cancel=None):
        self._require_open()
        return self._relational.get_recent_findings(limit, cancel)

    def save_summary(self, summary, cancel=None):
        self._require_open()
        return self._relational.save_summary(summary, cancel)

    def get_summaries(self, category, from_date, to_date, cancel=None):
        self._require_open()
        return self._relational.get_summaries(category, from_date, to_date, cancel)

    def save_metrics(self, entry_id, metrics, cancel=None):
        self._require_open()
        return self._relational.save_metrics(entry_id, metrics, cancel)

    def get_metrics(self, category, key, from_date, to_date, cancel=None):
        self._require_open()
        return self._relational.get_metrics(category, key, from_date, to_date, cancel)

    # -------------------------------------------------------------------------
    # Vector operations
    # -------------------------------------------------------------------------

    def save_embedding(self, source_id, source_type, vector, cancel=None):
        self._require_open()
        return self._vectors.save_embedding(source_id, source_type, vector, cancel)

    def search_similar(self, query_vector, source_type, k, cancel=None):
        self._require_open()
        return self._vectors.search_similar(query_vector, source_type, k, cancel)


def open_store(db_path: Optional[str] = None, embedding_dimension: Optional[int] = None, **kwargs) -> Store:
    """Create a Store and open it."""
    return Store(db_path, embedding_dimension, **kwargs).open()
