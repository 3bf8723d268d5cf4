"""
SQLite engine management: connections, schema and error translation.

One ConnectionPool backs one Store. Each calling thread gets its own
connection so that WAL readers never wait on the writer's transaction;
locking between connections is left to SQLite. An in-memory database is
served from one connection shared by all threads behind a lock.
"""

import sqlite3
import threading
import weakref
from contextlib import contextmanager
from typing import Generator, List, Optional

from .cancel import CancelToken
from .config import CANCEL_CHECK_INTERVAL, DB_BUSY_TIMEOUT_MS, is_memory_path
from .errors import CancellationError, ConstraintError, StorageError, StoreConnectionError
from ..util.logging import logger


CORE_SCHEMA = [
    '''
    CREATE TABLE IF NOT EXISTS entries (
        id            TEXT PRIMARY KEY,
        date          TEXT NOT NULL,
        category      TEXT NOT NULL,
        input_text    TEXT NOT NULL,
        analysis_text TEXT NOT NULL DEFAULT '',
        created_at    TEXT NOT NULL
    )
    ''',
    'CREATE INDEX IF NOT EXISTS idx_entries_date_category ON entries(date, category)',
    'CREATE INDEX IF NOT EXISTS idx_entries_category ON entries(category)',
    '''
    CREATE TABLE IF NOT EXISTS findings (
        id           TEXT PRIMARY KEY,
        date         TEXT NOT NULL,
        finding_text TEXT NOT NULL,
        categories   TEXT NOT NULL DEFAULT '[]',
        created_at   TEXT NOT NULL
    )
    ''',
    'CREATE INDEX IF NOT EXISTS idx_findings_date ON findings(date)',
    '''
    CREATE TABLE IF NOT EXISTS summaries (
        id           TEXT PRIMARY KEY,
        period_start TEXT NOT NULL,
        period_end   TEXT NOT NULL,
        category     TEXT NOT NULL,
        summary_text TEXT NOT NULL,
        created_at   TEXT NOT NULL
    )
    ''',
    'CREATE INDEX IF NOT EXISTS idx_summaries_category_period ON summaries(category, period_start, period_end)',
    '''
    CREATE TABLE IF NOT EXISTS metrics (
        id         TEXT PRIMARY KEY,
        entry_id   TEXT NOT NULL REFERENCES entries(id),
        key        TEXT NOT NULL,
        value      REAL NOT NULL,
        created_at TEXT NOT NULL
    )
    ''',
    'CREATE INDEX IF NOT EXISTS idx_metrics_entry_id ON metrics(entry_id)',
    'CREATE INDEX IF NOT EXISTS idx_metrics_key ON metrics(key)',
]

VECTOR_SCHEMA = [
    '''
    CREATE TABLE IF NOT EXISTS vec_embeddings (
        id          INTEGER PRIMARY KEY AUTOINCREMENT,
        source_id   TEXT NOT NULL,
        source_type TEXT NOT NULL,
        embedding   BLOB NOT NULL CHECK (length(embedding) = {byte_length})
    )
    ''',
    'CREATE INDEX IF NOT EXISTS idx_vec_embeddings_source ON vec_embeddings(source_type, source_id)',
    '''
    CREATE TABLE IF NOT EXISTS vec_index_meta (
        key   TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    ''',
]


def _configure(conn: sqlite3.Connection, busy_timeout_ms: int) -> None:
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
    conn.execute("PRAGMA synchronous = NORMAL")


class _ThreadConnection:
    """Holder kept in thread-local storage; dropped when its thread ends."""

    __slots__ = ("conn", "__weakref__")

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn


class ConnectionPool:
    """
    SQLite connections onto one database.

    File databases get one connection per calling thread, closed when that
    thread exits. An in-memory database lives in a single connection, so
    every thread shares it and operations on it are serialized.
    """

    def __init__(self, db_path: str, busy_timeout_ms: int = DB_BUSY_TIMEOUT_MS):
        self.db_path = db_path
        self.busy_timeout_ms = busy_timeout_ms
        self.in_memory = is_memory_path(db_path)
        self._local = threading.local()
        self._lock = threading.Lock()
        self._shared_lock = threading.RLock()
        self._shared: Optional[sqlite3.Connection] = None
        self._connections: List[sqlite3.Connection] = []
        self._closed = False

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, isolation_level=None, check_same_thread=False)
        try:
            _configure(conn, self.busy_timeout_ms)
        except sqlite3.Error:
            conn.close()
            raise
        with self._lock:
            if self._closed:
                conn.close()
                raise StorageError("connection pool is closed")
            self._connections.append(conn)
        return conn

    def _release(self, conn: sqlite3.Connection) -> None:
        with self._lock:
            if conn in self._connections:
                self._connections.remove(conn)
        conn.close()

    @property
    def size(self) -> int:
        """Number of connections currently open."""
        with self._lock:
            return len(self._connections)

    def get(self) -> sqlite3.Connection:
        """Return the calling thread's connection, opening it on first use."""
        if self.in_memory:
            with self._shared_lock:
                if self._shared is None:
                    self._shared = self._connect()
                return self._shared

        holder = getattr(self._local, "holder", None)
        if holder is None:
            holder = _ThreadConnection(self._connect())
            weakref.finalize(holder, self._release, holder.conn)
            self._local.holder = holder
        return holder.conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Borrow a connection for one unit of work."""
        if not self.in_memory:
            yield self.get()
            return
        with self._shared_lock:
            yield self.get()

    def close_all(self) -> None:
        with self._lock:
            self._closed = True
            connections, self._connections = self._connections, []
        for conn in connections:
            conn.close()


def enable_wal(conn: sqlite3.Connection) -> str:
    """Switch a file database to write-ahead logging; returns the journal mode in effect."""
    row = conn.execute("PRAGMA journal_mode = WAL").fetchone()
    return row[0]


def apply_schema(conn: sqlite3.Connection, dimension: int) -> None:
    """
    Create all tables, indexes and the vector structure if absent.

    Runs as one transaction and is safe on every open. A database created
    with another embedding dimension is rejected.

    Raises:
        StoreConnectionError: schema could not be applied
    """
    if dimension <= 0:
        raise StoreConnectionError(f"embedding dimension must be positive, got {dimension}")

    statements = list(CORE_SCHEMA)
    statements += [s.format(byte_length=dimension * 4) for s in VECTOR_SCHEMA]

    try:
        with transaction(conn):
            for statement in statements:
                conn.execute(statement)
            conn.execute(
                "INSERT OR IGNORE INTO vec_index_meta (key, value) VALUES ('dimension', ?)",
                (str(dimension),)
            )
            stored = conn.execute(
                "SELECT value FROM vec_index_meta WHERE key = 'dimension'"
            ).fetchone()[0]
            if int(stored) != dimension:
                raise StoreConnectionError(
                    f"Vector index dimension {stored} does not match expected dimension {dimension}"
                )
    except sqlite3.Error as e:
        raise StoreConnectionError(f"apply schema: {e}") from e

    logger.log_operation("schema.apply", "success", {"dimension": dimension})


@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """Run a block in one write transaction; roll back on any exception."""
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        # SQLite may already have rolled back (e.g. after an interrupt)
        if conn.in_transaction:
            # A fired cancel handler must not abort the rollback itself
            conn.set_progress_handler(None, 0)
            conn.rollback()
        raise
    else:
        conn.execute("COMMIT")


@contextmanager
def guarded(conn: sqlite3.Connection, cancel: Optional[CancelToken] = None,
            check_interval: int = CANCEL_CHECK_INTERVAL) -> Generator[sqlite3.Connection, None, None]:
    """
    Execute statements on conn under the store's error taxonomy.

    While the block runs, a progress handler aborts the current statement
    as soon as the cancel token fires.

    Raises:
        CancellationError: the token fired before or during the block
        ConstraintError: an integrity constraint failed
        StorageError: any other engine failure
    """
    if cancel is not None:
        cancel.raise_if_cancelled()
        conn.set_progress_handler(lambda: 1 if cancel.cancelled else 0, check_interval)
    try:
        yield conn
    except sqlite3.IntegrityError as e:
        raise ConstraintError(str(e)) from e
    except sqlite3.Error as e:
        if cancel is not None and cancel.cancelled:
            raise CancellationError("operation cancelled") from e
        raise StorageError(str(e)) from e
    finally:
        if cancel is not None:
            conn.set_progress_handler(None, 0)
