from __future__ import annotations

# foodlog/db.py
import logging
import sqlite3
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Sequence

from .config import get_config, get_db_path
from .errors import OperationCancelled, SchemaMismatchError, StorageError
from .invalidation import InvalidationTracker
from .schema import SchemaRegistry
from .statements import StatementCache

logger = logging.getLogger(__name__)


class CancelToken:
    """Cancellation signal for single-shot reads."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("operation cancelled")


def connect(path: str, busy_timeout_ms: int = 5000) -> sqlite3.Connection:
    """
    Open a SQLite connection configured for this library.
    Enables foreign_keys, uses sqlite3.Row rows and leaves transaction
    control to the caller (isolation_level=None).
    """
    conn = sqlite3.connect(
        path,
        timeout=busy_timeout_ms / 1000.0,
        check_same_thread=False,
        isolation_level=None,
    )
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.row_factory = sqlite3.Row
    return conn


class Transaction:
    """Handle passed to the body of Store.transaction(); records touched tables."""

    def __init__(self, store: "Store"):
        self._store = store
        self.touched: set[str] = set()

    def execute(self, sql: str, params: Sequence[Any] = (), table: Optional[str] = None) -> sqlite3.Cursor:
        cur = self._store._execute(sql, params)
        if table and cur.rowcount != 0:
            self.touched.add(table)
        return cur


class Store:
    """Shared handle over one SQLite connection.

    All connection access goes through one RLock, so writers are serialized and
    a statement never interleaves with another thread's statement. Observers are
    notified after the outermost commit, outside the lock.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        path: str,
        registry: SchemaRegistry,
        worker_threads: int = 4,
    ):
        self.conn = conn
        self.path = path
        self.registry = registry
        self.tracker = InvalidationTracker()
        self.statements = StatementCache()
        self._lock = threading.RLock()
        self._local = threading.local()
        self._worker_idents: set[int] = set()
        self._executor = ThreadPoolExecutor(
            max_workers=worker_threads,
            thread_name_prefix="foodlog",
            initializer=self._register_worker,
        )
        self._subs_lock = threading.Lock()
        self._subscriptions: set = set()
        self._closed = False

    # ---------------- execution ----------------

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        with self._lock:
            if self._closed:
                raise StorageError("store is closed")
            logger.debug("exec %s %r", sql, params)
            try:
                return self.conn.execute(sql, tuple(params))
            except sqlite3.Error as e:
                raise StorageError(f"{type(e).__name__}: {e}") from e

    def query(self, sql: str, params: Sequence[Any] = (), cancel: CancelToken | None = None) -> list[sqlite3.Row]:
        if cancel is not None:
            cancel.raise_if_cancelled()
        with self._lock:
            cur = self._execute(sql, params)
            try:
                rows = cur.fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"{type(e).__name__}: {e}") from e
            finally:
                cur.close()
        if cancel is not None:
            cancel.raise_if_cancelled()
        return rows

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        outer = getattr(self._local, "tx", None)
        if outer is not None:
            # join the enclosing transaction on this thread
            yield outer
            return
        with self._lock:
            tx = Transaction(self)
            self._execute("BEGIN IMMEDIATE")
            self._local.tx = tx
            try:
                yield tx
                self._execute("COMMIT")
            except BaseException:
                self._rollback()
                raise
            finally:
                self._local.tx = None
        if tx.touched:
            self.tracker.notify(tx.touched)

    def _rollback(self) -> None:
        if not self.conn.in_transaction:
            return
        try:
            self.conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.exception("rollback failed on %s", self.path)
            raise StorageError(f"rollback failed: {e}") from e

    # ---------------- dispatch ----------------

    def _register_worker(self) -> None:
        self._worker_idents.add(threading.get_ident())

    def submit(self, fn: Callable[..., Any], *args, **kwargs) -> Future:
        """Run fn on the store's worker pool; the Future can be cancelled before it starts."""
        return self._executor.submit(fn, *args, **kwargs)

    def _track_subscription(self, sub) -> None:
        with self._subs_lock:
            self._subscriptions.add(sub)

    def _untrack_subscription(self, sub) -> None:
        with self._subs_lock:
            self._subscriptions.discard(sub)

    # ---------------- lifecycle ----------------

    def close(self) -> None:
        if self._closed:
            return
        with self._subs_lock:
            subs = list(self._subscriptions)
        for sub in subs:
            sub.cancel()
        # a live-query callback may close the store from one of our own workers;
        # waiting for the pool there would wait on itself
        on_worker = threading.get_ident() in self._worker_idents
        self._executor.shutdown(wait=not on_worker)
        with self._lock:
            self._closed = True
            self.conn.close()
        logger.info("closed store %s", self.path)

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def open_store(
    path: str | None = None,
    config: dict | None = None,
    registry: SchemaRegistry | None = None,
) -> Store:
    """
    Open (or create) the database and validate its schema.

    A fresh file gets the full schema. Anything else must match the registry
    exactly, otherwise SchemaMismatchError is raised and the connection closed.
    """
    cfg = config if config is not None else get_config()
    path = path or get_db_path(cfg)
    registry = registry or SchemaRegistry.default()
    try:
        conn = connect(path, int(cfg.get("busy_timeout_ms", 5000)))
    except sqlite3.Error as e:
        raise StorageError(f"cannot open {path}: {e}") from e

    try:
        if registry.is_fresh(conn):
            conn.execute("BEGIN IMMEDIATE")
            try:
                registry.create_all(conn)
                conn.execute("COMMIT")
            except sqlite3.Error:
                conn.execute("ROLLBACK")
                raise
        validation = registry.validate(conn)
    except sqlite3.Error as e:
        conn.close()
        raise StorageError(f"cannot initialise {path}: {e}") from e

    if not validation.ok:
        conn.close()
        logger.error("refusing to use %s: %s", path, validation.describe())
        raise SchemaMismatchError(validation)

    logger.info("opened store %s (schema v%s)", path, registry.version)
    return Store(conn, path, registry, int(cfg.get("worker_threads", 4)))
