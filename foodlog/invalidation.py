"""Live queries driven by table-level invalidation.

The store calls InvalidationTracker.notify(tables) after every commit that
changed rows. Each Subscription registers an observer for the tables its
query reads and re-runs the query on the store's worker pool whenever one of
them changes.

Emission rules per subscription:
  - the initial snapshot is emitted before anything else;
  - at most one query runs at a time; invalidations that arrive meanwhile
    collapse into a single re-run after it finishes;
  - a result read before a commit that lands mid-fetch is dropped and the
    query re-run, so the next emission after a commit reflects it;
  - after cancel() nothing more is emitted;
  - an error ends the subscription (no retry).
"""
from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Callable, Generic, Iterable, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Observer = Callable[[frozenset], None]


class InvalidationTracker:
    """Publish/subscribe registry keyed by table name."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._observers: dict[int, tuple[frozenset, Observer]] = {}

    def add_observer(self, tables: Iterable[str], callback: Observer) -> int:
        tables = frozenset(tables)
        if not tables:
            raise ValueError("observer needs at least one table")
        with self._lock:
            handle = next(self._ids)
            self._observers[handle] = (tables, callback)
        return handle

    def remove_observer(self, handle: int) -> None:
        with self._lock:
            self._observers.pop(handle, None)

    def observer_count(self) -> int:
        with self._lock:
            return len(self._observers)

    def notify(self, tables: Iterable[str]) -> None:
        changed = frozenset(tables)
        if not changed:
            return
        with self._lock:
            targets = [(t, cb) for t, cb in self._observers.values() if t & changed]
        logger.debug("invalidated %s -> %d observer(s)", sorted(changed), len(targets))
        for watched, cb in targets:
            cb(watched & changed)


class LiveQuery(Generic[T]):
    """A read that can be run once (fetch) or observed (subscribe)."""

    def __init__(
        self,
        store,
        sql: str,
        params: Sequence[Any],
        tables: Iterable[str],
        decode_row: Callable[[Any], T],
    ):
        self.store = store
        self.sql = sql
        self.params = tuple(params)
        self.tables = frozenset(tables)
        self.decode_row = decode_row

    def fetch(self, cancel=None) -> list[T]:
        rows = self.store.query(self.sql, self.params, cancel=cancel)
        return [self.decode_row(r) for r in rows]

    def subscribe(
        self,
        on_next: Callable[[list[T]], None],
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> "Subscription[T]":
        sub = Subscription(self, on_next, on_error)
        sub._start()
        return sub


class Subscription(Generic[T]):
    def __init__(self, query: LiveQuery[T], on_next, on_error):
        self._query = query
        self._on_next = on_next
        self._on_error = on_error
        self._lock = threading.Lock()
        self._dirty = True
        self._running = False
        self._cancelled = False
        self._handle: Optional[int] = None

    @property
    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def _start(self) -> None:
        store = self._query.store
        # register before the first run so a commit racing the initial query is not lost
        self._handle = store.tracker.add_observer(self._query.tables, self._invalidate)
        store._track_subscription(self)
        with self._lock:
            self._running = True
        self._submit()

    def _invalidate(self, tables: frozenset) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._dirty = True
            if self._running:
                return
            self._running = True
        self._submit()

    def _submit(self) -> None:
        try:
            self._query.store.submit(self._drain)
        except RuntimeError:
            # worker pool already shut down: the store is closing
            logger.debug("store closed, dropping live query run")
            self.cancel()

    def _drain(self) -> None:
        while True:
            with self._lock:
                if self._cancelled or not self._dirty:
                    self._running = False
                    return
                self._dirty = False
            try:
                result = self._query.fetch()
                with self._lock:
                    if self._cancelled:
                        self._running = False
                        return
                    if self._dirty:
                        # a commit landed while reading; this result is already stale
                        continue
                self._on_next(result)
            except Exception as e:
                self._fail(e)
                return

    def _fail(self, error: Exception) -> None:
        self.cancel()
        with self._lock:
            self._running = False
        if self._on_error is not None:
            self._on_error(error)
        else:
            logger.exception("live query on %s failed", sorted(self._query.tables), exc_info=error)

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            handle, self._handle = self._handle, None
        store = self._query.store
        if handle is not None:
            store.tracker.remove_observer(handle)
        store._untrack_subscription(self)

    unsubscribe = cancel
