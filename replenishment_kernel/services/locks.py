"""Per-key re-entrant locks for serializing work on one entity at a time."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class KeyedLocks:
    """One ``threading.RLock`` per key, created on first use.

    Holding the lock for ``"order-1"`` never blocks work on ``"order-2"``.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self.lock_for(key):
            yield

    def discard(self, key: str) -> None:
        with self._guard:
            self._locks.pop(key, None)

    def __contains__(self, key: str) -> bool:
        with self._guard:
            return key in self._locks
