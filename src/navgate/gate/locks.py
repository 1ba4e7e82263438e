"""Per-key re-entrant locks serializing gate operations for one (tab, domain)."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

LockKey = tuple[int, str]


class KeyedLock:
    """Hand out one ``RLock`` per key.

    Distinct keys never contend. Re-entrancy lets a composite operation such
    as ``safe_navigate`` hold the lock across its check/record/navigate steps
    while still calling the individually-locked primitives.

    A key's lock is only dropped once nobody holds or waits on it, so two
    threads can never end up with different locks for the same key.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[LockKey, threading.RLock] = {}
        self._users: dict[LockKey, int] = {}
        self._retired: set[LockKey] = set()

    @contextmanager
    def hold(self, tab_id: int, domain: str) -> Iterator[None]:
        key = (tab_id, domain)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            self._users[key] = self._users.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    if key in self._retired:
                        self._retired.discard(key)
                        self._locks.pop(key, None)

    def discard(self, tab_id: int, domain: str) -> None:
        """Drop the lock for a key once its last user releases it."""
        key = (tab_id, domain)
        with self._guard:
            if key not in self._locks:
                return
            if self._users.get(key, 0) == 0:
                self._locks.pop(key, None)
            else:
                self._retired.add(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
