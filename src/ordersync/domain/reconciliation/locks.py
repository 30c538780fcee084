"""Per-order mutual exclusion for baseline and conflict writes."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Hashable, Iterator


class KeyedLocks:
    """Lazily created ``threading.Lock`` per key.

    Locks are never evicted; the key space is bounded by the number of orders a
    process touches.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: Hashable, *, timeout: float = -1) -> Iterator[None]:
        lock = self.lock_for(key)
        if not lock.acquire(timeout=timeout):
            raise TimeoutError(f"Timed out waiting for lock on {key!r}")
        try:
            yield
        finally:
            lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


ORDER_LOCKS = KeyedLocks()
"""Process-wide registry shared by the import orchestrator and the resolution executor."""
