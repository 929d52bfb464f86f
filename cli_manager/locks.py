"""
Per-tool locking for install, update, uninstall and repair.

Two concurrent operations on the same tool key within one process run one
after the other; operations on different keys never wait on each other.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class KeyedLock:
    """A lazily created re-entrant lock per key."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def get(self, key: str) -> threading.RLock:
        """Return the lock for a key, creating it on first use."""
        key = key.lower()
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self.get(key)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Process-wide instance used by the orchestrators
TOOL_LOCKS = KeyedLock()


def tool_lock(key: str):
    """Context manager serializing operations on one tool key."""
    return TOOL_LOCKS.hold(key)
