"""In-memory key-value store.

Default backend; preferences live as long as the process.
"""

from __future__ import annotations

import threading

from .base import KeyValueStore


class MemoryKeyValueStore(KeyValueStore):
    """In-memory key-value store.

    Thread-safe implementation using a lock.
    """

    def __init__(self) -> None:
        """Initialize the memory store."""
        self._values: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        """Read a value."""
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        """Write a value."""
        with self._lock:
            self._values[key] = value

    def remove(self, key: str) -> None:
        """Remove a key if present."""
        with self._lock:
            self._values.pop(key, None)

    def keys(self) -> list[str]:
        """List stored keys."""
        with self._lock:
            return list(self._values.keys())
