"""In-memory key-value store.

Notes:
- Per-process only: state is lost on restart and not shared between workers.
- Thread-safe: uses a lock around the backing dict.
"""

from __future__ import annotations

import threading

from app.adapters.storage.base import AbstractKeyValueStore


class InMemoryKeyValueStore(AbstractKeyValueStore):
    """Dict-backed store for development and tests."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._data: dict[str, bytes] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)
