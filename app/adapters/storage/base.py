"""Key-value store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractKeyValueStore(ABC):
    """Interface for byte-valued key-value stores.

    Implementations raise ``StorageAppError`` when the backend fails; a missing
    key is not a failure.
    """

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Return the stored value for key, or None if absent."""
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        """Store value under key, replacing any previous value."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key if present."""
        raise NotImplementedError
