"""File-backed key-value store.

Each key maps to one file named by the SHA-256 of the key, so arbitrary keys
(including visitor ids) are safe as file names. Writes go to a temporary file
in the same directory and are moved into place with os.replace, so readers
never observe a half-written value.

Concurrent writers for the same key are not coordinated: the last write wins.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from pathlib import Path

from app.adapters.storage.base import AbstractKeyValueStore
from app.core.errors import StorageAppError

logger = logging.getLogger(__name__)


class FileKeyValueStore(AbstractKeyValueStore):
    """Store values as individual files under a directory."""

    def __init__(self, directory: str | Path) -> None:
        """Initialize the store.

        The directory is created on first write, so an unusable path surfaces
        as ``StorageAppError`` from ``get``/``set`` rather than at startup.

        Args:
            directory: Directory holding one file per key.
        """
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode()).hexdigest()
        return self._directory / f"{digest}.json"

    def get(self, key: str) -> bytes | None:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageAppError(
                code="storage_read_failed",
                message=f"Cannot read stored value: {exc}",
                details={"backend": "file"},
            ) from exc

    def set(self, key: str, value: bytes) -> None:
        path = self._path_for(key)
        tmp_name: str | None = None
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._directory, suffix=".tmp")
            with os.fdopen(fd, "wb") as fh:
                fh.write(value)
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.debug("storage.tmp_cleanup_failed", extra={"tmp_file": tmp_name})
            raise StorageAppError(
                code="storage_write_failed",
                message=f"Cannot write stored value: {exc}",
                details={"backend": "file"},
            ) from exc

    def delete(self, key: str) -> None:
        try:
            self._path_for(key).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageAppError(
                code="storage_write_failed",
                message=f"Cannot delete stored value: {exc}",
                details={"backend": "file"},
            ) from exc
