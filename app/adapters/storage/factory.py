"""Factory for the configured key-value store."""

from app.adapters.storage.base import AbstractKeyValueStore
from app.adapters.storage.file import FileKeyValueStore
from app.adapters.storage.in_memory import InMemoryKeyValueStore
from app.core.config import settings
from app.core.errors import ValidationAppError


def create_key_value_store() -> AbstractKeyValueStore:
    """Instantiate the store selected by ``settings.ads.storage_backend``.

    Returns:
        AbstractKeyValueStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    backend = settings.ads.storage_backend.lower()

    if backend == "memory":
        return InMemoryKeyValueStore()

    if backend == "file":
        return FileKeyValueStore(settings.ads.storage_path)

    raise ValidationAppError(
        code="ads_unknown_storage_backend",
        message=(
            f"Unknown storage backend: '{backend}'. Supported backends: memory, file"
        ),
        details={"backend": backend},
    )
