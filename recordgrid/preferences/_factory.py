"""Factory functions for preference stores."""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

from ..config import get_settings
from ..exceptions import GridConfigurationError
from .file import FileKeyValueStore
from .memory import MemoryKeyValueStore
from .store import PreferenceStore


if TYPE_CHECKING:
    from ..config import PreferenceSettings
    from .base import KeyValueStore


def build_key_value_store(settings: PreferenceSettings) -> KeyValueStore:
    """Create the key-value backend named by ``settings.backend``.

    Raises
    ------
    GridConfigurationError
        If the backend name is unknown.
    """
    backend = settings.backend

    if backend == "memory":
        return MemoryKeyValueStore()

    if backend == "file":
        return FileKeyValueStore(settings.file_path)

    if backend == "redis":
        from .redis import RedisKeyValueStore

        return RedisKeyValueStore(redis_url=settings.redis_url)

    raise GridConfigurationError(f"Unknown preference backend '{backend}'", backend=backend)


@lru_cache(maxsize=1)
def get_preference_store() -> PreferenceStore:
    """Get the configured preference store instance.

    Returns
    -------
    PreferenceStore
        Store using the configured backend and key prefix.
    """
    settings = get_settings().preferences
    return PreferenceStore(build_key_value_store(settings), key_prefix=settings.key_prefix)


def clear_store_cache() -> None:
    """Clear the cached preference store.

    Call this to force re-creation (e.g., after a config change).
    """
    get_preference_store.cache_clear()
