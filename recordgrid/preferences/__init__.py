"""recordgrid preference persistence package.

Stores the layout a user saved for each table (visibility, filters,
sorting, column widths, pagination, global filter) in a pluggable
key-value backend. The default is in-memory storage.

Usage
-----
    from recordgrid.preferences import get_preference_store

    # Configure via environment variables:
    # RECORDGRID_PREFERENCES__BACKEND=file
    # RECORDGRID_PREFERENCES__FILE_PATH=~/.config/myapp/tables.json

Examples
--------
>>> from recordgrid.preferences import MemoryKeyValueStore, PreferenceStore
>>> store = PreferenceStore(MemoryKeyValueStore())
>>> store.load("users") is None
True
"""

from __future__ import annotations

from ._factory import build_key_value_store, clear_store_cache, get_preference_store
from .base import KeyValueStore
from .file import FileKeyValueStore
from .memory import MemoryKeyValueStore
from .store import DEFAULT_KEY_PREFIX, PreferenceStore, preference_key


__all__ = [
    "DEFAULT_KEY_PREFIX",
    "FileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "PreferenceStore",
    "build_key_value_store",
    "clear_store_cache",
    "get_preference_store",
    "preference_key",
]
