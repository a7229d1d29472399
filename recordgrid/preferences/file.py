"""File-backed key-value store.

All keys live in one JSON document on disk, the desktop counterpart of
browser local storage. Writes replace the document atomically.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading

from pathlib import Path

from ..exceptions import PreferenceError
from .base import KeyValueStore


class FileKeyValueStore(KeyValueStore):
    """Key-value store persisted to a single JSON file."""

    def __init__(self, path: str | Path) -> None:
        """Initialize the file store.

        Parameters
        ----------
        path : str or Path
            Location of the JSON document. Created on first write.
        """
        self._path = Path(path).expanduser()
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        """Location of the backing document."""
        return self._path

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PreferenceError(
                "Could not read preference file", operation="load", path=str(self._path)
            ) from exc
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PreferenceError(
                "Preference file is not valid JSON", operation="load", path=str(self._path)
            ) from exc
        if not isinstance(data, dict):
            raise PreferenceError(
                "Preference file does not hold an object", operation="load", path=str(self._path)
            )
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: dict[str, str]) -> None:
        tmp_name = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix="tmp_prefs_", suffix=".json", dir=self._path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False, indent=2, sort_keys=True)
            os.replace(tmp_name, self._path)
        except OSError as exc:
            raise PreferenceError(
                "Could not write preference file", operation="save", path=str(self._path)
            ) from exc
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.remove(tmp_name)

    def get(self, key: str) -> str | None:
        """Read a value."""
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        """Write a value."""
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove(self, key: str) -> None:
        """Remove a key if present."""
        with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)

    def keys(self) -> list[str]:
        """List stored keys."""
        with self._lock:
            return list(self._read().keys())
