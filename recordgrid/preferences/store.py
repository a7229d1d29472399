"""Per-table preference persistence.

Maps a table id to the serialized save shape of its grid state under a
namespaced key. Every failure is reported and swallowed here: a broken
store degrades to "no preferences", never to a crashed grid.
"""

from __future__ import annotations

from pydantic import ValidationError

from ..exceptions import PreferenceError
from ..log import debug, info
from ..models import TablePreferences
from ..reporting import ErrorReporter, report_error
from .base import KeyValueStore


DEFAULT_KEY_PREFIX = "erp_table_preferences_"


def preference_key(table_id: str, prefix: str = DEFAULT_KEY_PREFIX) -> str:
    """Storage key for a table's preferences."""
    return f"{prefix}{table_id}"


def _tag(exc: PreferenceError, table_id: str) -> None:
    """Attach the table id to an error raised by a backend."""
    exc.table_id = table_id
    exc.context["table_id"] = table_id


class PreferenceStore:
    """Save, load and clear table preferences in a key-value store.

    Parameters
    ----------
    store : KeyValueStore
        Backing key-value store.
    key_prefix : str
        Namespace prepended to every table id.
    error_reporter : ErrorReporter, optional
        Receives PreferenceError for every failed operation.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        error_reporter: ErrorReporter | None = None,
    ) -> None:
        self._store = store
        self._key_prefix = key_prefix
        self._error_reporter = error_reporter

    @property
    def backend(self) -> KeyValueStore:
        """The underlying key-value store."""
        return self._store

    def key(self, table_id: str) -> str:
        """Namespaced key for ``table_id``."""
        return preference_key(table_id, self._key_prefix)

    def save(self, table_id: str, prefs: TablePreferences) -> bool:
        """Serialize and write preferences, overwriting any previous value.

        Returns
        -------
        bool
            True if written, False if the write failed (already reported).
        """
        try:
            payload = prefs.model_dump_json(by_alias=True, exclude_none=True)
            self._store.set(self.key(table_id), payload)
        except PreferenceError as exc:
            _tag(exc, table_id)
            report_error(self._error_reporter, exc)
            return False
        except (ValueError, TypeError) as exc:
            err = PreferenceError(
                "Could not serialize table preferences", table_id=table_id, operation="save"
            )
            err.__cause__ = exc
            report_error(self._error_reporter, err)
            return False
        info(f"Table preferences saved for {table_id}")
        return True

    def load(self, table_id: str) -> TablePreferences | None:
        """Read and decode preferences.

        Returns
        -------
        TablePreferences or None
            The stored preferences, or None if absent or undecodable.
        """
        try:
            raw = self._store.get(self.key(table_id))
        except PreferenceError as exc:
            _tag(exc, table_id)
            report_error(self._error_reporter, exc)
            return None

        if raw is None:
            debug(f"No stored preferences for {table_id}")
            return None

        try:
            return TablePreferences.model_validate_json(raw)
        except ValidationError as exc:
            err = PreferenceError(
                "Stored table preferences could not be decoded",
                table_id=table_id,
                operation="load",
            )
            err.__cause__ = exc
            report_error(self._error_reporter, err)
            return None

    def clear(self, table_id: str) -> None:
        """Remove stored preferences. Clearing an absent entry is a no-op."""
        try:
            self._store.remove(self.key(table_id))
        except PreferenceError as exc:
            _tag(exc, table_id)
            report_error(self._error_reporter, exc)
            return
        info(f"Table preferences cleared for {table_id}")

    def table_ids(self) -> list[str]:
        """Table ids that currently have stored preferences."""
        try:
            keys = self._store.keys()
        except PreferenceError as exc:
            report_error(self._error_reporter, exc)
            return []
        return sorted(k[len(self._key_prefix) :] for k in keys if k.startswith(self._key_prefix))
