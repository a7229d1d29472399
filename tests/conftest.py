"""Shared fixtures for recordgrid tests."""
# pylint: disable=redefined-outer-name

from __future__ import annotations

import asyncio
import os

from collections.abc import Mapping
from typing import Any

import pytest

from recordgrid.config import RecordGridSettings, clear_settings
from recordgrid.exceptions import RecordGridException
from recordgrid.models import ColumnDef, FetchResult, Query
from recordgrid.preferences import MemoryKeyValueStore, PreferenceStore, clear_store_cache


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Keep config files and RECORDGRID_* variables from leaking into tests."""
    for name in list(os.environ):
        if name.startswith("RECORDGRID"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    clear_settings()
    clear_store_cache()
    yield
    clear_settings()
    clear_store_cache()


def make_settings(**grid: Any) -> RecordGridSettings:
    """Settings with the given grid overrides."""
    return RecordGridSettings(grid=grid)


@pytest.fixture
def settings() -> RecordGridSettings:
    """Settings without the built-in selection column."""
    return make_settings(selection_column=False)


@pytest.fixture
def user_columns() -> list[ColumnDef]:
    """Columns resembling the users table."""
    return [
        ColumnDef(id="id", header="ID", size=80, sticky=True),
        ColumnDef(id="name", header="Name", size=180, sticky=True),
        ColumnDef(id="email", header="Email", size=220),
        ColumnDef(id="role", header="Role"),
        ColumnDef(id="actions", header=lambda: "Actions", exportable=False, sortable=False),
    ]


def make_users(count: int, start: int = 1) -> list[dict[str, Any]]:
    """Build ``count`` user records."""
    return [
        {"id": i, "name": f"User {i}", "email": f"user{i}@example.com", "role": "member"}
        for i in range(start, start + count)
    ]


class ReportCollector:
    """ErrorReporter that keeps every reported error."""

    def __init__(self) -> None:
        self.errors: list[RecordGridException] = []

    def __call__(self, exc: RecordGridException) -> None:
        self.errors.append(exc)


@pytest.fixture
def reporter() -> ReportCollector:
    """Collecting error reporter."""
    return ReportCollector()


@pytest.fixture
def preference_store(reporter: ReportCollector) -> PreferenceStore:
    """Preference store over an in-memory backend."""
    return PreferenceStore(MemoryKeyValueStore(), error_reporter=reporter)


class StubSource:
    """Record source serving a fixed dataset, recording every query."""

    def __init__(self, records: list[dict[str, Any]] | None = None) -> None:
        self.records = records if records is not None else make_users(25)
        self.queries: list[Query] = []
        self.fail_with: BaseException | None = None

    async def __call__(self, query: Query) -> FetchResult:
        self.queries.append(query)
        if self.fail_with is not None:
            raise self.fail_with
        size = query.pagination.page_size
        start = query.pagination.page_index * size
        page_count = (len(self.records) + size - 1) // size
        return FetchResult(
            rows=self.records[start : start + size],
            page_count=page_count,
            total_row_count=len(self.records),
        )


@pytest.fixture
def source() -> StubSource:
    """Record source with 25 users."""
    return StubSource()


class ControlledSource:
    """Record source whose responses the test resolves by hand.

    Each call parks on a future; ``resolve``/``fail`` complete the call
    made for the n-th query, in whatever order the test chooses.
    """

    def __init__(self) -> None:
        self.queries: list[Query] = []
        self._pending: list[asyncio.Future] = []

    async def __call__(self, query: Query) -> Mapping[str, Any]:
        self.queries.append(query)
        future = asyncio.get_running_loop().create_future()
        self._pending.append(future)
        return await future

    async def started(self, count: int) -> None:
        """Yield until at least ``count`` calls have been made."""
        while len(self._pending) < count:
            await asyncio.sleep(0)

    def resolve(self, index: int, rows: list[dict[str, Any]], page_count: int = 1) -> None:
        self._pending[index].set_result(
            {"rows": rows, "pageCount": page_count, "totalRowCount": len(rows)}
        )

    def fail(self, index: int, exc: BaseException) -> None:
        self._pending[index].set_exception(exc)


@pytest.fixture
def controlled_source() -> ControlledSource:
    """Record source resolved manually by the test."""
    return ControlledSource()
