"""Grid state controller.

Owns the interactive state of one grid, keeps it in sync with a remote
record source and exposes a read-only view for the renderer.

State slices fall into two groups:

- Navigational (pagination, sorting, column filters, global filter):
  changing one of these issues a fetch. Sorting and filter changes also
  send the grid back to the first page.
- Presentational (column visibility, column sizing, row selection):
  local only, never fetch.

Fetches run as asyncio tasks. Every request carries a sequence number
and only the response to the latest request is applied; earlier
responses are discarded when they arrive.

Usage:
    grid = GridController(columns, HttpRecordSource(url), table_id="users")
    await grid.mount()
    grid.toggle_sorting("name")
    await grid.wait_idle()
    view = grid.view_state()
"""

from __future__ import annotations

import asyncio

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import TypeAdapter

from . import export
from .config import RecordGridSettings, get_settings
from .exceptions import FetchError, GridConfigurationError
from .layout import compute_sticky_offsets, effective_width, is_visible, total_width
from .log import debug, info, log_callback_error
from .models import (
    ColumnDef,
    ColumnFilter,
    ColumnSort,
    GridState,
    GridViewState,
    PaginationState,
    Query,
    TablePreferences,
    ViewColumn,
    merge_preferences,
)
from .preferences import PreferenceStore, get_preference_store
from .reporting import ErrorReporter, report_error
from .source import RecordSource, coerce_result


if TYPE_CHECKING:
    from .delivery import FileDelivery


T = TypeVar("T")
Updater = Callable[[T], T]
SelectionCallback = Callable[[set[str]], None]

SELECT_COLUMN_ID = "select"
_PAGE_INDEX_KEYS = frozenset({"pageIndex", "page_index"})

_SORTING = TypeAdapter(list[ColumnSort])
_FILTERS = TypeAdapter(list[ColumnFilter])
_VISIBILITY = TypeAdapter(dict[str, bool])
_SIZING = TypeAdapter(dict[str, float])


def _resolve(next_value: T | Updater[T], previous: T) -> T:
    """Apply the updater form, or return a plain value unchanged."""
    if callable(next_value):
        return next_value(previous)
    return next_value


def _direction(sort: ColumnSort) -> str:
    return "desc" if sort.descending else "asc"


def selection_column(width: float = 50) -> ColumnDef:
    """Built-in row-selection checkbox column."""
    return ColumnDef(
        id=SELECT_COLUMN_ID,
        size=width,
        sticky=True,
        sortable=False,
        filterable=False,
        hideable=False,
        exportable=False,
        resizable=False,
    )


def validate_columns(columns: Iterable[ColumnDef]) -> tuple[ColumnDef, ...]:
    """Check that column ids are unique.

    Raises
    ------
    GridConfigurationError
        If two columns share an id.
    """
    result = tuple(columns)
    seen: set[str] = set()
    for column in result:
        if column.id in seen:
            raise GridConfigurationError(
                f"Duplicate column id '{column.id}'", column_id=column.id
            )
        seen.add(column.id)
    return result


class GridController:  # pylint: disable=too-many-instance-attributes,too-many-public-methods
    """Headless controller for one server-paginated grid.

    Parameters
    ----------
    columns : Sequence[ColumnDef]
        Column definitions in display order. Ids must be unique.
    fetch : RecordSource
        Async callable returning one page of records for a Query.
    table_id : str
        Identifies the grid for preference storage and default export
        filenames.
    preference_store : PreferenceStore, optional
        Where preferences are saved. Defaults to the configured store.
    error_reporter : ErrorReporter, optional
        Receives every recoverable error. Defaults to logging.
    on_row_selection_change : callable, optional
        Called with the new selection whenever it changes.
    settings : RecordGridSettings, optional
        Settings to use instead of the global ones.

    Raises
    ------
    GridConfigurationError
        On duplicate column ids or a non-positive default page size.

    Notes
    -----
    Mutators are synchronous and must be called with a running event
    loop. Those that fetch return the scheduled ``asyncio.Task``; the
    rest return None.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        columns: Sequence[ColumnDef],
        fetch: RecordSource,
        *,
        table_id: str,
        preference_store: PreferenceStore | None = None,
        error_reporter: ErrorReporter | None = None,
        on_row_selection_change: SelectionCallback | None = None,
        settings: RecordGridSettings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        grid_settings = self._settings.grid

        if grid_settings.page_size <= 0:
            raise GridConfigurationError(
                f"Page size must be positive, got {grid_settings.page_size}",
                table_id=table_id,
            )

        defined = list(columns)
        if grid_settings.selection_column:
            defined.insert(0, selection_column(grid_settings.selection_column_width))
        self._columns = validate_columns(defined)
        self._columns_by_id = {c.id: c for c in self._columns}

        if preference_store is None:
            shared = get_preference_store()
            preference_store = PreferenceStore(
                shared.backend,
                key_prefix=self._settings.preferences.key_prefix,
                error_reporter=error_reporter,
            )

        self.table_id = table_id
        self._fetch = fetch
        self._preference_store = preference_store
        self._error_reporter = error_reporter
        self._on_row_selection_change = on_row_selection_change

        self._state = GridState.initial(grid_settings.page_size)
        self._rows: list[dict[str, Any]] = []
        self._page_count = 0
        self._total_row_count = 0
        self._page_count_known = False
        self._loading = False

        self._sequence = 0
        self._tasks: set[asyncio.Task[None]] = set()

    # --- Read-only accessors ---

    @property
    def columns(self) -> tuple[ColumnDef, ...]:
        """All column definitions, including the selection column."""
        return self._columns

    @property
    def state(self) -> GridState:
        """Deep copy of the current grid state."""
        return self._state.model_copy(deep=True)

    @property
    def rows(self) -> list[dict[str, Any]]:
        """Records of the current page."""
        return list(self._rows)

    @property
    def row_ids(self) -> list[str]:
        """Ids of the records of the current page."""
        return [self._row_id(record, i) for i, record in enumerate(self._rows)]

    @property
    def page_count(self) -> int:
        return self._page_count

    @property
    def total_row_count(self) -> int:
        return self._total_row_count

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def request_id(self) -> int:
        """Sequence number of the most recently issued fetch."""
        return self._sequence

    def query(self) -> Query:
        """The query the current state would send."""
        return self._state.query()

    # --- Lifecycle ---

    def mount(self) -> asyncio.Task[None]:
        """Merge stored preferences into the state and issue the first fetch.

        Only the slices present in the stored document override the fresh
        defaults.
        """
        prefs = self._preference_store.load(self.table_id)
        if prefs is not None:
            self._state = merge_preferences(self._state, prefs)
            debug(f"Restored preferences for {self.table_id}: {prefs.present_slices()}")
        return self._request()

    def unmount(self) -> None:
        """Discard in-flight responses and return to a fresh, empty state.

        Unsaved preferences are lost.
        """
        self._sequence += 1
        self._state = GridState.initial(self._settings.grid.page_size)
        self._rows = []
        self._page_count = 0
        self._total_row_count = 0
        self._page_count_known = False
        self._loading = False

    async def wait_idle(self) -> None:
        """Wait until every scheduled fetch (and any refetch it causes) is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # --- Preferences ---

    def preferences(self) -> TablePreferences:
        """Save shape of the current state. Row selection is never included."""
        return TablePreferences.from_state(self._state)

    def save_preferences(self) -> bool:
        """Persist the current layout for this table.

        Returns
        -------
        bool
            True if written. Failures are reported, never raised.
        """
        return self._preference_store.save(self.table_id, self.preferences())

    # --- Navigational mutators ---

    def set_pagination(
        self, next_value: PaginationState | Mapping[str, Any] | Updater[PaginationState]
    ) -> asyncio.Task[None] | None:
        """Replace pagination. Never resets itself; fetches if changed.

        A negative page index is treated as 0. Once the page count is known
        the page index is clamped into range.
        """
        value = _resolve(next_value, self._state.pagination.model_copy())
        if isinstance(value, Mapping):
            value = {
                k: max(v, 0) if k in _PAGE_INDEX_KEYS and isinstance(v, int) else v
                for k, v in value.items()
            }
        pagination = PaginationState.model_validate(value)
        pagination = self._clamp(
            pagination.model_copy(update={"page_index": max(pagination.page_index, 0)})
        )
        if pagination == self._state.pagination:
            return None
        self._state.pagination = pagination
        return self._request()

    def set_sorting(
        self, next_value: Sequence[ColumnSort | Mapping[str, Any]] | Updater[list[ColumnSort]]
    ) -> asyncio.Task[None] | None:
        """Replace sorting. Returns to the first page and fetches if changed."""
        sorting = _SORTING.validate_python(
            list(_resolve(next_value, list(self._state.sorting)))
        )
        if sorting == self._state.sorting:
            return None
        self._state.sorting = sorting
        return self._navigate()

    def set_column_filters(
        self,
        next_value: Sequence[ColumnFilter | Mapping[str, Any]] | Updater[list[ColumnFilter]],
    ) -> asyncio.Task[None] | None:
        """Replace column filters. Returns to the first page and fetches if changed.

        A column keeps at most one filter; a later entry for the same id wins.
        """
        filters = _FILTERS.validate_python(
            list(_resolve(next_value, list(self._state.column_filters)))
        )
        by_id: dict[str, ColumnFilter] = {}
        for column_filter in filters:
            by_id[column_filter.column_id] = column_filter
        filters = list(by_id.values())
        if filters == self._state.column_filters:
            return None
        self._state.column_filters = filters
        return self._navigate()

    def set_global_filter(self, next_value: str | Updater[str]) -> asyncio.Task[None] | None:
        """Replace the global filter. Returns to the first page and fetches if changed."""
        value = _resolve(next_value, self._state.global_filter)
        value = "" if value is None else str(value)
        if value == self._state.global_filter:
            return None
        self._state.global_filter = value
        return self._navigate()

    def refresh(self) -> asyncio.Task[None]:
        """Refetch the current query unconditionally."""
        return self._request()

    def reset_all(self) -> asyncio.Task[None] | None:
        """Return every slice to its default and clear stored preferences.

        Fetches only if the query changed.
        """
        previous_query = self._state.query()
        self._set_selection(set())
        self._state = GridState.initial(self._settings.grid.page_size)
        self._preference_store.clear(self.table_id)
        info(f"Grid {self.table_id} reset to defaults")
        if self._state.query() == previous_query:
            return None
        return self._request()

    # --- Presentational mutators ---

    def set_column_visibility(
        self, next_value: Mapping[str, bool] | Updater[dict[str, bool]]
    ) -> None:
        """Replace column visibility. Never fetches."""
        self._state.column_visibility = _VISIBILITY.validate_python(
            dict(_resolve(next_value, dict(self._state.column_visibility)))
        )

    def set_column_sizing(
        self, next_value: Mapping[str, float] | Updater[dict[str, float]]
    ) -> None:
        """Replace column widths. Never fetches.

        Raises
        ------
        ValueError
            If a width is not positive.
        """
        sizing = _SIZING.validate_python(
            dict(_resolve(next_value, dict(self._state.column_sizing)))
        )
        for column_id, width in sizing.items():
            if width <= 0:
                raise ValueError(f"Width for column '{column_id}' must be positive, got {width}")
        self._state.column_sizing = sizing

    def set_row_selection(self, next_value: Iterable[str] | Updater[set[str]]) -> None:
        """Replace the selected row ids. Never fetches."""
        self._set_selection(
            {str(v) for v in _resolve(next_value, set(self._state.row_selection))}
        )

    # --- Pagination helpers ---

    def set_page_index(self, page_index: int) -> asyncio.Task[None] | None:
        return self.set_pagination(
            lambda p: p.model_copy(update={"page_index": max(page_index, 0)})
        )

    def set_page_size(self, page_size: int) -> asyncio.Task[None] | None:
        """Change rows per page, keeping the first visible row on screen.

        Raises
        ------
        GridConfigurationError
            If the page size is not positive.
        """
        if page_size <= 0:
            raise GridConfigurationError(
                f"Page size must be positive, got {page_size}", table_id=self.table_id
            )
        current = self._state.pagination
        first_row = current.page_index * current.page_size
        return self.set_pagination(
            PaginationState(page_index=first_row // page_size, page_size=page_size)
        )

    def can_previous_page(self) -> bool:
        return self._state.pagination.page_index > 0

    def can_next_page(self) -> bool:
        return self._state.pagination.page_index < self._page_count - 1

    def first_page(self) -> asyncio.Task[None] | None:
        return self.set_page_index(0)

    def previous_page(self) -> asyncio.Task[None] | None:
        if not self.can_previous_page():
            return None
        return self.set_page_index(self._state.pagination.page_index - 1)

    def next_page(self) -> asyncio.Task[None] | None:
        if not self.can_next_page():
            return None
        return self.set_page_index(self._state.pagination.page_index + 1)

    def last_page(self) -> asyncio.Task[None] | None:
        return self.set_page_index(max(self._page_count - 1, 0))

    # --- Column helpers ---

    def toggle_sorting(self, column_id: str, multi: bool = False) -> asyncio.Task[None] | None:
        """Cycle a column through ascending, descending and unsorted.

        With ``multi`` the other sort keys are kept; otherwise this column
        becomes the only one. Ignored for unknown or non-sortable columns.
        """
        column = self._columns_by_id.get(column_id)
        if column is None or not column.sortable:
            return None

        current = next((s for s in self._state.sorting if s.column_id == column_id), None)
        if current is None:
            replacement: ColumnSort | None = ColumnSort(column_id=column_id, descending=False)
        elif not current.descending:
            replacement = ColumnSort(column_id=column_id, descending=True)
        else:
            replacement = None

        if not multi:
            return self.set_sorting([replacement] if replacement else [])

        sorting = [s for s in self._state.sorting if s.column_id != column_id]
        if replacement is not None:
            if current is None:
                sorting.append(replacement)
            else:
                position = self._state.sorting.index(current)
                sorting.insert(position, replacement)
        return self.set_sorting(sorting)

    def set_column_filter(self, column_id: str, value: Any) -> asyncio.Task[None] | None:
        """Set or clear (empty value) one column's filter.

        Ignored for unknown or non-filterable columns.
        """
        column = self._columns_by_id.get(column_id)
        if column is None or not column.filterable:
            return None
        others = [f for f in self._state.column_filters if f.column_id != column_id]
        if value is None or value == "":
            return self.set_column_filters(others)
        return self.set_column_filters([*others, ColumnFilter(column_id=column_id, value=value)])

    def toggle_column_visibility(self, column_id: str, visible: bool | None = None) -> None:
        """Show or hide a column. Ignored for unknown or non-hideable columns."""
        column = self._columns_by_id.get(column_id)
        if column is None or not column.hideable:
            return
        if visible is None:
            visible = not is_visible(column, self._state.column_visibility)
        self.set_column_visibility(lambda v: {**v, column_id: visible})

    def resize_column(self, column_id: str, width: float) -> None:
        """Set one column's width. Ignored for unknown or non-resizable columns.

        Raises
        ------
        ValueError
            If ``width`` is not positive.
        """
        if width <= 0:
            raise ValueError(f"Width must be positive, got {width}")
        column = self._columns_by_id.get(column_id)
        if column is None or not column.resizable:
            return
        self.set_column_sizing(lambda s: {**s, column_id: float(width)})

    # --- Selection helpers ---

    def toggle_row_selected(self, row_id: str, selected: bool | None = None) -> None:
        row_id = str(row_id)
        if selected is None:
            selected = row_id not in self._state.row_selection
        selection = set(self._state.row_selection)
        if selected:
            selection.add(row_id)
        else:
            selection.discard(row_id)
        self._set_selection(selection)

    def toggle_all_rows_selected(self, selected: bool | None = None) -> None:
        """Select or deselect every row of the current page."""
        if selected is None:
            selected = not self.is_all_rows_selected()
        self._set_selection(set(self.row_ids) if selected else set())

    def is_all_rows_selected(self) -> bool:
        ids = self.row_ids
        return bool(ids) and all(i in self._state.row_selection for i in ids)

    def is_some_rows_selected(self) -> bool:
        """True when at least one, but not every, row is selected."""
        ids = self.row_ids
        return any(i in self._state.row_selection for i in ids) and not self.is_all_rows_selected()

    def selected_rows(self) -> list[dict[str, Any]]:
        """Records of the current page whose ids are selected."""
        return [
            record
            for i, record in enumerate(self._rows)
            if self._row_id(record, i) in self._state.row_selection
        ]

    # --- View ---

    def view_state(self) -> GridViewState:
        """Snapshot of everything the renderer needs to draw the grid."""
        state = self._state
        default_size = self._settings.grid.default_column_size
        offsets = compute_sticky_offsets(
            self._columns, state.column_visibility, state.column_sizing, default_size
        )
        sort_positions = {s.column_id: (i, s) for i, s in enumerate(state.sorting)}
        filter_values = {f.column_id: f.value for f in state.column_filters}

        view_columns = []
        for column in self._columns:
            if not is_visible(column, state.column_visibility):
                continue
            sort = sort_positions.get(column.id)
            view_columns.append(
                ViewColumn(
                    id=column.id,
                    header=column.header,
                    width=effective_width(column, state.column_sizing, default_size),
                    sticky=column.sticky,
                    sticky_offset=offsets.get(column.id),
                    sortable=column.sortable,
                    filterable=column.filterable,
                    resizable=column.resizable,
                    sort_direction=_direction(sort[1]) if sort else None,
                    sort_index=sort[0] if sort else None,
                    filter_value=filter_values.get(column.id),
                )
            )

        if self._loading:
            status = "loading"
        elif not self._rows:
            status = "empty"
        else:
            status = "ready"

        return GridViewState(
            columns=view_columns,
            rows=self.rows,
            row_ids=self.row_ids,
            loading=self._loading,
            status=status,
            pagination=state.pagination.model_copy(),
            page_count=self._page_count,
            total_row_count=self._total_row_count,
            selected_count=len(state.row_selection),
            total_width=total_width(
                self._columns, state.column_visibility, state.column_sizing, default_size
            ),
            global_filter=state.global_filter,
            can_previous_page=self.can_previous_page(),
            can_next_page=self.can_next_page(),
        )

    # --- Export ---

    def export_csv(self, deliver: FileDelivery, filename: str | None = None) -> bool:
        """Export the current page as CSV through ``deliver``.

        Hidden and non-exportable columns are left out. Returns True if a
        file was delivered.
        """
        return export.export_csv(
            self._rows,
            self._columns,
            deliver,
            filename=filename or f"{self.table_id}.csv",
            visibility=self._state.column_visibility,
            mime_type=self._settings.export.csv_mime_type,
            error_reporter=self._error_reporter,
        )

    def export_xlsx(self, deliver: FileDelivery, filename: str | None = None) -> bool:
        """Export the current page as a single-sheet XLSX workbook."""
        return export.export_xlsx(
            self._rows,
            self._columns,
            deliver,
            filename=filename or f"{self.table_id}.xlsx",
            visibility=self._state.column_visibility,
            sheet_name=self._settings.export.sheet_name,
            mime_type=self._settings.export.xlsx_mime_type,
            error_reporter=self._error_reporter,
        )

    # --- Internals ---

    def _row_id(self, record: Mapping[str, Any], index: int) -> str:
        key = self._settings.grid.row_id_key
        if key is not None and record.get(key) is not None:
            return str(record[key])
        return str(index)

    def _set_selection(self, selection: set[str]) -> None:
        if selection == self._state.row_selection:
            return
        self._state.row_selection = selection
        if self._on_row_selection_change is None:
            return
        try:
            self._on_row_selection_change(set(selection))
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_callback_error(self.table_id, "row selection", exc)

    def _clamp(self, pagination: PaginationState) -> PaginationState:
        if not self._page_count_known:
            return pagination
        last_index = max(self._page_count - 1, 0)
        if pagination.page_index > last_index:
            return pagination.model_copy(update={"page_index": last_index})
        return pagination

    def _navigate(self) -> asyncio.Task[None]:
        """Send the grid back to the first page and fetch."""
        self._state.pagination = self._state.pagination.model_copy(update={"page_index": 0})
        return self._request()

    def _request(self) -> asyncio.Task[None]:
        loop = asyncio.get_running_loop()
        self._sequence += 1
        request_id = self._sequence
        query = self._state.query()

        self._loading = True
        self._set_selection(set())
        debug(f"[{self.table_id}] fetch #{request_id} issued: {query.to_dict()}")

        task = loop.create_task(self._run_fetch(request_id, query))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_fetch(self, request_id: int, query: Query) -> None:
        try:
            result = coerce_result(await self._fetch(query))
        except FetchError as exc:
            failure = exc
        except Exception as exc:  # pylint: disable=broad-exception-caught
            failure = FetchError(f"Record source failed: {exc}")
            failure.__cause__ = exc
        else:
            if request_id != self._sequence:
                debug(
                    f"[{self.table_id}] fetch #{request_id} discarded "
                    f"(latest is #{self._sequence})"
                )
                return
            self._apply(request_id, result.rows, result.page_count, result.total_row_count)
            return

        if request_id != self._sequence:
            debug(f"[{self.table_id}] failed fetch #{request_id} discarded")
            return
        self._loading = False
        failure.table_id = self.table_id
        failure.request_id = request_id
        failure.context.update(table_id=self.table_id, request_id=request_id)
        report_error(self._error_reporter, failure)

    def _apply(
        self, request_id: int, rows: list[dict[str, Any]], page_count: int, total: int
    ) -> None:
        self._rows = rows
        self._page_count = page_count
        self._total_row_count = total
        self._page_count_known = True
        self._loading = False
        self._set_selection(set())
        debug(
            f"[{self.table_id}] fetch #{request_id} applied: "
            f"{len(rows)} rows, {page_count} pages, {total} total"
        )

        clamped = self._clamp(self._state.pagination)
        if clamped != self._state.pagination:
            info(
                f"[{self.table_id}] page {self._state.pagination.page_index} out of range, "
                f"moving to {clamped.page_index}"
            )
            self._state.pagination = clamped
            self._request()
