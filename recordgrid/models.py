"""Grid state, query and column models.

All state models use snake_case in Python and serialize to the camelCase
keys the persisted preference documents use:

    GridState().pagination.to_dict()
    # {"pageIndex": 0, "pageSize": 10}

ColumnSort and ColumnFilter keep the short ``id``/``desc`` keys of the
table library the browser front end was built on, so stored preferences
stay readable by both.
"""

from __future__ import annotations

import copy
import inspect

from collections.abc import Callable, Mapping
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    field_serializer,
    field_validator,
)

from .log import debug, warn


# --- Value Serialization Helpers ---


# pylint: disable=R0911
def serialize_value(  # noqa: PLR0911
    value: Any,
) -> Any:
    """Convert a single cell value to a plain Python value.

    Handles:
    - pandas Timestamp → ISO 8601 string
    - datetime.datetime → ISO 8601 string
    - datetime.date → ISO 8601 date string
    - pandas Timedelta → human-readable string
    - datetime.timedelta → human-readable string
    - numpy types → Python native types
    - NaN/NaT → None
    """
    if value is None:
        return None

    # pandas NaT and numpy NaN
    try:
        import pandas as pd  # type: ignore[import-untyped]

        if pd.isna(value):
            return None
    except (ImportError, TypeError, ValueError):
        pass

    # pandas Timedelta - check BEFORE isoformat (Timedelta has isoformat too)
    if hasattr(value, "total_seconds") and hasattr(value, "components"):
        components = value.components
        if components.days:
            return f"{components.days}d {components.hours:02d}:{components.minutes:02d}:{components.seconds:02d}"
        return f"{components.hours:02d}:{components.minutes:02d}:{components.seconds:02d}"

    # datetime.timedelta (no components attribute)
    if (
        hasattr(value, "total_seconds")
        and hasattr(value, "days")
        and not hasattr(value, "components")
    ):
        total_secs = int(value.total_seconds())
        hours, remainder = divmod(total_secs, 3600)
        minutes, seconds = divmod(remainder, 60)
        if value.days:
            return f"{value.days}d {hours % 24:02d}:{minutes:02d}:{seconds:02d}"
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"

    if hasattr(value, "isoformat"):
        return value.isoformat()

    # numpy scalar types → Python native
    if hasattr(value, "item"):
        try:
            return value.item()
        except (AttributeError, ValueError):
            pass

    return value


def normalize_rows(data: Any) -> list[dict[str, Any]]:
    """Convert a source payload into a list of record dicts.

    Handles:
    - pandas/polars DataFrame (duck typed)
    - list of mappings: [{'a': 1}, {'a': 2}]
    - dict of lists: {'a': [1, 2], 'b': [3, 4]}
    """
    if data is None:
        return []

    # pandas DataFrame
    if hasattr(data, "to_dict") and hasattr(data, "columns"):
        return [dict(r) for r in data.to_dict(orient="records")]

    # polars DataFrame
    if hasattr(data, "to_dicts"):
        return [dict(r) for r in data.to_dicts()]

    if isinstance(data, Mapping):
        columns = list(data.keys())
        first_value = next(iter(data.values()), None)
        if isinstance(first_value, (list, tuple)):
            num_rows = len(first_value)
            return [{col: data[col][i] for col in columns} for i in range(num_rows)]
        return [dict(data)]

    rows = list(data)
    for row in rows:
        if not isinstance(row, Mapping):
            raise TypeError(f"Rows must be mappings, got {type(row).__name__}")
    return [dict(row) for row in rows]


# --- Base Model with camelCase serialization ---


class GridModel(BaseModel):
    """Base model for grid state objects with camelCase serialization."""

    model_config = ConfigDict(
        populate_by_name=True,  # Accept both snake_case and camelCase
        extra="ignore",
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dict with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


# --- State slices ---


class PaginationState(GridModel):
    """Current page position.

    ``page_index`` is zero based.
    """

    page_index: int = Field(default=0, ge=0, alias="pageIndex")
    page_size: int = Field(default=10, gt=0, alias="pageSize")


class ColumnSort(GridModel):
    """One sort key. Position in the sorting list encodes precedence."""

    column_id: str = Field(alias="id")
    descending: bool = Field(default=False, alias="desc")


class ColumnFilter(GridModel):
    """Opaque filter predicate for one column.

    The grid transports ``value``; the remote source interprets it.
    """

    column_id: str = Field(alias="id")
    value: str

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, v: Any) -> str:
        """Filter values are transported as strings."""
        return "" if v is None else str(v)


class Query(GridModel):
    """Navigational state sent to the remote source for one fetch.

    Compared by value: two queries with equal slices are the same query.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    pagination: PaginationState = Field(default_factory=PaginationState)
    sorting: tuple[ColumnSort, ...] = ()
    column_filters: tuple[ColumnFilter, ...] = Field(default=(), alias="columnFilters")
    global_filter: str = Field(default="", alias="globalFilter")


class FetchResult(GridModel):
    """One page of records returned by the remote source.

    Accepts ``rows`` or ``data`` for the records and either naming style
    for the counts, so plain response dicts can be returned from sources.
    """

    rows: list[dict[str, Any]] = Field(
        default_factory=list, validation_alias=AliasChoices("rows", "data")
    )
    page_count: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("page_count", "pageCount")
    )
    total_row_count: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("total_row_count", "totalRowCount")
    )

    @field_validator("rows", mode="before")
    @classmethod
    def coerce_rows(cls, v: Any) -> list[dict[str, Any]]:
        """Accept DataFrames and column-oriented dicts as well as record lists."""
        return normalize_rows(v)


class GridState(GridModel):
    """All interactive state of one grid.

    ``row_selection`` is UI-local and excluded from every persisted shape.
    """

    pagination: PaginationState = Field(default_factory=PaginationState)
    sorting: list[ColumnSort] = Field(default_factory=list)
    column_filters: list[ColumnFilter] = Field(default_factory=list, alias="columnFilters")
    global_filter: str = Field(default="", alias="globalFilter")
    column_visibility: dict[str, bool] = Field(default_factory=dict, alias="columnVisibility")
    column_sizing: dict[str, float] = Field(default_factory=dict, alias="columnSizing")
    row_selection: set[str] = Field(default_factory=set, alias="rowSelection", exclude=True)

    @field_validator("column_sizing", mode="after")
    @classmethod
    def validate_positive_sizes(cls, v: dict[str, float]) -> dict[str, float]:
        """Column widths must be positive."""
        for column_id, width in v.items():
            if width <= 0:
                raise ValueError(f"Width for column '{column_id}' must be positive, got {width}")
        return v

    @classmethod
    def initial(cls, page_size: int) -> GridState:
        """Fresh state for a newly mounted grid."""
        return cls(pagination=PaginationState(page_index=0, page_size=page_size))

    def query(self) -> Query:
        """Navigational slices as a Query."""
        return Query(
            pagination=self.pagination,
            sorting=tuple(self.sorting),
            column_filters=tuple(self.column_filters),
            global_filter=self.global_filter,
        )


class TablePreferences(GridModel):
    """Persisted subset of GridState.

    Every slice is optional: only slices present in a stored document
    override a freshly initialized grid.
    """

    column_visibility: dict[str, bool] | None = Field(default=None, alias="columnVisibility")
    column_filters: list[ColumnFilter] | None = Field(default=None, alias="columnFilters")
    sorting: list[ColumnSort] | None = None
    column_sizing: dict[str, float] | None = Field(default=None, alias="columnSizing")
    pagination: PaginationState | None = None
    global_filter: str | None = Field(default=None, alias="globalFilter")

    @classmethod
    def from_state(cls, state: GridState) -> TablePreferences:
        """Save shape of a grid state (every slice except row selection)."""
        return cls(
            column_visibility=dict(state.column_visibility),
            column_filters=list(state.column_filters),
            sorting=list(state.sorting),
            column_sizing=dict(state.column_sizing),
            pagination=state.pagination,
            global_filter=state.global_filter,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict with camelCase keys, excluding absent slices."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)

    def present_slices(self) -> list[str]:
        """Names of the slices this document actually carries."""
        return [name for name in type(self).model_fields if getattr(self, name) is not None]


def merge_preferences(state: GridState, prefs: TablePreferences | None) -> GridState:
    """Overlay stored preferences on a state, slice by slice.

    Slices absent from ``prefs`` keep their value from ``state``.
    ``row_selection`` is never touched.
    """
    if prefs is None:
        return state

    updates = {name: copy.deepcopy(getattr(prefs, name)) for name in prefs.present_slices()}
    if "column_sizing" in updates:
        bad = [k for k, v in updates["column_sizing"].items() if v <= 0]
        if bad:
            warn(f"Dropping non-positive stored widths for columns {bad}")
            updates["column_sizing"] = {
                k: v for k, v in updates["column_sizing"].items() if k not in bad
            }
    debug(f"Merging stored preference slices: {sorted(updates)}")
    return state.model_copy(update=updates, deep=True)


# --- Column definitions ---

# Either a projection of the record, or a function of record and row index.
Accessor = Callable[..., Any]


def _accepts_row_index(accessor: Callable[..., Any]) -> bool:
    """Whether an accessor takes the row index as a second argument."""
    try:
        params = inspect.signature(accessor).parameters.values()
    except (TypeError, ValueError):
        # Builtins such as operator.itemgetter have no signature
        return False
    kinds = [param.kind for param in params]
    if inspect.Parameter.VAR_POSITIONAL in kinds:
        # A bare (*args, **kwargs) is also what builtin callables report
        return kinds != [inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD]
    positional = [
        kind
        for kind in kinds
        if kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    return len(positional) >= 2


class ColumnDef(BaseModel):
    """Static column definition supplied by the caller.

    Behavior varies by capability flags, not by subtype.

    Example:
        ColumnDef(id="name", header="Full Name", size=180, sticky=True)
        ColumnDef(id="age_group", accessor=lambda rec, i: rec["age"] // 10 * 10)
        ColumnDef(id="upper", accessor=lambda rec: rec["name"].upper())
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str = Field(min_length=1)
    accessor: str | Accessor | None = None
    # A literal label, or any renderer object; non-strings export as the id.
    header: Any = None
    size: float | None = None

    sortable: bool = True
    filterable: bool = True
    sticky: bool = False
    exportable: bool = True
    hideable: bool = True
    resizable: bool = True

    _pass_index: bool = PrivateAttr(default=False)

    def model_post_init(self, __context: Any) -> None:
        if callable(self.accessor):
            self._pass_index = _accepts_row_index(self.accessor)

    @field_validator("size", mode="after")
    @classmethod
    def validate_positive_size(cls, v: float | None) -> float | None:
        """Declared sizes must be positive if set."""
        if v is not None and v <= 0:
            raise ValueError(f"Size must be positive, got {v}")
        return v

    @property
    def header_label(self) -> str:
        """Header text: the literal header string, or the column id."""
        return self.header if isinstance(self.header, str) else self.id

    def value(self, record: Mapping[str, Any], row_index: int) -> Any:
        """Resolve this column's cell value for one record."""
        if callable(self.accessor):
            if self._pass_index:
                return self.accessor(record, row_index)
            return self.accessor(record)
        if isinstance(self.accessor, str):
            return record.get(self.accessor)
        return record.get(self.id)


# --- Renderer view ---


class ViewColumn(GridModel):
    """A visible column as the renderer should lay it out."""

    id: str
    header: Any = None
    width: float
    sticky: bool = False
    sticky_offset: float | None = Field(default=None, alias="stickyOffset")
    sortable: bool = True
    filterable: bool = True
    resizable: bool = True
    sort_direction: Literal["asc", "desc"] | None = Field(default=None, alias="sortDirection")
    sort_index: int | None = Field(default=None, alias="sortIndex")
    filter_value: str | None = Field(default=None, alias="filterValue")

    @field_serializer("header", when_used="json")
    def serialize_header(self, v: Any) -> str | None:
        """Renderer objects do not serialize; only literal labels do."""
        return v if isinstance(v, str) else None


class GridViewState(GridModel):
    """Read-only snapshot handed to the renderer.

    ``status`` is the neutral placeholder state: "loading" while a fetch is
    in flight, "empty" when the page has no rows, otherwise "ready".
    """

    columns: list[ViewColumn]
    rows: list[dict[str, Any]]
    row_ids: list[str] = Field(alias="rowIds")
    loading: bool
    status: Literal["loading", "empty", "ready"]
    pagination: PaginationState
    page_count: int = Field(alias="pageCount")
    total_row_count: int = Field(alias="totalRowCount")
    selected_count: int = Field(alias="selectedCount")
    total_width: float = Field(alias="totalWidth")
    global_filter: str = Field(alias="globalFilter")
    can_previous_page: bool = Field(alias="canPreviousPage")
    can_next_page: bool = Field(alias="canNextPage")
