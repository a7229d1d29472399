"""recordgrid - Headless data grid engine for server-paginated record browsers.

This package owns grid state (pagination, sorting, filters, column layout,
row selection), keeps it in sync with a remote record source, persists user
layout preferences and exports the current page to CSV or XLSX.
"""

from .config import (
    ExportSettings,
    GridSettings,
    LogSettings,
    PreferenceSettings,
    RecordGridSettings,
    clear_settings,
    get_settings,
    reload_settings,
)
from .controller import GridController, selection_column
from .delivery import DeliveredFile, DirectoryDelivery, FileDelivery, MemoryDelivery
from .exceptions import (
    EmptyExportError,
    ExportError,
    FetchError,
    GridConfigurationError,
    PreferenceError,
    RecordGridException,
)
from .export import build_csv, build_xlsx, export_csv, export_xlsx, exportable_columns
from .layout import compute_sticky_offsets, effective_width, total_width
from .log import enable_debug
from .models import (
    ColumnDef,
    ColumnFilter,
    ColumnSort,
    FetchResult,
    GridState,
    GridViewState,
    PaginationState,
    Query,
    TablePreferences,
    ViewColumn,
    merge_preferences,
)
from .preferences import (
    FileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    PreferenceStore,
    get_preference_store,
    preference_key,
)
from .reporting import ErrorReporter, log_error_reporter
from .source import HttpRecordSource, RecordSource


__version__ = "0.1.0"

__all__ = [
    "ColumnDef",
    "ColumnFilter",
    "ColumnSort",
    "DeliveredFile",
    "DirectoryDelivery",
    "EmptyExportError",
    "ErrorReporter",
    "ExportError",
    "ExportSettings",
    "FetchError",
    "FetchResult",
    "FileDelivery",
    "FileKeyValueStore",
    "GridConfigurationError",
    "GridController",
    "GridSettings",
    "GridState",
    "GridViewState",
    "HttpRecordSource",
    "KeyValueStore",
    "LogSettings",
    "MemoryDelivery",
    "MemoryKeyValueStore",
    "PaginationState",
    "PreferenceError",
    "PreferenceSettings",
    "PreferenceStore",
    "Query",
    "RecordGridException",
    "RecordGridSettings",
    "RecordSource",
    "TablePreferences",
    "ViewColumn",
    "__version__",
    "build_csv",
    "build_xlsx",
    "clear_settings",
    "compute_sticky_offsets",
    "effective_width",
    "enable_debug",
    "export_csv",
    "export_xlsx",
    "exportable_columns",
    "get_preference_store",
    "get_settings",
    "log_error_reporter",
    "merge_preferences",
    "preference_key",
    "reload_settings",
    "selection_column",
    "total_width",
]
