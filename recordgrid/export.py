"""CSV and XLSX export of the rows currently on screen.

The grid is server-paginated, so an export covers the active page only,
projected through the visible, exportable columns.

Usage:
    from recordgrid.export import export_csv
    from recordgrid.delivery import DirectoryDelivery

    export_csv(rows, columns, DirectoryDelivery("~/Downloads"), filename="users.csv")
"""

from __future__ import annotations

import io

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

from .exceptions import EmptyExportError, ExportError
from .layout import is_visible
from .log import debug, warn
from .models import ColumnDef, serialize_value
from .reporting import ErrorReporter, report_error


if TYPE_CHECKING:
    from .delivery import FileDelivery


CSV_MIME_TYPE = "text/csv;charset=utf-8;"
XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
DEFAULT_SHEET_NAME = "Sheet1"
BOM = "\ufeff"


def exportable_columns(
    columns: Sequence[ColumnDef], visibility: Mapping[str, bool] | None = None
) -> list[ColumnDef]:
    """Columns that are both visible and exportable, in definition order."""
    visibility = visibility or {}
    return [c for c in columns if c.exportable and is_visible(c, visibility)]


def _cell_text(value: Any) -> str:
    value = serialize_value(value)
    return "" if value is None else str(value)


def _quote(field: str) -> str:
    return '"' + field.replace('"', '""') + '"'


def _xlsx_value(value: Any) -> Any:
    value = serialize_value(value)
    if value is None or isinstance(value, (bool, int, float)):
        return value
    # openpyxl rejects control characters in cell text
    return ILLEGAL_CHARACTERS_RE.sub("", str(value))


def build_csv(
    rows: Sequence[Mapping[str, Any]],
    columns: Sequence[ColumnDef],
    visibility: Mapping[str, bool] | None = None,
) -> bytes:
    """Render rows as UTF-8 CSV with a byte-order mark.

    Every field, header included, is wrapped in double quotes with
    embedded quotes doubled. Lines are separated by ``\\n`` with no
    trailing newline.

    Parameters
    ----------
    rows : Sequence[Mapping[str, Any]]
        Records of the active page, in display order.
    columns : Sequence[ColumnDef]
        Full column list; hidden and non-exportable columns are skipped.
    visibility : Mapping[str, bool], optional
        Column visibility state.

    Returns
    -------
    bytes
        The encoded payload.
    """
    cols = exportable_columns(columns, visibility)
    lines = [",".join(_quote(c.header_label) for c in cols)]
    lines.extend(
        ",".join(_quote(_cell_text(c.value(record, index))) for c in cols)
        for index, record in enumerate(rows)
    )
    return (BOM + "\n".join(lines)).encode("utf-8")


def build_xlsx(
    rows: Sequence[Mapping[str, Any]],
    columns: Sequence[ColumnDef],
    visibility: Mapping[str, bool] | None = None,
    sheet_name: str = DEFAULT_SHEET_NAME,
) -> bytes:
    """Render rows as a single-sheet XLSX workbook.

    Each record becomes a mapping of header label to value, so columns
    sharing a header label collapse into one (the later column wins).

    Raises
    ------
    ExportError
        If the workbook cannot be built (e.g. an invalid sheet name).
    """
    cols = exportable_columns(columns, visibility)

    records: list[dict[str, Any]] = []
    for index, record in enumerate(rows):
        records.append({c.header_label: c.value(record, index) for c in cols})
    headers = list(dict.fromkeys(c.header_label for c in cols))

    try:
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = sheet_name
        sheet.append(headers)
        for record in records:
            sheet.append([_xlsx_value(record.get(h)) for h in headers])
        buffer = io.BytesIO()
        workbook.save(buffer)
    except ValueError as exc:
        raise ExportError(f"Could not build workbook: {exc}", fmt="xlsx") from exc
    return buffer.getvalue()


def _deliver(
    deliver: FileDelivery,
    payload: bytes,
    mime_type: str,
    filename: str,
    fmt: str,
    reporter: ErrorReporter | None,
) -> bool:
    try:
        deliver(payload, mime_type, filename)
    except OSError as exc:
        err = ExportError(f"Could not deliver {filename}", fmt=fmt, filename=filename)
        err.__cause__ = exc
        report_error(reporter, err)
        return False
    debug(f"Delivered {filename} ({len(payload)} bytes, {mime_type})")
    return True


def _empty(fmt: str, reporter: ErrorReporter | None) -> bool:
    warn("No data to export.")
    report_error(reporter, EmptyExportError("No data to export", fmt=fmt))
    return False


def export_csv(  # pylint: disable=too-many-arguments
    rows: Sequence[Mapping[str, Any]],
    columns: Sequence[ColumnDef],
    deliver: FileDelivery,
    *,
    filename: str = "data.csv",
    visibility: Mapping[str, bool] | None = None,
    mime_type: str = CSV_MIME_TYPE,
    error_reporter: ErrorReporter | None = None,
) -> bool:
    """Build a CSV of ``rows`` and hand it to ``deliver``.

    An empty row set is a no-op: a warning is logged, an EmptyExportError
    is reported and nothing is delivered.

    Returns
    -------
    bool
        True if a file was delivered.
    """
    if not rows:
        return _empty("csv", error_reporter)
    payload = build_csv(rows, columns, visibility)
    return _deliver(deliver, payload, mime_type, filename, "csv", error_reporter)


def export_xlsx(  # pylint: disable=too-many-arguments
    rows: Sequence[Mapping[str, Any]],
    columns: Sequence[ColumnDef],
    deliver: FileDelivery,
    *,
    filename: str = "data.xlsx",
    visibility: Mapping[str, bool] | None = None,
    sheet_name: str = DEFAULT_SHEET_NAME,
    mime_type: str = XLSX_MIME_TYPE,
    error_reporter: ErrorReporter | None = None,
) -> bool:
    """Build an XLSX workbook of ``rows`` and hand it to ``deliver``.

    Same empty-set behavior as ``export_csv``.

    Returns
    -------
    bool
        True if a file was delivered.
    """
    if not rows:
        return _empty("xlsx", error_reporter)
    try:
        payload = build_xlsx(rows, columns, visibility, sheet_name)
    except ExportError as exc:
        report_error(error_reporter, exc)
        return False
    return _deliver(deliver, payload, mime_type, filename, "xlsx", error_reporter)
