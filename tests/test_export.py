"""Tests for CSV and XLSX export."""

from __future__ import annotations

import datetime
import io
import operator

import pytest

from openpyxl import load_workbook

from recordgrid.delivery import DirectoryDelivery, MemoryDelivery
from recordgrid.exceptions import EmptyExportError, ExportError
from recordgrid.export import (
    CSV_MIME_TYPE,
    XLSX_MIME_TYPE,
    build_csv,
    build_xlsx,
    export_csv,
    export_xlsx,
    exportable_columns,
)
from recordgrid.models import ColumnDef


BOM = "\ufeff"


def csv_lines(payload: bytes) -> list[str]:
    """Decode a CSV payload into lines, checking the byte-order mark."""
    text = payload.decode("utf-8")
    assert text.startswith(BOM)
    return text[len(BOM) :].split("\n")


def read_sheet(payload: bytes) -> tuple[str, list[tuple]]:
    """Read back the single sheet of an XLSX payload."""
    workbook = load_workbook(io.BytesIO(payload))
    sheet = workbook.active
    return sheet.title, [tuple(row) for row in sheet.iter_rows(values_only=True)]


class TestExportableColumns:
    """Tests for export eligibility."""

    def test_visible_and_exportable_only(self) -> None:
        """Hidden and non-exportable columns are skipped."""
        columns = [
            ColumnDef(id="a"),
            ColumnDef(id="b", exportable=False),
            ColumnDef(id="c"),
            ColumnDef(id="d"),
        ]
        kept = exportable_columns(columns, {"c": False, "d": True})
        assert [c.id for c in kept] == ["a", "d"]


class TestBuildCsv:
    """Tests for build_csv."""

    def test_quote_doubling(self) -> None:
        """Embedded quotes are doubled and commas stay inside the field."""
        columns = [ColumnDef(id="id"), ColumnDef(id="name")]
        lines = csv_lines(build_csv([{"id": 1, "name": 'A,"B"'}], columns))
        assert lines[1] == '"1","A,""B"""'

    def test_header_labels(self) -> None:
        """Literal headers are used; other headers fall back to the id."""
        columns = [
            ColumnDef(id="id", header="ID"),
            ColumnDef(id="name", header=lambda: "Name"),
        ]
        lines = csv_lines(build_csv([{"id": 1, "name": "Ada"}], columns))
        assert lines[0] == '"ID","name"'

    def test_no_trailing_newline(self) -> None:
        """Lines are joined, not terminated."""
        columns = [ColumnDef(id="id")]
        payload = build_csv([{"id": 1}, {"id": 2}], columns)
        assert csv_lines(payload) == ['"id"', '"1"', '"2"']
        assert not payload.endswith(b"\n")

    def test_excluded_columns(self) -> None:
        """Non-exportable and hidden columns do not appear."""
        columns = [
            ColumnDef(id="id"),
            ColumnDef(id="actions", exportable=False),
            ColumnDef(id="email"),
        ]
        rows = [{"id": 1, "actions": "edit", "email": "a@example.com"}]
        lines = csv_lines(build_csv(rows, columns, {"email": False}))
        assert lines == ['"id"', '"1"']

    def test_accessors_and_missing_values(self) -> None:
        """Accessors resolve values; missing values export as empty."""
        columns = [
            ColumnDef(id="row", accessor=lambda rec, i: i),
            ColumnDef(id="label", accessor="full_name"),
            ColumnDef(id="missing"),
        ]
        lines = csv_lines(build_csv([{"full_name": "Ada Lovelace"}], columns))
        assert lines[1] == '"0","Ada Lovelace",""'

    def test_projection_accessors(self) -> None:
        """Accessors may take the record alone, or the record and row index."""

        def joined(*parts):
            return "/".join(str(p) for p in parts[1:])

        columns = [
            ColumnDef(id="upper", accessor=lambda rec: rec["name"].upper()),
            ColumnDef(id="first", accessor=operator.itemgetter("name")),
            ColumnDef(id="pos", accessor=joined),
        ]
        rows = [{"name": "Ada"}, {"name": "Grace"}]
        assert csv_lines(build_csv(rows, columns))[1:] == [
            '"ADA","Ada","0"',
            '"GRACE","Grace","1"',
        ]
        _, values = read_sheet(build_xlsx(rows, columns))
        assert values[1:] == [("ADA", "Ada", "0"), ("GRACE", "Grace", "1")]

    def test_dates_serialized(self) -> None:
        """Dates export as ISO strings."""
        columns = [ColumnDef(id="joined")]
        lines = csv_lines(build_csv([{"joined": datetime.date(2024, 1, 31)}], columns))
        assert lines[1] == '"2024-01-31"'

    def test_unicode(self) -> None:
        """Payload is UTF-8."""
        columns = [ColumnDef(id="name")]
        lines = csv_lines(build_csv([{"name": "Zoë"}], columns))
        assert lines[1] == '"Zoë"'


class TestBuildXlsx:
    """Tests for build_xlsx."""

    def test_read_back(self) -> None:
        """One sheet with a header row and one row per record."""
        columns = [ColumnDef(id="id", header="ID"), ColumnDef(id="name", header="Name")]
        rows = [{"id": 1, "name": "Ada"}, {"id": 2, "name": "Grace"}]
        title, values = read_sheet(build_xlsx(rows, columns))
        assert title == "Sheet1"
        assert values == [("ID", "Name"), (1, "Ada"), (2, "Grace")]

    def test_custom_sheet_name(self) -> None:
        """The sheet name is configurable."""
        title, _ = read_sheet(build_xlsx([{"a": 1}], [ColumnDef(id="a")], sheet_name="Users"))
        assert title == "Users"

    def test_excluded_columns(self) -> None:
        """Hidden and non-exportable columns are left out."""
        columns = [
            ColumnDef(id="id"),
            ColumnDef(id="select", exportable=False),
            ColumnDef(id="email"),
        ]
        rows = [{"id": 1, "select": True, "email": "a@example.com"}]
        _, values = read_sheet(build_xlsx(rows, columns, {"email": False}))
        assert values == [("id",), (1,)]

    def test_non_scalar_values_stringified(self) -> None:
        """Lists and control characters do not break the workbook."""
        columns = [ColumnDef(id="tags"), ColumnDef(id="note")]
        rows = [{"tags": ["a", "b"], "note": "line\x07bell"}]
        _, values = read_sheet(build_xlsx(rows, columns))
        assert values[1] == ("['a', 'b']", "linebell")

    def test_shared_header_collapses(self) -> None:
        """Columns with the same header label share one output column."""
        columns = [
            ColumnDef(id="first", header="Name"),
            ColumnDef(id="last", header="Name"),
        ]
        _, values = read_sheet(build_xlsx([{"first": "Ada", "last": "Lovelace"}], columns))
        assert values == [("Name",), ("Lovelace",)]

    def test_invalid_sheet_name(self) -> None:
        """Sheet names openpyxl rejects raise ExportError."""
        with pytest.raises(ExportError):
            build_xlsx([{"a": 1}], [ColumnDef(id="a")], sheet_name="bad/name")


class TestExportDelivery:
    """Tests for export_csv/export_xlsx delivery."""

    COLUMNS = [ColumnDef(id="id"), ColumnDef(id="name")]
    ROWS = [{"id": 1, "name": "Ada"}]

    def test_csv_delivered(self) -> None:
        """The payload, media type and filename reach the delivery."""
        delivery = MemoryDelivery()
        assert export_csv(self.ROWS, self.COLUMNS, delivery, filename="users.csv") is True
        delivered = delivery.last
        assert delivered.filename == "users.csv"
        assert delivered.mime_type == CSV_MIME_TYPE
        assert csv_lines(delivered.payload) == ['"id","name"', '"1","Ada"']

    def test_xlsx_delivered(self) -> None:
        """XLSX uses the spreadsheet media type."""
        delivery = MemoryDelivery()
        assert export_xlsx(self.ROWS, self.COLUMNS, delivery, filename="users.xlsx") is True
        assert delivery.last.mime_type == XLSX_MIME_TYPE
        _, values = read_sheet(delivery.last.payload)
        assert values[1] == (1, "Ada")

    @pytest.mark.parametrize("export", [export_csv, export_xlsx])
    def test_empty_rows_are_a_no_op(self, export, reporter, caplog) -> None:
        """Nothing is delivered; a warning is logged and an error reported."""
        delivery = MemoryDelivery()
        with caplog.at_level("WARNING", logger="recordgrid"):
            assert export([], self.COLUMNS, delivery, error_reporter=reporter) is False
        assert delivery.files == []
        assert isinstance(reporter.errors[0], EmptyExportError)
        assert "No data to export" in caplog.text

    def test_delivery_failure_reported(self, reporter) -> None:
        """An OSError from the delivery becomes a reported ExportError."""

        def broken(payload, mime_type, filename):
            raise OSError("disk full")

        assert export_csv(self.ROWS, self.COLUMNS, broken, error_reporter=reporter) is False
        err = reporter.errors[0]
        assert isinstance(err, ExportError)
        assert err.fmt == "csv"
        assert isinstance(err.__cause__, OSError)

    def test_bad_sheet_name_reported(self, reporter) -> None:
        """Workbook build failures are reported, not raised."""
        delivery = MemoryDelivery()
        ok = export_xlsx(
            self.ROWS, self.COLUMNS, delivery, sheet_name="a*b", error_reporter=reporter
        )
        assert ok is False
        assert delivery.files == []
        assert reporter.errors[0].fmt == "xlsx"

    def test_directory_delivery(self, tmp_path) -> None:
        """Files land in the directory under their base name."""
        delivery = DirectoryDelivery(tmp_path / "exports")
        export_csv(self.ROWS, self.COLUMNS, delivery, filename="../users.csv")
        written = tmp_path / "exports" / "users.csv"
        assert written.read_bytes().decode("utf-8").startswith(BOM)
