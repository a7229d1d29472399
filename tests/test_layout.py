"""Tests for pinned-column geometry."""

from __future__ import annotations

from recordgrid.layout import compute_sticky_offsets, effective_width, total_width
from recordgrid.models import ColumnDef


COLUMNS = [
    ColumnDef(id="a", size=80, sticky=True),
    ColumnDef(id="b", size=180, sticky=True),
    ColumnDef(id="c", size=200, sticky=True),
    ColumnDef(id="d"),
]


class TestStickyOffsets:
    """Tests for compute_sticky_offsets."""

    def test_cumulative_offsets(self) -> None:
        """Offsets are running sums of the preceding sticky widths."""
        offsets = compute_sticky_offsets(COLUMNS, {}, {})
        assert [offsets[c] for c in ("a", "b", "c")] == [0, 80, 260]

    def test_non_sticky_columns_absent(self) -> None:
        """Scrolling columns get no offset."""
        assert "d" not in compute_sticky_offsets(COLUMNS, {}, {})

    def test_hidden_sticky_column_skipped(self) -> None:
        """A hidden sticky column takes no space."""
        offsets = compute_sticky_offsets(COLUMNS, {"a": False}, {})
        assert offsets == {"b": 0, "c": 180}

    def test_sizing_override(self) -> None:
        """Resized widths feed into later offsets."""
        offsets = compute_sticky_offsets(COLUMNS, {}, {"a": 100})
        assert offsets == {"a": 0, "b": 100, "c": 280}

    def test_interleaved_non_sticky(self) -> None:
        """Non-sticky columns between sticky ones do not shift offsets."""
        columns = [
            ColumnDef(id="a", size=50, sticky=True),
            ColumnDef(id="x", size=500),
            ColumnDef(id="b", size=70, sticky=True),
        ]
        assert compute_sticky_offsets(columns, {}, {}) == {"a": 0, "b": 50}

    def test_no_sticky_columns(self) -> None:
        """Nothing pinned, nothing returned."""
        assert compute_sticky_offsets([ColumnDef(id="x")], {}, {}) == {}


class TestWidths:
    """Tests for effective_width and total_width."""

    def test_precedence(self) -> None:
        """Sizing override, then declared size, then the default."""
        column = ColumnDef(id="a", size=80)
        assert effective_width(column, {"a": 120}) == 120
        assert effective_width(column, {}) == 80
        assert effective_width(ColumnDef(id="b"), {}) == 150
        assert effective_width(ColumnDef(id="b"), {}, default_size=90) == 90

    def test_total_width_visible_only(self) -> None:
        """Hidden columns do not count."""
        assert total_width(COLUMNS, {}, {}) == 80 + 180 + 200 + 150
        assert total_width(COLUMNS, {"d": False}, {}) == 460
