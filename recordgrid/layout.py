"""Pinned-column geometry.

Sticky columns stack against the leading edge in definition order. Each
one is offset by the summed widths of the visible sticky columns before
it; non-sticky columns scroll normally and get no offset.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from .models import ColumnDef


DEFAULT_COLUMN_SIZE = 150.0


def is_visible(column: ColumnDef, visibility: Mapping[str, bool]) -> bool:
    """Columns are visible unless explicitly hidden."""
    return visibility.get(column.id, True)


def effective_width(
    column: ColumnDef,
    sizing: Mapping[str, float],
    default_size: float = DEFAULT_COLUMN_SIZE,
) -> float:
    """Current width of a column: sizing override, declared size, then default."""
    if column.id in sizing:
        return float(sizing[column.id])
    if column.size is not None:
        return float(column.size)
    return float(default_size)


def compute_sticky_offsets(
    columns: Sequence[ColumnDef],
    visibility: Mapping[str, bool],
    sizing: Mapping[str, float],
    default_size: float = DEFAULT_COLUMN_SIZE,
) -> dict[str, float]:
    """Left offsets for every visible sticky column.

    Parameters
    ----------
    columns : Sequence[ColumnDef]
        Full column list in definition order (sticky and non-sticky).
    visibility : Mapping[str, bool]
        Column visibility state; missing ids are visible.
    sizing : Mapping[str, float]
        Column width overrides.
    default_size : float
        Width for columns without a declared size.

    Returns
    -------
    dict[str, float]
        Column id to left offset. Hidden and non-sticky columns are absent.

    Example:
        three sticky columns of widths 80, 180, 200 → {a: 0, b: 80, c: 260}
    """
    offsets: dict[str, float] = {}
    left = 0.0
    for column in columns:
        if not column.sticky or not is_visible(column, visibility):
            continue
        offsets[column.id] = left
        left += effective_width(column, sizing, default_size)
    return offsets


def total_width(
    columns: Sequence[ColumnDef],
    visibility: Mapping[str, bool],
    sizing: Mapping[str, float],
    default_size: float = DEFAULT_COLUMN_SIZE,
) -> float:
    """Summed width of all visible columns."""
    return sum(
        effective_width(column, sizing, default_size)
        for column in columns
        if is_visible(column, visibility)
    )
