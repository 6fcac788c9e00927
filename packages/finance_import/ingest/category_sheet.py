"""Read the optional categories sheet of an import workbook.

Header cells are matched against small keyword tables (Portuguese and English
labels); only rows with both a name and a recognizable type are kept.
"""

from __future__ import annotations

from ..logging_setup import get_logger
from ..models import DeclaredCategory, RawGrid
from ..normalizers import normalize_type

_logger = get_logger("finance_import.ingest.category_sheet")

CATEGORY_SHEET_KEYWORDS: dict[str, tuple[str, ...]] = {
    "name": ("nome", "name"),
    "type": ("tipo", "type"),
    "color": ("cor", "color"),
    "sort_order": ("ordem", "order", "sort"),
}


def _find_column(header: tuple[str, ...], keywords: tuple[str, ...]) -> int | None:
    for idx, cell in enumerate(header):
        lowered = cell.lower()
        if any(k in lowered for k in keywords):
            return idx
    return None


def _cell(row: tuple[str, ...], idx: int | None) -> str:
    if idx is None or idx >= len(row):
        return ""
    return row[idx].strip()


def _to_int(raw: str) -> int | None:
    try:
        return int(float(raw.replace(",", ".")))
    except (ValueError, OverflowError):
        return None


def parse_category_sheet(grid: RawGrid) -> list[DeclaredCategory]:
    """Return the categories declared in ``grid`` (header row expected)."""

    if not grid.rows:
        return []
    columns = {
        field: _find_column(grid.header(), keywords)
        for field, keywords in CATEGORY_SHEET_KEYWORDS.items()
    }
    if columns["name"] is None or columns["type"] is None:
        _logger.warning(
            "categories sheet %r lacks a name or type column; ignoring it", grid.name
        )
        return []

    declared: list[DeclaredCategory] = []
    for row in grid.rows[1:]:
        name = _cell(row, columns["name"])
        polarity = normalize_type(_cell(row, columns["type"]))
        if not name or polarity is None:
            continue
        color = _cell(row, columns["color"]) or None
        order_raw = _cell(row, columns["sort_order"])
        declared.append(
            DeclaredCategory(
                name=name,
                type=polarity,
                color=color,
                sort_order=_to_int(order_raw) if order_raw else None,
            )
        )
    _logger.debug("categories sheet %r declares %d categories", grid.name, len(declared))
    return declared


__all__ = ["CATEGORY_SHEET_KEYWORDS", "parse_category_sheet"]
