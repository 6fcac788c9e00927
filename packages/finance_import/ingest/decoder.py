"""Tabular decoder: raw CSV/XLSX bytes to grids of untyped cell text.

CSV parsing uses the stdlib :mod:`csv` module (quoted fields, embedded
delimiters and doubled quotes) with a configurable delimiter. XLSX workbooks
are read with openpyxl in read-only mode; each sheet is classified by name and
only the transactions and categories sheets are kept.

Any failure to read the file is raised as :class:`DecodeError`; nothing past
this module raises for bad data.
"""

from __future__ import annotations

import csv
import io
import zipfile
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..config import ImportOptions
from ..logging_setup import get_logger
from ..models import RawGrid, SheetKind

_logger = get_logger("finance_import.ingest.decoder")


class DecodeError(ValueError):
    """The input file cannot be turned into a grid (fatal for the import job)."""


# Sheet-name keywords per kind, tested in order (transactions first).
SHEET_KEYWORDS: tuple[tuple[SheetKind, tuple[str, ...]], ...] = (
    ("transactions", ("transa", "transaction", "dados")),
    ("categories", ("categor",)),
)


@dataclass(frozen=True, slots=True)
class DecodedFile:
    """All grids decoded from one input file."""

    source_format: str
    transactions: RawGrid
    categories: RawGrid | None = None

    @property
    def grids(self) -> tuple[RawGrid, ...]:
        if self.categories is None:
            return (self.transactions,)
        return (self.transactions, self.categories)


def classify_sheet(name: str) -> SheetKind | None:
    """Return the kind of a workbook sheet from its name, or ``None``."""

    lowered = name.casefold()
    for kind, keywords in SHEET_KEYWORDS:
        if any(k in lowered for k in keywords):
            return kind
    return None


def _is_blank(row: Sequence[str]) -> bool:
    return all(not c for c in row)


def _trim_trailing_blank(rows: list[tuple[str, ...]]) -> list[tuple[str, ...]]:
    end = len(rows)
    while end and _is_blank(rows[end - 1]):
        end -= 1
    return rows[:end]


def _clean_cell(value: str) -> str:
    s = value.strip()
    # Strip one layer of wrapping quotes left by sloppy exporters.
    if len(s) >= 2 and s[0] == s[-1] and s[0] in {'"', "'"}:
        s = s[1:-1].strip()
    return s


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------


def decode_csv(
    data: bytes,
    *,
    delimiter: str = ",",
    encoding: str = "utf-8-sig",
    name: str = "csv",
) -> RawGrid:
    """Decode CSV bytes into a single transactions grid.

    Raises :class:`DecodeError` when the bytes do not decode under
    ``encoding``, the CSV is malformed, there are no non-blank rows, or the
    first row cannot be split with ``delimiter``.
    """

    try:
        text = data.decode(encoding)
    except (UnicodeDecodeError, LookupError) as exc:
        raise DecodeError(f"cannot decode file as {encoding}: {exc}") from exc

    try:
        reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
        rows = [tuple(_clean_cell(c) for c in row) for row in reader]
    except csv.Error as exc:
        raise DecodeError(f"malformed CSV: {exc}") from exc

    rows = _trim_trailing_blank(rows)
    first = next((r for r in rows if not _is_blank(r)), None)
    if first is None:
        raise DecodeError("file has no rows")
    if len(first) < 2:
        raise DecodeError(f"cannot split rows using delimiter {delimiter!r}")

    _logger.debug("decoded CSV %r: %d rows, %d columns", name, len(rows), len(first))
    return RawGrid(name=name, kind="transactions", rows=tuple(rows))


# ---------------------------------------------------------------------------
# XLSX
# ---------------------------------------------------------------------------


def _cell_text(value: object, *, decimal_separator: str = ".") -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        # Render numeric cells in the configured locale so the row parser can
        # treat typed numbers and text numbers alike.
        s = format(Decimal(repr(value)).normalize(), "f")
        return s.replace(".", ",") if decimal_separator == "," else s
    return str(value).strip()


def _sheet_rows(ws, *, decimal_separator: str) -> list[tuple[str, ...]]:
    rows = [
        tuple(_cell_text(v, decimal_separator=decimal_separator) for v in row)
        for row in ws.iter_rows(values_only=True)
    ]
    return _trim_trailing_blank(rows)


def decode_xlsx(data: bytes, *, decimal_separator: str = ".") -> DecodedFile:
    """Decode an XLSX workbook into its transactions and categories grids.

    Sheets whose names match neither kind are ignored. The first sheet of a
    kind wins; later ones are logged and skipped. A missing or empty
    transactions sheet is a :class:`DecodeError`; an empty categories sheet is
    treated as absent.
    """

    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        raise DecodeError(f"cannot read workbook: {exc}") from exc

    found: dict[SheetKind, RawGrid] = {}
    try:
        for sheet_name in wb.sheetnames:
            kind = classify_sheet(sheet_name)
            if kind is None:
                _logger.debug("ignoring unclassified sheet %r", sheet_name)
                continue
            if kind in found:
                _logger.warning("ignoring extra %s sheet %r", kind, sheet_name)
                continue
            rows = _sheet_rows(wb[sheet_name], decimal_separator=decimal_separator)
            found[kind] = RawGrid(name=sheet_name, kind=kind, rows=tuple(rows))
    finally:
        wb.close()

    tx_grid = found.get("transactions")
    if tx_grid is None:
        raise DecodeError(
            "no transactions sheet found (expected a sheet name containing "
            "'transa', 'transaction' or 'dados')"
        )
    if not any(not _is_blank(r) for r in tx_grid.rows):
        raise DecodeError(f"sheet {tx_grid.name!r} has no rows")

    cat_grid = found.get("categories")
    if cat_grid is not None and not any(not _is_blank(r) for r in cat_grid.rows):
        _logger.warning("categories sheet %r is empty; deriving categories from data", cat_grid.name)
        cat_grid = None

    _logger.debug(
        "decoded XLSX: transactions=%r (%d rows) categories=%r",
        tx_grid.name,
        len(tx_grid.rows),
        cat_grid.name if cat_grid else None,
    )
    return DecodedFile(source_format="xlsx", transactions=tx_grid, categories=cat_grid)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def decode(data: bytes, options: ImportOptions) -> DecodedFile:
    """Decode ``data`` according to ``options.format``."""

    if options.format == "xlsx":
        decoded = decode_xlsx(data, decimal_separator=options.decimal_separator)
    else:
        grid = decode_csv(
            data,
            delimiter=options.delimiter,
            encoding=options.encoding,
            name=options.source_label or "csv",
        )
        decoded = DecodedFile(source_format="csv", transactions=grid)
    _logger.info(
        "decoded %s file: %d transaction rows%s",
        decoded.source_format,
        len(decoded.transactions.rows),
        " + categories sheet" if decoded.categories is not None else "",
    )
    return decoded


def preview_rows(grid: RawGrid, limit: int = 5) -> list[tuple[str, ...]]:
    """Return the first ``limit`` rows of ``grid`` (header included) for display."""

    return list(grid.rows[: max(limit, 0)])


__all__ = [
    "SHEET_KEYWORDS",
    "DecodeError",
    "DecodedFile",
    "classify_sheet",
    "decode",
    "decode_csv",
    "decode_xlsx",
    "preview_rows",
]
