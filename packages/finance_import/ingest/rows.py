"""Row parser: mapped grid rows to :class:`ParsedTransaction` records.

Parsing is total. A row missing a mandatory field (date, description,
amount), or whose amount is unparseable or zero, is dropped and its source row
number recorded in ``ParseResult.skipped_row_numbers``; nothing here raises for
bad cell content.
"""

from __future__ import annotations

from ..logging_setup import get_logger
from ..models import FieldTag, ParsedTransaction, ParseResult, RawGrid
from ..normalizers import format_date, normalize_category, normalize_tag, normalize_type, parse_amount
from .columns import ColumnMapping

_logger = get_logger("finance_import.ingest.rows")


def _cell(row: tuple[str, ...], mapping: ColumnMapping, tag: FieldTag) -> str:
    idx = mapping.column_for(tag)
    if idx is None or idx >= len(row):
        return ""
    return row[idx].strip()


def split_tags(text: str) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """Split a comma-separated tags cell into ``(raw_names, keys)``.

    Empty pieces are dropped and keys are de-duplicated; ``raw_names[i]`` is
    the first spelling seen for ``keys[i]``.
    """

    raw_names: list[str] = []
    keys: list[str] = []
    for piece in text.split(","):
        name = piece.strip()
        key = normalize_tag(name)
        if not key or key in keys:
            continue
        raw_names.append(name)
        keys.append(key)
    return tuple(raw_names), tuple(keys)


def parse_row(
    row: tuple[str, ...],
    mapping: ColumnMapping,
    *,
    row_number: int,
    decimal_separator: str = ".",
    reference_prefix: str = "CSV",
) -> ParsedTransaction | None:
    """Parse one data row, or return ``None`` when it must be skipped."""

    raw_date = _cell(row, mapping, "date")
    description = _cell(row, mapping, "description")
    raw_amount = _cell(row, mapping, "amount")
    if not raw_date or not description or not raw_amount:
        return None

    amount = parse_amount(raw_amount, decimal_separator=decimal_separator)
    if amount is None or amount == 0:
        return None

    polarity = normalize_type(_cell(row, mapping, "type"))
    if polarity is None:
        polarity = "expense" if amount < 0 else "income"

    raw_category = _cell(row, mapping, "category") or None
    category = normalize_category(raw_category) or None
    raw_tags, tags = split_tags(_cell(row, mapping, "tags"))

    return ParsedTransaction(
        date=format_date(raw_date),
        description=description,
        amount=abs(amount),
        type=polarity,
        category=category,
        tags=tags,
        reference=f"{reference_prefix}-{row_number}",
        row_number=row_number,
        raw_category=raw_category if category else None,
        raw_tags=raw_tags,
    )


def parse_rows(
    grid: RawGrid,
    mapping: ColumnMapping,
    *,
    has_header: bool = True,
    decimal_separator: str = ".",
    reference_prefix: str = "CSV",
) -> ParseResult:
    """Parse every data row of ``grid`` under ``mapping``.

    Row numbers are 1-based positions in the source file, so with a header the
    first data row is row 2.
    """

    data = grid.data_rows(has_header=has_header)
    offset = 2 if has_header else 1
    parsed: list[ParsedTransaction] = []
    skipped: set[int] = set()
    for idx, row in enumerate(data):
        row_number = idx + offset
        tx = parse_row(
            row,
            mapping,
            row_number=row_number,
            decimal_separator=decimal_separator,
            reference_prefix=reference_prefix,
        )
        if tx is None:
            skipped.add(row_number)
            continue
        parsed.append(tx)

    _logger.info(
        "parsed %d of %d rows from %r (%d skipped)",
        len(parsed),
        len(data),
        grid.name,
        len(skipped),
    )
    if skipped:
        _logger.debug("skipped rows: %s", sorted(skipped))
    return ParseResult(
        transactions=tuple(parsed),
        skipped_row_numbers=frozenset(skipped),
        total_rows=len(data),
    )


__all__ = ["parse_row", "parse_rows", "split_tags"]
