"""Column mapper: propose which spreadsheet column feeds which canonical field.

The proposal is keyword-driven (:data:`COLUMN_KEYWORDS`) and advisory; callers
may reassign any column before parsing. When two header cells match the same
field the later column wins and the override is recorded in
``ColumnMapping.conflicts`` so it can be shown to the user instead of being
silently applied.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from ..logging_setup import get_logger
from ..models import CANONICAL_FIELDS, REQUIRED_FIELDS, ColumnId, FieldTag

_logger = get_logger("finance_import.ingest.columns")

# Tested in order; the first field whose keyword occurs in the lower-cased
# header text wins for that column.
COLUMN_KEYWORDS: tuple[tuple[FieldTag, tuple[str, ...]], ...] = (
    ("date", ("data", "date")),
    ("description", ("desc", "memo", "obs")),
    ("amount", ("valor", "amount", "montante")),
    ("type", ("tipo", "type")),
    ("category", ("categoria", "category")),
    ("tags", ("tag", "etiqueta")),
)


def match_header(text: str) -> FieldTag | None:
    """Return the canonical field a header cell suggests, if any."""

    lowered = text.strip().lower()
    if not lowered:
        return None
    for tag, keywords in COLUMN_KEYWORDS:
        if any(k in lowered for k in keywords):
            return tag
    return None


@dataclass(slots=True)
class ColumnMapping:
    """Field assignment per column position.

    ``headers`` is ``None`` for headerless files, in which case columns are
    identified by their 0-based index. With headers, a column may be referred
    to either by its header text (first occurrence) or by its index.
    """

    headers: tuple[str, ...] | None
    fields: list[FieldTag]
    conflicts: list[str] = field(default_factory=list)

    @property
    def width(self) -> int:
        return len(self.fields)

    def _label(self, idx: int) -> str:
        if self.headers is not None and idx < len(self.headers) and self.headers[idx]:
            return repr(self.headers[idx])
        return f"#{idx}"

    def column_index(self, column: ColumnId) -> int:
        """Resolve a header text or position to a column index.

        Raises ``KeyError`` for unknown columns.
        """

        if isinstance(column, int):
            if 0 <= column < self.width:
                return column
            raise KeyError(f"column index out of range: {column}")
        if self.headers is not None:
            wanted = column.strip()
            for idx, h in enumerate(self.headers):
                if h == wanted:
                    return idx
            lowered = wanted.lower()
            for idx, h in enumerate(self.headers):
                if h.lower() == lowered:
                    return idx
        if column.strip().isdigit():
            return self.column_index(int(column.strip()))
        raise KeyError(f"unknown column: {column!r}")

    def column_for(self, tag: FieldTag) -> int | None:
        """Return the index of the column mapped to ``tag``, if any."""

        for idx, f in enumerate(self.fields):
            if f == tag:
                return idx
        return None

    def assign(self, column: ColumnId, tag: FieldTag) -> None:
        """Map ``column`` to ``tag`` (manual override).

        A non-``ignore`` field can only be held by one column: the previous
        holder is reset to ``ignore`` and a conflict note is recorded.
        """

        if tag != "ignore" and tag not in CANONICAL_FIELDS:
            raise ValueError(f"unknown field: {tag!r}")
        idx = self.column_index(column)
        if tag != "ignore":
            for other, f in enumerate(self.fields):
                if f == tag and other != idx:
                    self.fields[other] = "ignore"
                    self.conflicts.append(
                        f"Column {self._label(other)} was mapped to {tag!r}; "
                        f"column {self._label(idx)} now takes it"
                    )
        self.fields[idx] = tag

    def missing_required(self) -> list[FieldTag]:
        """Required fields (date, description, amount) with no column."""

        return [t for t in REQUIRED_FIELDS if t not in self.fields]

    def as_dict(self) -> dict[ColumnId, FieldTag]:
        """Mapping keyed by header text (or index when there is no usable header)."""

        out: dict[ColumnId, FieldTag] = {}
        for idx, tag in enumerate(self.fields):
            key: ColumnId = idx
            if self.headers is not None and idx < len(self.headers) and self.headers[idx]:
                key = self.headers[idx]
            out.setdefault(key, tag)
        return out

    def copy(self) -> ColumnMapping:
        return ColumnMapping(
            headers=self.headers, fields=list(self.fields), conflicts=list(self.conflicts)
        )


def auto_map_columns(header: Sequence[str] | None, width: int | None = None) -> ColumnMapping:
    """Propose a mapping from a header row (or none).

    Without a header every column starts as ``ignore``. With a header each
    cell is tested against :data:`COLUMN_KEYWORDS`; when two cells match the
    same field the later one wins and the earlier reverts to ``ignore``.
    """

    if header is None:
        return ColumnMapping(headers=None, fields=["ignore"] * (width or 0))

    headers = tuple(h.strip() for h in header)
    size = max(len(headers), width or 0)
    mapping = ColumnMapping(headers=headers, fields=["ignore"] * size)
    for idx, text in enumerate(headers):
        tag = match_header(text)
        if tag is None:
            continue
        previous = mapping.column_for(tag)
        if previous is not None:
            mapping.conflicts.append(
                f"Columns {mapping._label(previous)} and {mapping._label(idx)} both look "
                f"like {tag!r}; using {mapping._label(idx)}"
            )
            mapping.fields[previous] = "ignore"
        mapping.fields[idx] = tag

    _logger.debug("auto-mapped columns: %s", mapping.as_dict())
    for note in mapping.conflicts:
        _logger.warning("column mapping conflict: %s", note)
    return mapping


def apply_overrides(
    mapping: ColumnMapping,
    overrides: Mapping[str, ColumnId] | Iterable[tuple[str, ColumnId]],
) -> ColumnMapping:
    """Return a copy of ``mapping`` with ``(field, column)`` overrides applied in order."""

    revised = mapping.copy()
    pairs = overrides.items() if isinstance(overrides, Mapping) else overrides
    for tag, column in pairs:
        revised.assign(column, tag)  # type: ignore[arg-type]
    return revised


__all__ = [
    "COLUMN_KEYWORDS",
    "ColumnMapping",
    "apply_overrides",
    "auto_map_columns",
    "match_header",
]
