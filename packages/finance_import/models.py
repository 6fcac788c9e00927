"""Data models and type aliases for ``finance_import``.

Every stage of the import pipeline consumes the previous stage's output and
returns its own immutable value; the records below are those values. They are
frozen ``dataclass`` instances so a stage can never mutate what an earlier
stage handed over.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

# ---------------------------------------------------------------------------
# Closed vocabularies
# ---------------------------------------------------------------------------

type SourceFormat = Literal["csv", "xlsx"]
type SheetKind = Literal["transactions", "categories"]
type Polarity = Literal["income", "expense"]
type FieldTag = Literal["date", "description", "amount", "type", "category", "tags", "ignore"]
type DecisionAction = Literal["map", "create", "ignore"]
type EntityKind = Literal["category", "tag"]

# A spreadsheet column is identified by its header text when the file has a
# header row, otherwise by its 0-based position.
type ColumnId = str | int

CANONICAL_FIELDS: tuple[FieldTag, ...] = (
    "date",
    "description",
    "amount",
    "type",
    "category",
    "tags",
)
"""Every mappable field, in template column order (``ignore`` excluded)."""

REQUIRED_FIELDS: tuple[FieldTag, ...] = ("date", "description", "amount")


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawGrid:
    """One decoded sheet (or the single section of a CSV) as untyped text.

    ``rows`` includes the header row when the source has one; blank rows in
    the middle of the sheet are kept as empty tuples so that row positions
    stay aligned with the source file.
    """

    name: str
    kind: SheetKind
    rows: tuple[tuple[str, ...], ...]

    @property
    def width(self) -> int:
        return max((len(r) for r in self.rows), default=0)

    def header(self) -> tuple[str, ...]:
        return self.rows[0] if self.rows else ()

    def data_rows(self, *, has_header: bool) -> tuple[tuple[str, ...], ...]:
        return self.rows[1:] if has_header else self.rows


@dataclass(frozen=True, slots=True)
class DeclaredCategory:
    """A category row read from a workbook's dedicated categories sheet."""

    name: str
    type: Polarity
    color: str | None = None
    sort_order: int | None = None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ParsedTransaction:
    """The canonical unit produced by the row parser.

    ``amount`` is always the absolute value; polarity is carried only by
    ``type``. ``category`` and ``tags`` hold normalized keys while
    ``raw_category``/``raw_tags`` keep the text as it appeared in the file for
    display and for naming newly created catalog entries.
    """

    date: str
    description: str
    amount: Decimal
    type: Polarity
    category: str | None
    tags: tuple[str, ...]
    reference: str
    row_number: int
    raw_category: str | None = None
    raw_tags: tuple[str, ...] = ()
    validation_errors: tuple[str, ...] = ()

    @property
    def signed_amount(self) -> Decimal:
        return -self.amount if self.type == "expense" else self.amount


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Row parser output: the records plus the rows it dropped."""

    transactions: tuple[ParsedTransaction, ...]
    skipped_row_numbers: frozenset[int]
    total_rows: int


# ---------------------------------------------------------------------------
# Extraction and reconciliation
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DetectedCategory:
    key: str
    name: str
    type: Polarity
    count: int
    declared: bool = False


@dataclass(frozen=True, slots=True)
class DetectedTag:
    key: str
    name: str
    count: int


@dataclass(frozen=True, slots=True)
class ExtractedEntities:
    categories: tuple[DetectedCategory, ...]
    tags: tuple[DetectedTag, ...]


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """An existing category or tag known to the record store."""

    id: str
    name: str
    type: Polarity | None = None


@dataclass(frozen=True, slots=True)
class Catalog:
    """Read-only snapshot of the user's categories and tags for one import job."""

    categories: tuple[CatalogEntry, ...] = ()
    tags: tuple[CatalogEntry, ...] = ()


@dataclass(frozen=True, slots=True)
class ReconciliationDecision:
    """Whether a spreadsheet name reuses a catalog entry or creates a new one.

    ``system_id``/``system_name`` are set only for ``map`` decisions.
    ``polarity`` is set for categories and ``None`` for tags.
    """

    kind: EntityKind
    raw_name: str
    key: str
    action: DecisionAction
    confidence: float
    count: int
    polarity: Polarity | None = None
    system_id: str | None = None
    system_name: str | None = None


__all__ = [
    "CANONICAL_FIELDS",
    "REQUIRED_FIELDS",
    "Catalog",
    "CatalogEntry",
    "ColumnId",
    "DecisionAction",
    "DeclaredCategory",
    "DetectedCategory",
    "DetectedTag",
    "EntityKind",
    "ExtractedEntities",
    "FieldTag",
    "ParseResult",
    "ParsedTransaction",
    "Polarity",
    "RawGrid",
    "ReconciliationDecision",
    "SheetKind",
    "SourceFormat",
]
