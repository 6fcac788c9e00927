"""Validator and reporter for parsed transactions.

Row problems are collected, never raised: every call returns a
:class:`ValidationReport`, even when every row fails. Blocking errors make the
report invalid; warnings (unmapped categories, over-long new names, mapping
conflicts, skipped rows) never do.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import replace

from pydantic import BaseModel, ConfigDict, model_validator

from .logging_setup import get_logger
from .models import Catalog, ParsedTransaction, ReconciliationDecision
from .normalizers import format_date, normalize_category, normalize_tag, parse_iso_date

_logger = get_logger("finance_import.validation")

MIN_DESCRIPTION_LENGTH = 2
MAX_NAME_LENGTH = 64


# ---------------------------------------------------------------------------
# Report models
# ---------------------------------------------------------------------------


class ReportStatistics(BaseModel):
    """Aggregate counts; each total equals the sum of its two parts."""

    model_config = ConfigDict(strict=True, frozen=True, extra="forbid")

    total_transactions: int = 0
    valid_transactions: int = 0
    invalid_transactions: int = 0
    total_categories: int = 0
    mapped_categories: int = 0
    unmapped_categories: int = 0
    total_tags: int = 0
    mapped_tags: int = 0
    unmapped_tags: int = 0
    skipped_rows: int = 0

    @model_validator(mode="after")
    def _counts_add_up(self) -> ReportStatistics:
        pairs = (
            ("transactions", self.total_transactions, self.valid_transactions + self.invalid_transactions),
            ("categories", self.total_categories, self.mapped_categories + self.unmapped_categories),
            ("tags", self.total_tags, self.mapped_tags + self.unmapped_tags),
        )
        for name, total, parts in pairs:
            if total != parts:
                raise ValueError(f"{name}: parts ({parts}) do not add up to total ({total})")
        return self


class ValidationReport(BaseModel):
    """Full result of one validation pass (recomputed, never patched)."""

    model_config = ConfigDict(strict=True, frozen=True, extra="forbid")

    is_valid: bool
    errors: list[str]
    warnings: list[str]
    statistics: ReportStatistics
    row_errors: dict[int, list[str]] = {}

    @model_validator(mode="after")
    def _validity_matches_errors(self) -> ValidationReport:
        if self.is_valid != (not self.errors):
            raise ValueError("is_valid must be true exactly when there are no errors")
        return self


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def check_transaction(tx: ParsedTransaction) -> list[str]:
    """Return the blocking problems of one transaction (empty when valid)."""

    problems: list[str] = []
    if parse_iso_date(format_date(tx.date)) is None:
        problems.append(f"invalid date {tx.date!r}")
    if len(tx.description.strip()) < MIN_DESCRIPTION_LENGTH:
        problems.append(f"description must have at least {MIN_DESCRIPTION_LENGTH} characters")
    if not tx.amount > 0:
        problems.append(f"amount must be greater than zero (got {tx.amount})")
    return problems


def _too_long(name: str) -> bool:
    return len(" ".join(name.split())) > MAX_NAME_LENGTH


def _mapped_keys(
    decisions: Sequence[ReconciliationDecision] | None,
    catalog_names: Iterable[str],
    normalize,
) -> tuple[set[str], set[str] | None]:
    """Return ``(mapped_keys, known_keys)``.

    With decisions, a key counts as mapped only when its decision is ``map``
    and ``known_keys`` lists every decided key. Without decisions, the keys of
    the catalog names are the mapped set and ``known_keys`` is ``None``.
    """

    if decisions is not None:
        return {d.key for d in decisions if d.action == "map"}, {d.key for d in decisions}
    return {normalize(n) for n in catalog_names} - {""}, None


def validate_transactions(
    transactions: Sequence[ParsedTransaction],
    catalog: Catalog,
    *,
    category_decisions: Sequence[ReconciliationDecision] | None = None,
    tag_decisions: Sequence[ReconciliationDecision] | None = None,
    mapping_conflicts: Sequence[str] = (),
    skipped_row_numbers: Iterable[int] = (),
) -> ValidationReport:
    """Validate ``transactions`` and build the report.

    When the matcher's decisions are supplied they decide whether a category
    or tag is already in the catalog, so the report and the decisions never
    disagree. Without them an exact normalized-name match against ``catalog``
    is used.
    """

    errors: list[str] = []
    warnings: list[str] = [f"Column mapping: {note}" for note in mapping_conflicts]
    row_errors: dict[int, list[str]] = {}

    skipped = sorted(skipped_row_numbers)
    if skipped:
        shown = ", ".join(str(n) for n in skipped[:20])
        more = f" (+{len(skipped) - 20} more)" if len(skipped) > 20 else ""
        warnings.append(
            f"{len(skipped)} row(s) skipped for a missing date, description or amount, "
            f"or an unreadable/zero amount: {shown}{more}"
        )

    cat_mapped, cat_known = _mapped_keys(
        category_decisions, (e.name for e in catalog.categories), normalize_category
    )
    tag_mapped, tag_known = _mapped_keys(tag_decisions, (e.name for e in catalog.tags), normalize_tag)

    invalid = 0
    too_long: dict[tuple[str, str], None] = {}
    seen_categories: dict[str, None] = {}
    seen_tags: dict[str, None] = {}
    for tx in transactions:
        problems = check_transaction(tx)
        if problems:
            invalid += 1
            row_errors[tx.row_number] = problems
            errors.extend(f"Row {tx.row_number}: {p}" for p in problems)
        if tx.category:
            seen_categories.setdefault(tx.category, None)
            if tx.category not in cat_mapped:
                warnings.append(
                    f"Row {tx.row_number}: category {tx.raw_category or tx.category!r} "
                    "is not mapped to an existing category"
                )
                if _too_long(tx.raw_category or tx.category):
                    too_long.setdefault(("category", tx.raw_category or tx.category), None)
        for key in tx.tags:
            seen_tags.setdefault(key, None)
        for raw in tx.raw_tags:
            if _too_long(raw) and normalize_tag(raw) not in tag_mapped:
                too_long.setdefault(("tag", raw), None)

    warnings.extend(
        f"{kind.capitalize()} {name!r} is longer than {MAX_NAME_LENGTH} characters "
        "and will not be created"
        for kind, name in too_long
    )

    category_keys = set(cat_known) if cat_known is not None else set(seen_categories)
    tag_keys = set(tag_known) if tag_known is not None else set(seen_tags)
    mapped_categories = len(category_keys & cat_mapped)
    mapped_tags = len(tag_keys & tag_mapped)

    total = len(transactions)
    stats = ReportStatistics(
        total_transactions=total,
        valid_transactions=total - invalid,
        invalid_transactions=invalid,
        total_categories=len(category_keys),
        mapped_categories=mapped_categories,
        unmapped_categories=len(category_keys) - mapped_categories,
        total_tags=len(tag_keys),
        mapped_tags=mapped_tags,
        unmapped_tags=len(tag_keys) - mapped_tags,
        skipped_rows=len(skipped),
    )
    report = ValidationReport(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        statistics=stats,
        row_errors=row_errors,
    )
    _logger.info(
        "validation: %d/%d transactions valid, %d errors, %d warnings",
        stats.valid_transactions,
        total,
        len(errors),
        len(warnings),
    )
    return report


def annotate_transactions(
    transactions: Iterable[ParsedTransaction], report: ValidationReport
) -> tuple[ParsedTransaction, ...]:
    """Return copies of ``transactions`` carrying their row's blocking errors."""

    return tuple(
        replace(tx, validation_errors=tuple(report.row_errors.get(tx.row_number, ())))
        for tx in transactions
    )


__all__ = [
    "MAX_NAME_LENGTH",
    "MIN_DESCRIPTION_LENGTH",
    "ReportStatistics",
    "ValidationReport",
    "annotate_transactions",
    "check_transaction",
    "validate_transactions",
]
