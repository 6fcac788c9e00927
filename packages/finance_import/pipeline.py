"""End-to-end import pipeline as an explicit value.

Each stage takes the previous stage's output and returns its own; the
resulting :class:`ImportRun` holds all of them so a caller can show the
report, revise the column mapping or the decisions, and finally turn the run
into a :class:`CommitPlan` for the persistence layer.

Flow
----
``decode -> map columns -> parse rows -> extract entities -> reconcile -> validate``

Only the file read (:func:`aread_source`) may suspend; every later stage is
pure and synchronous.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, replace
from decimal import Decimal
from os import PathLike
from pathlib import Path

from .config import ImportOptions, read_timeout_from_env
from .entities import extract_entities
from .ingest.category_sheet import parse_category_sheet
from .ingest.columns import ColumnMapping, auto_map_columns
from .ingest.decoder import DecodedFile, DecodeError, decode
from .ingest.rows import parse_rows
from .logging_setup import get_logger
from .models import (
    Catalog,
    DeclaredCategory,
    ExtractedEntities,
    ParsedTransaction,
    ParseResult,
    Polarity,
    ReconciliationDecision,
)
from .reconcile import reconcile_categories, reconcile_tags
from .validation import ValidationReport, annotate_transactions, validate_transactions

_logger = get_logger("finance_import.pipeline")


# ---------------------------------------------------------------------------
# Source reading
# ---------------------------------------------------------------------------


async def aread_source(path: str | PathLike[str], timeout: float | None = None) -> bytes:
    """Read ``path`` off the event loop, bounded by ``timeout`` seconds.

    ``timeout=None`` falls back to ``FI_READ_TIMEOUT`` (unset means no limit).
    Unreadable files raise :class:`DecodeError`; an expired timeout raises
    ``TimeoutError``.
    """

    limit = timeout if timeout is not None else read_timeout_from_env()
    p = Path(path)
    try:
        data = await asyncio.wait_for(asyncio.to_thread(p.read_bytes), limit)
    except OSError as exc:
        raise DecodeError(f"cannot read {p}: {exc}") from exc
    _logger.debug("read %d bytes from %s", len(data), p)
    return data


# ---------------------------------------------------------------------------
# Pipeline value
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ImportRun:
    """Every stage output of one import job."""

    options: ImportOptions
    decoded: DecodedFile
    declared_categories: tuple[DeclaredCategory, ...]
    mapping: ColumnMapping
    parse: ParseResult
    transactions: tuple[ParsedTransaction, ...]
    entities: ExtractedEntities
    category_decisions: tuple[ReconciliationDecision, ...]
    tag_decisions: tuple[ReconciliationDecision, ...]
    report: ValidationReport

    @property
    def valid_transactions(self) -> tuple[ParsedTransaction, ...]:
        return tuple(tx for tx in self.transactions if not tx.validation_errors)


def _mapping_notes(mapping: ColumnMapping) -> list[str]:
    notes = list(mapping.conflicts)
    notes.extend(f"no column is mapped to {tag!r}" for tag in mapping.missing_required())
    return notes


def _validate(
    parse: ParseResult,
    catalog: Catalog,
    mapping: ColumnMapping,
    category_decisions: Sequence[ReconciliationDecision],
    tag_decisions: Sequence[ReconciliationDecision],
) -> tuple[ValidationReport, tuple[ParsedTransaction, ...]]:
    report = validate_transactions(
        parse.transactions,
        catalog,
        category_decisions=category_decisions,
        tag_decisions=tag_decisions,
        mapping_conflicts=_mapping_notes(mapping),
        skipped_row_numbers=parse.skipped_row_numbers,
    )
    return report, annotate_transactions(parse.transactions, report)


def _run_from_mapping(
    options: ImportOptions,
    decoded: DecodedFile,
    declared: tuple[DeclaredCategory, ...],
    mapping: ColumnMapping,
    catalog: Catalog,
) -> ImportRun:
    missing = mapping.missing_required()
    if missing:
        _logger.warning("required fields without a column: %s; every row will be skipped", missing)

    parse = parse_rows(
        decoded.transactions,
        mapping,
        has_header=options.has_header,
        decimal_separator=options.decimal_separator,
        reference_prefix=options.reference_prefix,
    )
    entities = extract_entities(parse.transactions, declared)
    category_decisions = reconcile_categories(entities.categories, catalog.categories)
    tag_decisions = reconcile_tags(entities.tags, catalog.tags)
    report, transactions = _validate(parse, catalog, mapping, category_decisions, tag_decisions)
    return ImportRun(
        options=options,
        decoded=decoded,
        declared_categories=declared,
        mapping=mapping,
        parse=parse,
        transactions=transactions,
        entities=entities,
        category_decisions=category_decisions,
        tag_decisions=tag_decisions,
        report=report,
    )


def run_import(
    data: bytes,
    options: ImportOptions,
    catalog: Catalog,
    *,
    mapping: ColumnMapping | None = None,
) -> ImportRun:
    """Run the whole pipeline over ``data``.

    ``catalog`` is the read-only snapshot of existing categories and tags for
    this job. Without ``mapping`` the columns are auto-mapped from the header
    row (or all ignored for headerless files). Only :class:`DecodeError`
    escapes; row problems end up in ``run.report``.
    """

    decoded = decode(data, options)
    grid = decoded.transactions
    if mapping is None:
        header = grid.header() if options.has_header else None
        mapping = auto_map_columns(header, grid.width)
    else:
        mapping = mapping.copy()
    declared: tuple[DeclaredCategory, ...] = ()
    if decoded.categories is not None:
        declared = tuple(parse_category_sheet(decoded.categories))
    return _run_from_mapping(options, decoded, declared, mapping, catalog)


def remap(run: ImportRun, mapping: ColumnMapping, catalog: Catalog) -> ImportRun:
    """Re-run parsing onwards with a revised column mapping."""

    return _run_from_mapping(run.options, run.decoded, run.declared_categories, mapping.copy(), catalog)


def with_decisions(
    run: ImportRun,
    catalog: Catalog,
    *,
    category_decisions: Sequence[ReconciliationDecision] | None = None,
    tag_decisions: Sequence[ReconciliationDecision] | None = None,
) -> ImportRun:
    """Replace (user-overridden) decisions and recompute the report."""

    cats = tuple(category_decisions) if category_decisions is not None else run.category_decisions
    tags = tuple(tag_decisions) if tag_decisions is not None else run.tag_decisions
    report, transactions = _validate(run.parse, catalog, run.mapping, cats, tags)
    return replace(
        run,
        category_decisions=cats,
        tag_decisions=tags,
        report=report,
        transactions=transactions,
    )


# ---------------------------------------------------------------------------
# Commit plan
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TransactionPayload:
    """One transaction ready for insertion (amount signed by type)."""

    user_id: int
    account_id: int
    date: str
    description: str
    amount: Decimal
    type: Polarity
    category_key: str | None
    tag_keys: tuple[str, ...]
    reference: str
    notes: str


@dataclass(frozen=True, slots=True)
class CommitPlan:
    """What a confirmed import writes: decisions to apply and rows to insert."""

    user_id: int
    account_id: int
    category_decisions: tuple[ReconciliationDecision, ...]
    tag_decisions: tuple[ReconciliationDecision, ...]
    transactions: tuple[TransactionPayload, ...]
    excluded_rows: tuple[int, ...] = ()
    declared_categories: tuple[DeclaredCategory, ...] = ()


def build_commit_plan(
    run: ImportRun,
    *,
    user_id: int,
    account_id: int,
    include_invalid: bool = False,
) -> CommitPlan:
    """Turn ``run`` into a :class:`CommitPlan`.

    Rows with validation errors are left out (and listed in
    ``excluded_rows``) unless ``include_invalid`` is set.
    """

    payloads: list[TransactionPayload] = []
    excluded: list[int] = []
    for tx in run.transactions:
        if tx.validation_errors and not include_invalid:
            excluded.append(tx.row_number)
            continue
        payloads.append(
            TransactionPayload(
                user_id=user_id,
                account_id=account_id,
                date=tx.date,
                description=tx.description,
                amount=tx.signed_amount,
                type=tx.type,
                category_key=tx.category,
                tag_keys=tx.tags,
                reference=tx.reference,
                notes=f"Imported from spreadsheet ({tx.reference})",
            )
        )
    _logger.info(
        "commit plan: %d transactions, %d excluded", len(payloads), len(excluded)
    )
    return CommitPlan(
        user_id=user_id,
        account_id=account_id,
        category_decisions=run.category_decisions,
        tag_decisions=run.tag_decisions,
        transactions=tuple(payloads),
        excluded_rows=tuple(excluded),
        declared_categories=run.declared_categories,
    )


__all__ = [
    "CommitPlan",
    "ImportRun",
    "TransactionPayload",
    "aread_source",
    "build_commit_plan",
    "remap",
    "run_import",
    "with_decisions",
]
