"""Public interface for the ``finance_import`` package.

This module exposes the pipeline entry points and the public models/types as
the stable import surface. There is no runtime logic here, only symbol
re-exports. Database-backed helpers (``finance_import.catalog`` and
``finance_import.persistence``) are imported explicitly by callers that need
them.
"""

from .config import ImportOptions
from .entities import extract_entities
from .ingest import ColumnMapping, DecodeError, auto_map_columns, decode, parse_rows
from .models import (
    Catalog,
    CatalogEntry,
    ParsedTransaction,
    ParseResult,
    RawGrid,
    ReconciliationDecision,
)
from .normalizers import format_date, normalize_category, normalize_tag, normalize_type, parse_amount
from .pipeline import (
    CommitPlan,
    ImportRun,
    TransactionPayload,
    aread_source,
    build_commit_plan,
    remap,
    run_import,
    with_decisions,
)
from .reconcile import override_decision, reconcile_categories, reconcile_tags, similarity
from .template import template_csv, template_workbook
from .validation import ValidationReport, validate_transactions

__all__ = [
    # Pipeline
    "run_import",
    "remap",
    "with_decisions",
    "aread_source",
    "build_commit_plan",
    "ImportRun",
    "CommitPlan",
    "TransactionPayload",
    # Stages
    "decode",
    "auto_map_columns",
    "parse_rows",
    "extract_entities",
    "reconcile_categories",
    "reconcile_tags",
    "override_decision",
    "similarity",
    "validate_transactions",
    "template_workbook",
    "template_csv",
    # Normalizers
    "normalize_category",
    "normalize_tag",
    "normalize_type",
    "parse_amount",
    "format_date",
    # Models / types
    "ImportOptions",
    "ColumnMapping",
    "DecodeError",
    "RawGrid",
    "ParsedTransaction",
    "ParseResult",
    "Catalog",
    "CatalogEntry",
    "ReconciliationDecision",
    "ValidationReport",
]
