from dataclasses import replace
from decimal import Decimal

import pytest
from finance_import.models import Catalog, CatalogEntry, DetectedCategory, ParsedTransaction
from finance_import.normalizers import normalize_category
from finance_import.reconcile import reconcile_categories
from finance_import.validation import (
    MAX_NAME_LENGTH,
    ReportStatistics,
    ValidationReport,
    annotate_transactions,
    check_transaction,
    validate_transactions,
)
from pydantic import ValidationError


def _tx(
    row: int = 2,
    *,
    date: str = "2024-01-15",
    description: str = "Coffee",
    amount: str = "4.50",
    category: str | None = None,
    raw_category: str | None = None,
    tags: tuple[str, ...] = (),
) -> ParsedTransaction:
    return ParsedTransaction(
        date=date,
        description=description,
        amount=Decimal(amount),
        type="expense",
        category=category,
        tags=tags,
        reference=f"CSV-{row}",
        row_number=row,
        raw_category=raw_category,
    )


def test_check_transaction_valid_row():
    assert check_transaction(_tx()) == []


def test_check_transaction_reports_every_blocking_problem():
    problems = check_transaction(_tx(date="invalid-date", description="", amount="-1"))
    assert problems == [
        "invalid date 'invalid-date'",
        "description must have at least 2 characters",
        "amount must be greater than zero (got -1)",
    ]


def test_check_transaction_rejects_impossible_calendar_dates():
    assert check_transaction(_tx(date="2024-02-30")) == ["invalid date '2024-02-30'"]
    assert check_transaction(_tx(date="15/01/2024")) == []


def test_invalid_row_makes_report_invalid():
    txs = [_tx(2), _tx(3, date="invalid-date", description="", amount="-1")]
    report = validate_transactions(txs, Catalog())
    assert report.is_valid is False
    assert len(report.errors) >= 2
    assert all(e.startswith("Row 3: ") for e in report.errors)
    assert report.row_errors.keys() == {3}
    assert report.statistics.total_transactions == 2
    assert report.statistics.valid_transactions == 1
    assert report.statistics.invalid_transactions == 1


def test_empty_import_is_valid():
    report = validate_transactions([], Catalog())
    assert report.is_valid is True
    assert report.errors == []
    assert report.statistics == ReportStatistics()


def test_unknown_categories_are_warnings_not_errors():
    catalog = Catalog(categories=(CatalogEntry(id="1", name="Food"),))
    txs = [
        _tx(2, category="food", raw_category="Food"),
        _tx(3, category="transport", raw_category="Transport"),
        _tx(4, category="transport", raw_category="Transport"),
    ]
    report = validate_transactions(txs, catalog)
    assert report.is_valid is True
    assert report.warnings == [
        "Row 3: category 'Transport' is not mapped to an existing category",
        "Row 4: category 'Transport' is not mapped to an existing category",
    ]
    stats = report.statistics
    assert (stats.total_categories, stats.mapped_categories, stats.unmapped_categories) == (2, 1, 1)


def test_tags_counted_against_catalog_without_decisions():
    catalog = Catalog(tags=(CatalogEntry(id="1", name="Family"),))
    txs = [_tx(2, tags=("family", "work")), _tx(3, tags=("work",))]
    stats = validate_transactions(txs, catalog).statistics
    assert (stats.total_tags, stats.mapped_tags, stats.unmapped_tags) == (2, 1, 1)


def test_matcher_decisions_take_precedence_over_exact_names():
    catalog = Catalog(categories=(CatalogEntry(id="1", name="Groceries"),))
    txs = [_tx(2, category="groceris", raw_category="Groceris")]

    exact = validate_transactions(txs, catalog)
    assert exact.statistics.mapped_categories == 0
    assert len(exact.warnings) == 1

    decisions = reconcile_categories(
        [DetectedCategory(key="groceris", name="Groceris", type="expense", count=1)],
        catalog.categories,
    )
    assert decisions[0].action == "map"
    fuzzy = validate_transactions(txs, catalog, category_decisions=decisions)
    assert fuzzy.statistics.mapped_categories == 1
    assert fuzzy.statistics.unmapped_categories == 0
    assert fuzzy.warnings == []


_LONG_NAME = "Groceries and household supplies for the whole family in January 2024"


def test_overlong_new_names_are_reported_once_as_warnings():
    assert len(_LONG_NAME) > MAX_NAME_LENGTH
    key = normalize_category(_LONG_NAME)
    long_tag = "x" * (MAX_NAME_LENGTH + 1)
    txs = [
        replace(_tx(row, category=key, raw_category=_LONG_NAME), tags=(long_tag,), raw_tags=(long_tag,))
        for row in (2, 3)
    ]
    report = validate_transactions(txs, Catalog())
    assert report.is_valid is True
    too_long = [w for w in report.warnings if "will not be created" in w]
    assert too_long == [
        f"Category {_LONG_NAME!r} is longer than 64 characters and will not be created",
        f"Tag {long_tag!r} is longer than 64 characters and will not be created",
    ]


def test_overlong_names_already_in_catalog_are_not_flagged():
    catalog = Catalog(categories=(CatalogEntry(id="1", name=_LONG_NAME),))
    txs = [_tx(2, category=normalize_category(_LONG_NAME), raw_category=_LONG_NAME)]
    report = validate_transactions(txs, catalog)
    assert report.warnings == []


def test_mapping_notes_and_skipped_rows_become_warnings():
    report = validate_transactions(
        [_tx()],
        Catalog(),
        mapping_conflicts=["Columns 'Valor' and 'Valor Original' both look like 'amount'"],
        skipped_row_numbers=[5, 4],
    )
    assert report.is_valid is True
    assert report.warnings[0] == (
        "Column mapping: Columns 'Valor' and 'Valor Original' both look like 'amount'"
    )
    assert report.warnings[1].startswith("2 row(s) skipped")
    assert report.warnings[1].endswith(": 4, 5")
    assert report.statistics.skipped_rows == 2


def test_long_skipped_lists_are_truncated():
    report = validate_transactions([], Catalog(), skipped_row_numbers=range(2, 32))
    assert report.warnings[0].endswith("(+10 more)")


def test_annotate_transactions_copies_row_errors():
    txs = [_tx(2), _tx(3, description="x")]
    report = validate_transactions(txs, Catalog())
    annotated = annotate_transactions(txs, report)
    assert annotated[0].validation_errors == ()
    assert annotated[1].validation_errors == ("description must have at least 2 characters",)
    assert txs[1].validation_errors == ()


def test_statistics_must_add_up():
    with pytest.raises(ValidationError):
        ReportStatistics(total_transactions=2, valid_transactions=1, invalid_transactions=0)


def test_report_validity_must_match_errors():
    with pytest.raises(ValidationError):
        ValidationReport(is_valid=True, errors=["Row 2: bad"], warnings=[], statistics=ReportStatistics())


def test_validation_is_deterministic():
    txs = [_tx(2, category="food"), _tx(3, date="nope")]
    assert validate_transactions(txs, Catalog()) == validate_transactions(txs, Catalog())
