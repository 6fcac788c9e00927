import csv
import io
from decimal import Decimal

from finance_import.config import ImportOptions
from finance_import.ingest.decoder import decode_xlsx
from finance_import.models import Catalog
from finance_import.pipeline import run_import
from finance_import.template import (
    CATEGORY_COLUMNS,
    EXAMPLE_TRANSACTIONS,
    TRANSACTION_COLUMNS,
    template_csv,
    template_workbook,
)
from openpyxl import load_workbook


def test_workbook_has_both_sheets_with_fixed_headers():
    wb = load_workbook(io.BytesIO(template_workbook()))
    assert wb.sheetnames == ["Transactions", "Categories"]
    tx_header = [c.value for c in wb["Transactions"][1]]
    cat_header = [c.value for c in wb["Categories"][1]]
    assert tuple(tx_header) == TRANSACTION_COLUMNS
    assert tuple(cat_header) == CATEGORY_COLUMNS
    assert wb["Transactions"].max_row == len(EXAMPLE_TRANSACTIONS) + 1
    assert wb["Transactions"]["A1"].font.bold


def test_workbook_is_generated_identically_each_time():
    first = decode_xlsx(template_workbook())
    second = decode_xlsx(template_workbook())
    assert first == second


def test_workbook_imports_cleanly():
    run = run_import(template_workbook(), ImportOptions(format="xlsx"), Catalog())
    assert run.report.is_valid
    assert run.parse.skipped_row_numbers == frozenset()
    assert [tx.reference for tx in run.transactions] == ["XLSX-2", "XLSX-3", "XLSX-4"]
    first = run.transactions[0]
    assert first.date == "2024-01-15"
    assert first.amount == Decimal("150.5")
    assert first.type == "expense"
    assert first.tags == ("groceries", "family")
    assert [(d.name, d.type, d.color, d.sort_order) for d in run.declared_categories] == [
        ("Food", "expense", "#EF4444", 1),
        ("Salary", "income", "#10B981", 2),
        ("Transport", "expense", "#3B82F6", 3),
    ]
    assert [d.action for d in run.category_decisions] == ["create", "create", "create"]


def test_csv_template_rows():
    rows = list(csv.reader(io.StringIO(template_csv())))
    assert tuple(rows[0]) == TRANSACTION_COLUMNS
    assert rows[1] == ["2024-01-15", "Supermarket", "-150.50", "Expense", "Food", "groceries, family"]
    assert len(rows) == len(EXAMPLE_TRANSACTIONS) + 1


def test_csv_template_with_semicolons_imports_cleanly():
    data = template_csv(delimiter=";").encode("utf-8")
    run = run_import(data, ImportOptions(delimiter=";"), Catalog())
    assert run.report.is_valid
    assert len(run.transactions) == 3
    assert run.transactions[1].type == "income"
    assert run.transactions[1].amount == Decimal("5000.00")
