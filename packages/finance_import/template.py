"""Downloadable import templates (XLSX workbook and CSV)."""

from __future__ import annotations

import csv
import io
from datetime import date
from decimal import Decimal

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

TRANSACTION_COLUMNS = ("Date", "Description", "Amount", "Type", "Category", "Tags")
CATEGORY_COLUMNS = ("Name", "Type", "Color", "Order")

TRANSACTIONS_SHEET = "Transactions"
CATEGORIES_SHEET = "Categories"

EXAMPLE_TRANSACTIONS: tuple[tuple[date, str, Decimal, str, str, str], ...] = (
    (date(2024, 1, 15), "Supermarket", Decimal("-150.50"), "Expense", "Food", "groceries, family"),
    (date(2024, 1, 20), "Monthly salary", Decimal("5000.00"), "Income", "Salary", "work"),
    (date(2024, 1, 22), "Bus pass", Decimal("-45.00"), "Expense", "Transport", ""),
)

EXAMPLE_CATEGORIES: tuple[tuple[str, str, str, int], ...] = (
    ("Food", "Expense", "#EF4444", 1),
    ("Salary", "Income", "#10B981", 2),
    ("Transport", "Expense", "#3B82F6", 3),
)

_HEADER_FILL = PatternFill("solid", fgColor="1F4E78")
_HEADER_FONT = Font(color="FFFFFF", bold=True)


def _write_sheet(ws, headers, rows, widths) -> None:
    ws.append(list(headers))
    for cell in ws[1]:
        cell.fill = _HEADER_FILL
        cell.font = _HEADER_FONT
    for row in rows:
        ws.append(list(row))
    for idx, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = width


def template_workbook() -> bytes:
    """Return an example XLSX workbook with a transactions and a categories sheet."""

    wb = Workbook()
    tx_ws = wb.active
    tx_ws.title = TRANSACTIONS_SHEET
    _write_sheet(
        tx_ws,
        TRANSACTION_COLUMNS,
        ((d, desc, float(amount), kind, cat, tags) for d, desc, amount, kind, cat, tags in EXAMPLE_TRANSACTIONS),
        (12, 30, 12, 10, 18, 24),
    )
    for cell in tx_ws["A"][1:]:
        cell.number_format = "yyyy-mm-dd"
    for cell in tx_ws["C"][1:]:
        cell.number_format = "0.00"

    cat_ws = wb.create_sheet(CATEGORIES_SHEET)
    _write_sheet(cat_ws, CATEGORY_COLUMNS, EXAMPLE_CATEGORIES, (20, 10, 10, 8))

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def template_csv(delimiter: str = ",") -> str:
    """Return the transactions section of the template as CSV text."""

    buf = io.StringIO()
    writer = csv.writer(buf, delimiter=delimiter, lineterminator="\n")
    writer.writerow(TRANSACTION_COLUMNS)
    for d, desc, amount, kind, cat, tags in EXAMPLE_TRANSACTIONS:
        writer.writerow([d.isoformat(), desc, f"{amount:.2f}", kind, cat, tags])
    return buf.getvalue()


__all__ = [
    "CATEGORIES_SHEET",
    "CATEGORY_COLUMNS",
    "EXAMPLE_CATEGORIES",
    "EXAMPLE_TRANSACTIONS",
    "TRANSACTIONS_SHEET",
    "TRANSACTION_COLUMNS",
    "template_csv",
    "template_workbook",
]
