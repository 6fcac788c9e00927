import re
from datetime import date
from decimal import Decimal

import pytest
from finance_import.normalizers import (
    format_date,
    normalize_category,
    normalize_type,
    parse_amount,
    parse_iso_date,
)

_ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def test_normalize_category_strips_accents_case_and_trailing_space():
    assert normalize_category("Alimentação ") == "alimentacao"


def test_normalize_category_collapses_punctuation_and_underscores():
    assert normalize_category("Food & Drinks!!") == "food drinks"
    assert normalize_category("home_office") == "home office"
    assert normalize_category("  Saúde   /  Farmácia ") == "saude farmacia"


def test_normalize_category_empty_inputs():
    assert normalize_category("") == ""
    assert normalize_category(None) == ""
    assert normalize_category("!!!") == ""


@pytest.mark.parametrize(
    "raw",
    ["Alimentação ", "Food & Drinks!!", "  ÉCOLE__fees ", "Café-da-manhã", "already normal", "Ω mega"],
)
def test_normalize_category_is_idempotent(raw):
    once = normalize_category(raw)
    assert normalize_category(once) == once


def test_normalize_type_vocabulary():
    assert normalize_type("Saída") == "expense"
    assert normalize_type("Ganho") == "income"
    assert normalize_type("Unknown") is None
    assert normalize_type(" RECEITA ") == "income"
    assert normalize_type("Expenses") == "expense"
    assert normalize_type("entrada de caixa") == "income"
    assert normalize_type("") is None
    assert normalize_type(None) is None


def test_parse_amount_comma_decimal_separator():
    assert parse_amount("R$ 1.234,56", decimal_separator=",") == Decimal("1234.56")
    assert parse_amount("R$ -50,00", decimal_separator=",") == Decimal("-50.00")


def test_parse_amount_dot_decimal_separator():
    assert parse_amount("-1,234.50") == Decimal("-1234.50")
    assert parse_amount("$ 12") == Decimal("12")
    assert parse_amount("USD 5.5") == Decimal("5.5")
    assert parse_amount("€10") == Decimal("10")


def test_parse_amount_parentheses_mean_negative():
    assert parse_amount("(45.00)") == Decimal("-45.00")
    assert parse_amount("+7") == Decimal("7")


@pytest.mark.parametrize("raw", ["", "   ", "abc", "1.2.3", "NaN", "12abc", None])
def test_parse_amount_rejects_non_numeric(raw):
    assert parse_amount(raw) is None


def test_format_date_rewrites_recognized_shapes():
    assert format_date("15/01/2024") == "2024-01-15"
    assert format_date("15-01-2024") == "2024-01-15"
    assert format_date("2024/01/15") == "2024-01-15"
    assert format_date("2024-01-15") == "2024-01-15"
    assert format_date(" 15/01/2024 ") == "2024-01-15"


def test_format_date_leaves_unknown_shapes_unchanged():
    assert format_date("Jan 15 2024") == "Jan 15 2024"
    assert format_date("invalid-date") == "invalid-date"
    assert format_date("1/5/2024") == "1/5/2024"
    # Only ASCII digits form a recognized shape.
    assert format_date("\uff11\uff15/\uff10\uff11/\uff12\uff10\uff12\uff14") == (
        "\uff11\uff15/\uff10\uff11/\uff12\uff10\uff12\uff14"
    )


@pytest.mark.parametrize("raw", ["15/01/2024", "15-01-2024", "2024/01/15", "2024-01-15"])
def test_format_date_output_is_iso_and_idempotent(raw):
    once = format_date(raw)
    assert _ISO_RE.match(once)
    assert format_date(once) == once


def test_parse_iso_date_requires_real_calendar_date():
    assert parse_iso_date("2024-02-29") == date(2024, 2, 29)
    assert parse_iso_date("2024-02-30") is None
    assert parse_iso_date("2023-13-01") is None
    assert parse_iso_date("15/01/2024") is None
    assert parse_iso_date("\u0662\u0660\u0662\u0664-\u0660\u0661-\u0661\u0665") is None
