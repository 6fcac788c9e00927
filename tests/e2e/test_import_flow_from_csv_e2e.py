from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from db.client import session_scope
from db.models.finance import FiCategory, FiTag
from finance_import.cli import app
from sqlalchemy import select
from typer.testing import CliRunner

from tests.helpers.db import (
    bootstrap_sqlite_db,
    count_transactions,
    seed_catalog,
    tag_links,
    transaction_rows,
)

_CSV = Path(__file__).resolve().parents[1] / "data/statement_jan_2024.csv"


def _flat(text: str) -> str:
    return " ".join(text.split())


def test_e2e_import_from_csv_persists_expected(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    # -------------------------
    # DB bootstrap + catalog
    # -------------------------
    monkeypatch.chdir(tmp_path)
    db_url = bootstrap_sqlite_db(tmp_path / "fi-e2e.db")
    ids = seed_catalog(
        database_url=db_url,
        user_id=1,
        categories=[("Alimentação", "expense"), ("Transporte", "expense")],
        tags=["Casa"],
    )

    args = [
        "import",
        str(_CSV),
        "--user-id",
        "1",
        "--account-id",
        "10",
        "--delimiter",
        ";",
        "--decimal-separator",
        ",",
        "--source-label",
        "extrato",
        "--database-url",
        db_url,
    ]
    runner = CliRunner()

    # -------------------------
    # First import
    # -------------------------
    result = runner.invoke(app, args)
    assert result.exit_code == 0, result.output
    out = _flat(result.output)
    assert "Report: INVALID" in out
    assert "Imported 9 transactions (0 already present, 1 invalid rows left out, 0 rejected)" in out
    assert "created 5 categories and 4 tags" in out

    rows = transaction_rows(db_url)
    assert len(rows) == 9
    assert {r.account_id for r in rows} == {10}
    by_ref = {r.reference: r for r in rows}
    assert set(by_ref) == {f"EXTRATO-{n}" for n in (2, 3, 4, 5, 6, 7, 8, 9, 11)}
    assert by_ref["EXTRATO-4"].amount == Decimal("7250.00")
    assert by_ref["EXTRATO-4"].type == "income"
    assert by_ref["EXTRATO-5"].amount == Decimal("-412.37")
    assert by_ref["EXTRATO-2"].category_id == ids["Alimentação"]
    assert by_ref["EXTRATO-3"].category_id == ids["Transporte"]
    assert by_ref["EXTRATO-9"].category_id == ids["Alimentação"]

    with session_scope(database_url=db_url) as session:
        categories = {
            c.name_key: c for c in session.execute(select(FiCategory)).scalars().all()
        }
        tags = {t.name_key: t for t in session.execute(select(FiTag)).scalars().all()}
    assert set(categories) == {
        "alimentacao",
        "transporte",
        "salario",
        "saude",
        "freelance",
        "moradia",
        "lazer",
    }
    assert categories["salario"].name == "Salário"
    assert categories["salario"].type == "income"
    assert categories["freelance"].type == "income"
    assert categories["saude"].type == "expense"
    assert set(tags) == {"casa", "cafe da manha", "trabalho", "mercado", "fim de semana"}
    assert tags["cafe da manha"].name == "café da manhã"

    links = tag_links(db_url)
    assert (by_ref["EXTRATO-5"].id, ids["Casa"]) in links
    assert (by_ref["EXTRATO-5"].id, tags["mercado"].id) in links
    assert len(links) == 7

    # -------------------------
    # Re-import is a no-op
    # -------------------------
    again = runner.invoke(app, args)
    assert again.exit_code == 0, again.output
    assert "Imported 0 transactions (9 already present" in _flat(again.output)
    assert "created 0 categories and 0 tags" in _flat(again.output)
    assert count_transactions(db_url, user_id=1) == 9
