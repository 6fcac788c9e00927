import asyncio
import textwrap
from decimal import Decimal
from pathlib import Path

import pytest
from finance_import.config import ImportOptions
from finance_import.ingest.columns import auto_map_columns
from finance_import.ingest.decoder import DecodeError
from finance_import.models import Catalog, CatalogEntry
from finance_import.pipeline import (
    aread_source,
    build_commit_plan,
    remap,
    run_import,
    with_decisions,
)
from finance_import.reconcile import override_decision


def _csv(s: str) -> bytes:
    return textwrap.dedent(s).lstrip("\n").encode("utf-8")


_SAMPLE = _csv(
    """
    Data;Descrição;Valor;Tipo;Categoria;Tags
    15/01/2024;Mercado;-150,50;Despesa;Alimentação;casa, mercado
    20/01/2024;Salário;5.000,00;Receita;Salario;trabalho
    21/01/2024;Padaria;-12,00;Despesa;alimentacao;
    invalid-date;Farmácia;-30,00;Despesa;Saúde;
    ;Sem data;-1,00;;;
    """
)

_OPTIONS = ImportOptions(delimiter=";", decimal_separator=",", source_label="bank")

_CATALOG = Catalog(
    categories=(CatalogEntry(id="10", name="Alimentação", type="expense"),),
    tags=(CatalogEntry(id="20", name="Casa"),),
)


def test_run_import_end_to_end():
    run = run_import(_SAMPLE, _OPTIONS, _CATALOG)

    assert run.mapping.missing_required() == []
    assert run.parse.total_rows == 5
    assert run.parse.skipped_row_numbers == frozenset({6})
    assert [tx.reference for tx in run.transactions] == ["BANK-2", "BANK-3", "BANK-4", "BANK-5"]
    assert run.transactions[1].amount == Decimal("5000.00")

    assert [(c.key, c.count) for c in run.entities.categories] == [
        ("alimentacao", 2),
        ("salario", 1),
        ("saude", 1),
    ]
    assert [(d.key, d.action, d.system_id) for d in run.category_decisions] == [
        ("alimentacao", "map", "10"),
        ("salario", "create", None),
        ("saude", "create", None),
    ]
    assert [(d.key, d.action) for d in run.tag_decisions] == [
        ("casa", "map"),
        ("mercado", "create"),
        ("trabalho", "create"),
    ]

    report = run.report
    assert report.is_valid is False
    assert report.row_errors == {5: ["invalid date 'invalid-date'"]}
    assert report.statistics.total_transactions == 4
    assert report.statistics.invalid_transactions == 1
    assert report.statistics.skipped_rows == 1
    assert report.statistics.mapped_categories == 1
    assert report.statistics.mapped_tags == 1
    assert [tx.row_number for tx in run.valid_transactions] == [2, 3, 4]


def test_run_import_surfaces_decode_errors():
    with pytest.raises(DecodeError):
        run_import(b"", _OPTIONS, Catalog())


def test_mapping_conflicts_surface_as_warnings():
    data = _csv(
        """
        Data,Valor,Valor Original,Descrição
        2024-01-15,-1,-4.50,Coffee
        """
    )
    run = run_import(data, ImportOptions(), Catalog())
    (tx,) = run.transactions
    assert tx.amount == Decimal("4.50")
    assert any(w.startswith("Column mapping: ") and "Valor Original" in w for w in run.report.warnings)


def test_headerless_file_needs_a_mapping_then_remaps():
    data = _csv(
        """
        2024-01-15,Coffee,-4.50
        2024-01-16,Tea,-3.00
        """
    )
    catalog = Catalog()
    run = run_import(data, ImportOptions(has_header=False), catalog)
    assert run.mapping.fields == ["ignore", "ignore", "ignore"]
    assert run.transactions == ()
    assert run.parse.skipped_row_numbers == frozenset({1, 2})
    assert "Column mapping: no column is mapped to 'date'" in run.report.warnings

    mapping = run.mapping.copy()
    for idx, tag in enumerate(("date", "description", "amount")):
        mapping.assign(idx, tag)
    revised = remap(run, mapping, catalog)
    assert [tx.reference for tx in revised.transactions] == ["CSV-1", "CSV-2"]
    assert revised.report.is_valid
    assert revised.report.warnings == []
    assert run.transactions == ()


def test_explicit_mapping_is_not_mutated():
    data = _csv(
        """
        Date,Description,Amount
        2024-01-15,Coffee,-4.50
        """
    )
    mapping = auto_map_columns(["Date", "Description", "Amount"])
    run = run_import(data, ImportOptions(), Catalog(), mapping=mapping)
    assert run.mapping == mapping
    assert run.mapping is not mapping


def test_with_decisions_recomputes_the_report():
    run = run_import(_SAMPLE, _OPTIONS, _CATALOG)
    cats = list(run.category_decisions)
    cats[1] = override_decision(cats[1], "map", system_id="10", system_name="Alimentação")
    revised = with_decisions(run, _CATALOG, category_decisions=cats)
    assert revised.category_decisions[1].action == "map"
    assert revised.tag_decisions == run.tag_decisions
    assert revised.report.statistics.mapped_categories == 2
    assert run.report.statistics.mapped_categories == 1
    assert any("'Salario'" in w for w in run.report.warnings)
    assert not any("'Salario'" in w for w in revised.report.warnings)


def test_commit_plan_excludes_invalid_rows_and_signs_amounts():
    run = run_import(_SAMPLE, _OPTIONS, _CATALOG)
    plan = build_commit_plan(run, user_id=1, account_id=7)
    assert plan.excluded_rows == (5,)
    assert [p.reference for p in plan.transactions] == ["BANK-2", "BANK-3", "BANK-4"]
    first, salary, _ = plan.transactions
    assert first.amount == Decimal("-150.50")
    assert first.user_id == 1
    assert first.account_id == 7
    assert first.category_key == "alimentacao"
    assert first.tag_keys == ("casa", "mercado")
    assert first.notes == "Imported from spreadsheet (BANK-2)"
    assert salary.amount == Decimal("5000.00")
    assert plan.category_decisions == run.category_decisions


def test_commit_plan_can_include_invalid_rows():
    run = run_import(_SAMPLE, _OPTIONS, _CATALOG)
    plan = build_commit_plan(run, user_id=1, account_id=7, include_invalid=True)
    assert plan.excluded_rows == ()
    assert len(plan.transactions) == 4


def test_aread_source_reads_bytes(tmp_path: Path):
    path = tmp_path / "upload.csv"
    path.write_bytes(b"Date,Description,Amount\n")
    assert asyncio.run(aread_source(path)) == b"Date,Description,Amount\n"
    assert asyncio.run(aread_source(str(path), timeout=5)) == b"Date,Description,Amount\n"


def test_aread_source_missing_file_is_a_decode_error(tmp_path: Path):
    with pytest.raises(DecodeError, match="cannot read"):
        asyncio.run(aread_source(tmp_path / "missing.csv"))


def test_aread_source_rejects_bad_timeout_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    path = tmp_path / "upload.csv"
    path.write_bytes(b"x")
    monkeypatch.setenv("FI_READ_TIMEOUT", "soon")
    with pytest.raises(ValueError, match="FI_READ_TIMEOUT"):
        asyncio.run(aread_source(path))
