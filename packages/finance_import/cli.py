"""CLI for the ``finance_import`` package.

Typer-based console interface over the import pipeline. Environment variables
(``DATABASE_URL`` and the ``FI_*`` decode defaults) are loaded from a local
``.env`` using ``python-dotenv`` before any command runs. Business logic lives
in ``finance_import.pipeline`` and related modules; this module only reads
files, renders results with ``rich`` and maps failures to exit codes.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table
from rich.text import Text
from sqlalchemy.exc import SQLAlchemyError

from .config import ImportOptions
from .ingest.decoder import DecodeError
from .logging_setup import configure_logging
from .models import CANONICAL_FIELDS, Catalog

console = Console()
err_console = Console(stderr=True)

# Errors reported as "Error: ..." with exit code 1 instead of a traceback.
_EXPECTED_ERRORS = (
    DecodeError,
    ValidationError,
    ValueError,
    KeyError,
    RuntimeError,
    TimeoutError,
    SQLAlchemyError,
)

_MAX_LISTED = 50


def _fail(message: str) -> typer.Exit:
    err_console.print(f"Error: {message}", style="red", markup=False, highlight=False)
    return typer.Exit(1)


# ---- Option helpers -----------------------------------------------------------


FormatOpt = Annotated[
    str | None, typer.Option("--format", help="Input format: csv or xlsx (default: from suffix).")
]
DelimiterOpt = Annotated[
    str | None, typer.Option(help="CSV delimiter: ',', ';' or 'tab' (default: FI_CSV_DELIMITER or ',').")
]
NoHeaderOpt = Annotated[
    bool, typer.Option("--no-header", help="The first row is data, not a header.")
]
DecimalOpt = Annotated[
    str | None, typer.Option(help="Decimal separator for amounts: '.' or ','.")
]
EncodingOpt = Annotated[str | None, typer.Option(help="CSV text encoding (default utf-8-sig).")]
LabelOpt = Annotated[
    str | None, typer.Option(help="Source label used in row references (default: the format).")
]
MapOpt = Annotated[
    list[str] | None,
    typer.Option("--map", help="Override a column: FIELD=COLUMN (header text or 0-based index)."),
]
DatabaseUrlOpt = Annotated[
    str | None, typer.Option(help="Override DATABASE_URL (falls back to env var).")
]
TimeoutOpt = Annotated[
    float | None, typer.Option(help="Seconds allowed for reading the file (default FI_READ_TIMEOUT).")
]
FileArg = Annotated[Path, typer.Argument(help="CSV or XLSX file to read", dir_okay=False)]


def _build_options(
    path: Path,
    *,
    fmt: str | None,
    delimiter: str | None,
    header: bool | None,
    decimal_separator: str | None,
    encoding: str | None,
    source_label: str | None,
) -> ImportOptions:
    if delimiter is not None and delimiter.strip().lower() in {"tab", "\\t"}:
        delimiter = "\t"
    return ImportOptions.for_path(
        path,
        format=fmt,
        delimiter=delimiter,
        has_header=header,
        decimal_separator=decimal_separator,
        encoding=encoding,
        source_label=source_label,
    )


def _parse_map_overrides(values: list[str] | None) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for raw in values or ():
        field, sep, column = raw.partition("=")
        field = field.strip().lower()
        if not sep or not column.strip():
            raise ValueError(f"--map expects FIELD=COLUMN, got {raw!r}")
        if field not in CANONICAL_FIELDS and field != "ignore":
            raise ValueError(
                f"unknown field {field!r} in --map (expected one of {', '.join(CANONICAL_FIELDS)}, ignore)"
            )
        pairs.append((field, column.strip()))
    return pairs


def _read(path: Path, timeout: float | None) -> bytes:
    from .pipeline import aread_source

    return asyncio.run(aread_source(path, timeout))


def _load_catalog(database_url: str | None, user_id: int | None) -> Catalog:
    if user_id is None:
        return Catalog()
    from db.client import session_scope

    from .catalog import load_catalog

    with session_scope(database_url=database_url) as session:
        return load_catalog(session, user_id)


def _run(
    file: Path,
    options: ImportOptions,
    catalog: Catalog,
    overrides: list[tuple[str, str]],
    timeout: float | None,
):
    from .ingest.columns import apply_overrides
    from .pipeline import remap, run_import

    run = run_import(_read(file, timeout), options, catalog)
    if overrides:
        run = remap(run, apply_overrides(run.mapping, overrides), catalog)
    return run


# ---- Rendering ----------------------------------------------------------------


def _print_mapping(mapping) -> None:
    table = Table(title="Column mapping")
    table.add_column("#", justify="right")
    table.add_column("Column")
    table.add_column("Field")
    for idx, tag in enumerate(mapping.fields):
        label = mapping.headers[idx] if mapping.headers and idx < len(mapping.headers) else ""
        table.add_row(str(idx), Text(label), tag)
    console.print(table)
    for note in mapping.conflicts:
        console.print(f"conflict: {note}", style="yellow", markup=False)
    missing = mapping.missing_required()
    if missing:
        console.print(f"missing required fields: {', '.join(missing)}", style="yellow", markup=False)


def _print_decisions(title: str, decisions) -> None:
    if not decisions:
        return
    table = Table(title=title)
    table.add_column("Name")
    table.add_column("Action")
    table.add_column("Existing")
    table.add_column("Confidence", justify="right")
    table.add_column("Rows", justify="right")
    for d in decisions:
        table.add_row(
            Text(d.raw_name),
            d.action,
            Text(d.system_name or ""),
            f"{d.confidence:.2f}",
            str(d.count),
        )
    console.print(table)


def _print_report(run) -> None:
    report = run.report
    stats = report.statistics
    table = Table(title="Import summary")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for name, value in stats.model_dump().items():
        table.add_row(name.replace("_", " "), str(value))
    console.print(table)

    _print_decisions("Categories", run.category_decisions)
    _print_decisions("Tags", run.tag_decisions)

    for title, items, style in (("Errors", report.errors, "red"), ("Warnings", report.warnings, "yellow")):
        if not items:
            continue
        console.print(f"{title} ({len(items)}):", style=style)
        for line in items[:_MAX_LISTED]:
            console.print(f"  {line}", markup=False, highlight=False)
        if len(items) > _MAX_LISTED:
            console.print(f"  ... {len(items) - _MAX_LISTED} more")

    status = "VALID" if report.is_valid else "INVALID"
    console.print(f"Report: {status}", style="green" if report.is_valid else "red")


def _report_json(run) -> str:
    payload = {
        "report": run.report.model_dump(mode="json"),
        "category_decisions": [asdict(d) for d in run.category_decisions],
        "tag_decisions": [asdict(d) for d in run.tag_decisions],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


# ---- Typer-based console interface --------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import personal-finance transactions from CSV/XLSX spreadsheets: inspect, "
        "validate and reconcile categories/tags against your catalog, then commit."
    ),
)


@app.command("template")
def template_cmd(
    out: Annotated[Path, typer.Option("--out", help="Where to write the template.", dir_okay=False)],
    fmt: Annotated[str, typer.Option("--format", help="xlsx or csv.")] = "xlsx",
    delimiter: DelimiterOpt = None,
) -> None:
    """Write an example import file."""

    from .template import template_csv, template_workbook

    fmt = fmt.strip().lower()
    if fmt == "xlsx":
        out.write_bytes(template_workbook())
    elif fmt == "csv":
        sep = "\t" if delimiter and delimiter.strip().lower() in {"tab", "\\t"} else (delimiter or ",")
        out.write_text(template_csv(delimiter=sep), encoding="utf-8")
    else:
        raise _fail(f"unsupported template format {fmt!r} (use xlsx or csv)")
    console.print(f"Wrote {fmt} template to {out}", markup=False)


@app.command("inspect")
def inspect_cmd(
    file: FileArg,
    fmt: FormatOpt = None,
    delimiter: DelimiterOpt = None,
    no_header: NoHeaderOpt = False,
    decimal_separator: DecimalOpt = None,
    encoding: EncodingOpt = None,
    source_label: LabelOpt = None,
    rows: Annotated[int, typer.Option(help="Number of rows to preview.")] = 5,
    timeout: TimeoutOpt = None,
) -> None:
    """Show the sheets, a preview of their rows and the proposed column mapping."""

    from .ingest.category_sheet import parse_category_sheet
    from .ingest.columns import auto_map_columns
    from .ingest.decoder import decode, preview_rows

    try:
        options = _build_options(
            file,
            fmt=fmt,
            delimiter=delimiter,
            header=False if no_header else None,
            decimal_separator=decimal_separator,
            encoding=encoding,
            source_label=source_label,
        )
        decoded = decode(_read(file, timeout), options)
    except _EXPECTED_ERRORS as e:
        raise _fail(str(e)) from e

    for grid in decoded.grids:
        table = Table(title=f"{grid.kind}: {grid.name} ({len(grid.rows)} rows)")
        width = grid.width
        for i in range(width):
            table.add_column(str(i))
        for row in preview_rows(grid, rows):
            table.add_row(*(Text(c) for c in list(row) + [""] * (width - len(row))))
        console.print(table)

    tx = decoded.transactions
    _print_mapping(auto_map_columns(tx.header() if options.has_header else None, tx.width))
    if decoded.categories is not None:
        declared = parse_category_sheet(decoded.categories)
        console.print(f"declared categories: {len(declared)}", markup=False)


@app.command("validate")
def validate_cmd(
    file: FileArg,
    fmt: FormatOpt = None,
    delimiter: DelimiterOpt = None,
    no_header: NoHeaderOpt = False,
    decimal_separator: DecimalOpt = None,
    encoding: EncodingOpt = None,
    source_label: LabelOpt = None,
    map_: MapOpt = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the report as JSON.")] = False,
    database_url: DatabaseUrlOpt = None,
    user_id: Annotated[
        int | None, typer.Option(help="Reconcile against this user's catalog in the database.")
    ] = None,
    timeout: TimeoutOpt = None,
) -> None:
    """Parse, reconcile and validate a file without writing anything.

    Exits with status 1 when the report has blocking errors.
    """

    try:
        options = _build_options(
            file,
            fmt=fmt,
            delimiter=delimiter,
            header=False if no_header else None,
            decimal_separator=decimal_separator,
            encoding=encoding,
            source_label=source_label,
        )
        overrides = _parse_map_overrides(map_)
        catalog = _load_catalog(database_url, user_id)
        run = _run(file, options, catalog, overrides, timeout)
    except _EXPECTED_ERRORS as e:
        raise _fail(str(e)) from e

    if as_json:
        typer.echo(_report_json(run))
    else:
        _print_mapping(run.mapping)
        _print_report(run)
    if not run.report.is_valid:
        raise typer.Exit(1)


@app.command("import")
def import_cmd(
    file: FileArg,
    user_id: Annotated[int, typer.Option(help="Owner of the imported transactions.")],
    account_id: Annotated[int, typer.Option(help="Account the transactions belong to.")],
    fmt: FormatOpt = None,
    delimiter: DelimiterOpt = None,
    no_header: NoHeaderOpt = False,
    decimal_separator: DecimalOpt = None,
    encoding: EncodingOpt = None,
    source_label: LabelOpt = None,
    map_: MapOpt = None,
    database_url: DatabaseUrlOpt = None,
    create_schema: Annotated[
        bool, typer.Option(help="Create missing tables before importing.")
    ] = False,
    include_invalid: Annotated[
        bool, typer.Option(help="Also import rows that failed validation.")
    ] = False,
    timeout: TimeoutOpt = None,
) -> None:
    """Import a file: create/map categories and tags, insert new transactions.

    Rows with blocking errors are left out unless ``--include-invalid`` is
    given. Re-importing the same file inserts nothing new.
    """

    from db.client import create_schema as _create_schema
    from db.client import session_scope

    from .catalog import load_catalog
    from .persistence import commit_import
    from .pipeline import build_commit_plan

    try:
        options = _build_options(
            file,
            fmt=fmt,
            delimiter=delimiter,
            header=False if no_header else None,
            decimal_separator=decimal_separator,
            encoding=encoding,
            source_label=source_label,
        )
        overrides = _parse_map_overrides(map_)
        if create_schema:
            _create_schema(database_url=database_url)
        data = _read(file, timeout)
    except _EXPECTED_ERRORS as e:
        raise _fail(str(e)) from e

    from .ingest.columns import apply_overrides
    from .pipeline import remap, run_import

    try:
        # One session: the catalog snapshot and the commit see the same data.
        with session_scope(database_url=database_url) as session:
            catalog = load_catalog(session, user_id)
            run = run_import(data, options, catalog)
            if overrides:
                run = remap(run, apply_overrides(run.mapping, overrides), catalog)
            _print_report(run)
            plan = build_commit_plan(
                run, user_id=user_id, account_id=account_id, include_invalid=include_invalid
            )
            result = commit_import(session, plan)
    except _EXPECTED_ERRORS as e:
        raise _fail(str(e)) from e

    console.print(
        f"Imported {result.inserted} transactions "
        f"({result.skipped_duplicates} already present, {len(plan.excluded_rows)} invalid rows left out, "
        f"{len(result.rejected)} rejected); created {len(result.created_category_ids)} categories "
        f"and {len(result.created_tag_ids)} tags.",
        markup=False,
    )
    for message in result.rejected_names:
        console.print(f"skipped: {message}", style="yellow", markup=False)


@app.callback()
def _root(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging("DEBUG" if verbose else None)


if __name__ == "__main__":  # pragma: no cover
    app()
