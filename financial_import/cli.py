"""CLI for the ``financial_import`` package.

Typer-based console interface over :mod:`financial_import.api`. Environment
variables (``FINANCIAL_IMPORT_*``) are loaded from a local ``.env`` using
``python-dotenv`` before any command runs. Every command prints JSON to
stdout; import failures are reported on stderr as ``Error: <CODE>: <message>``
with exit status 1.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from typer.models import ArgumentInfo

from .errors import StatementImportError
from .logging_setup import configure_logging

# ---- Small module-level helpers used by CLI commands -------------------------


def _read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        typer.echo(f"Error: File not found: {path}", err=True)
        raise typer.Exit(1) from None
    except PermissionError:
        typer.echo(f"Error: Permission denied: {path}", err=True)
        raise typer.Exit(1) from None


def _fail(exc: StatementImportError) -> typer.Exit:
    typer.echo(f"Error: {exc.code.value}: {exc.message}", err=True)
    return typer.Exit(1)


def _emit(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


def _load_existing(path: Path | None) -> list[Any]:
    from .duplicates import ExistingTransaction

    if path is None:
        return []
    try:
        rows = json.loads(_read_bytes(path).decode("utf-8"))
        return [
            ExistingTransaction(
                date=str(r["date"]),
                amount=float(r["amount"]),
                description=str(r.get("description") or ""),
                external_id=r.get("external_id"),
                id=r.get("id"),
            )
            for r in rows
        ]
    except (ValueError, KeyError, TypeError) as e:
        typer.echo(f"Error: Invalid existing-transactions file {path}: {e}", err=True)
        raise typer.Exit(1) from None


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank statements (OFX, CSV, PDF) and fiscal invoice XML into "
        "canonical JSON records."
    ),
)

# Module-level argument object to satisfy ruff B008 (no calls in parameter
# defaults).
PATH_ARGUMENT: ArgumentInfo = typer.Argument(
    ...,
    help="Path to the file to read",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files itself
)


@app.command("parse-statement")
def parse_statement_cmd(path: Annotated[Path, PATH_ARGUMENT]) -> None:
    """Parse a statement file and print its transactions."""

    from .api import parse_statement

    content = _read_bytes(path)
    try:
        transactions = parse_statement(path.name, content)
    except StatementImportError as exc:
        raise _fail(exc) from None
    _emit([t.model_dump(mode="json") for t in transactions])


@app.command("preview-import")
def preview_import_cmd(
    path: Annotated[Path, PATH_ARGUMENT],
    *,
    existing: Path | None = typer.Option(
        None,
        help="JSON file with already imported transactions "
        "(list of {date, amount, description, external_id}).",
    ),
    max_bytes: int | None = typer.Option(
        None, help="Override FINANCIAL_IMPORT_MAX_FILE_BYTES for this run."
    ),
) -> None:
    """Parse a statement and report duplicates and a summary."""

    from dataclasses import asdict

    from .api import preview_import

    content = _read_bytes(path)
    existing_rows = _load_existing(existing)
    try:
        preview = preview_import(path.name, content, existing_rows, max_bytes=max_bytes)
    except StatementImportError as exc:
        raise _fail(exc) from None
    _emit(
        {
            "transactions": [
                {**t.model_dump(mode="json"), "duplicate": t.id in preview.duplicates}
                for t in preview.transactions
            ],
            "summary": asdict(preview.summary),
            "account_info": asdict(preview.account_info) if preview.account_info else None,
        }
    )


@app.command("parse-invoice")
def parse_invoice_cmd(path: Annotated[Path, PATH_ARGUMENT]) -> None:
    """Parse NFe/NFCe XML and print merchant, items, totals and category."""

    from .api import parse_invoice

    content = _read_bytes(path)
    try:
        invoice = parse_invoice(content)
    except StatementImportError as exc:
        raise _fail(exc) from None
    _emit(invoice.model_dump(mode="json"))


@app.command("validate-invoice-id")
def validate_invoice_id_cmd(value: str) -> None:
    """Check a portal URL or access key; exit 1 when invalid."""

    from .invoices.nfe import extract_invoice_key, validate_invoice_identifier

    valid = validate_invoice_identifier(value)
    _emit({"valid": valid, "invoice_key": extract_invoice_key(value)})
    if not valid:
        raise typer.Exit(1)


@app.command("match-products")
def match_products_cmd(
    name_a: str,
    name_b: str,
    *,
    code_a: str | None = typer.Option(None, help="EAN/GTIN of the first product."),
    code_b: str | None = typer.Option(None, help="EAN/GTIN of the second product."),
    threshold: float | None = typer.Option(
        None, help="Override FINANCIAL_IMPORT_MATCH_THRESHOLD for this run."
    ),
) -> None:
    """Compare two product descriptions and print the match result."""

    from .invoices.products import match_products, normalize_product

    a = normalize_product(name_a, code_a)
    b = normalize_product(name_b, code_b)
    try:
        result = match_products(a, b, threshold=threshold)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    _emit(
        {
            "normalized": [a.normalized_name, b.normalized_name],
            **result.model_dump(mode="json"),
        }
    )


@app.callback()
def _root() -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m financial_import.cli`
    app()
