"""Public API interfaces and orchestration for the ``financial_import`` package.

Callers hand in a file name plus already-read content; nothing here touches
the filesystem or the network.

- :func:`parse_statement`: pick the parser for ``filename`` and parse.
- :func:`preview_import`: parse plus size check, OFX account info, duplicate
  flags and a summary, without persisting anything.
- :func:`parse_invoice` / :func:`classify_invoice`: invoice XML to a fully
  categorized :class:`~financial_import.models.ParsedInvoice`.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from os import PathLike

from . import config
from .duplicates import ExistingTransaction, find_duplicates
from .errors import ImportErrorCode, StatementImportError
from .ingest.adapters.ofx_statement import OFXParser
from .ingest.parsers import StatementParser, select_parser
from .invoices.classify import CategoryClassifier
from .invoices.nfe import InvoiceParser
from .logging_setup import get_logger
from .models import (
    ImportPreview,
    ImportSummary,
    InvoiceCategory,
    MerchantInfo,
    OFXAccountInfo,
    ParsedInvoice,
    ParsedInvoiceItem,
    ParsedTransaction,
)

logger = get_logger("financial_import.api")


def _require_parser(
    filename: str | PathLike[str],
    parsers: Sequence[StatementParser] | None,
) -> StatementParser:
    parser = select_parser(filename, parsers)
    if parser is None:
        raise StatementImportError(
            "Unsupported file format. Please use .ofx, .csv, or .pdf files",
            ImportErrorCode.INVALID_FILE_FORMAT,
            {"filename": str(filename)},
        )
    return parser


def _content_size(content: str | bytes) -> int:
    return len(content) if isinstance(content, bytes) else len(content.encode("utf-8"))


def parse_statement(
    filename: str | PathLike[str],
    content: str | bytes,
    parsers: Sequence[StatementParser] | None = None,
) -> list[ParsedTransaction]:
    """Parse a statement with the first parser accepting ``filename``."""

    return _require_parser(filename, parsers).parse(content)


def calculate_summary(
    transactions: Iterable[ParsedTransaction],
    duplicates: Iterable[str] = (),
) -> ImportSummary:
    txs = list(transactions)
    income = sum(1 for t in txs if t.type == "income")
    return ImportSummary(
        total=len(txs),
        income=income,
        expense=len(txs) - income,
        duplicate_count=len(set(duplicates)),
        total_amount=round(sum(t.amount for t in txs), 2),
    )


def preview_import(
    filename: str | PathLike[str],
    content: str | bytes,
    existing: Iterable[ExistingTransaction] = (),
    parsers: Sequence[StatementParser] | None = None,
    max_bytes: int | None = None,
) -> ImportPreview:
    """Parse a statement for user review without persisting anything.

    Raises ``FILE_TOO_LARGE`` above ``max_bytes`` (default from
    ``FINANCIAL_IMPORT_MAX_FILE_BYTES``) and ``INVALID_FILE_FORMAT`` when no
    parser accepts ``filename``; parser errors propagate unchanged.
    """

    limit = max_bytes if max_bytes is not None else config.max_file_bytes()
    size = _content_size(content)
    if size > limit:
        raise StatementImportError(
            f"File exceeds the {limit} byte limit",
            ImportErrorCode.FILE_TOO_LARGE,
            {"size": size, "limit": limit},
        )

    parser = _require_parser(filename, parsers)
    account_info: OFXAccountInfo | None = None
    if isinstance(parser, OFXParser):
        account_info = parser.get_account_info(content)

    transactions = parser.parse(content)
    duplicates = find_duplicates(transactions, existing)
    summary = calculate_summary(transactions, duplicates)
    logger.info(
        "Preview for %s: %d transactions, %d duplicates",
        filename,
        summary.total,
        summary.duplicate_count,
    )
    return ImportPreview(
        transactions=tuple(transactions),
        duplicates=duplicates,
        summary=summary,
        account_info=account_info,
    )


def parse_invoice(xml: str | bytes) -> ParsedInvoice:
    return InvoiceParser().parse_invoice(xml)


def classify_invoice(
    merchant: MerchantInfo,
    items: Iterable[ParsedInvoiceItem] | None = None,
) -> InvoiceCategory:
    return CategoryClassifier().classify(merchant, items)


__all__ = [
    "parse_statement",
    "calculate_summary",
    "preview_import",
    "parse_invoice",
    "classify_invoice",
]
