"""Adapter for text-based PDF bank statements.

Text is extracted with :mod:`pdfplumber` and then read line by line:

- a line starting with a date (``DD/MM/YYYY``, ``DD/MM/YY``, ``DD/MM`` or
  ``YYYY-MM-DD``) opens a date context that also applies to the following
  undated lines (statements often print the date once per day);
- a line ending with a two-decimal amount, optionally followed by a ``D``/``C``
  marker, is a transaction; when two amounts end the line the last one is
  the running balance and is ignored;
- lines without an amount continue the previous transaction's description;
- balance and total lines (``saldo``, ``balance``, ``total``, ``subtotal``)
  are skipped.

Image-only (scanned) statements yield no text and are rejected with
``NO_TRANSACTIONS_FOUND``; OCR is not attempted.
"""

from __future__ import annotations

import datetime as dt
import io
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from decimal import Decimal
from os import PathLike

import pdfplumber

from ... import config
from ...errors import ImportErrorCode, StatementImportError
from ...logging_setup import get_logger
from ...models import ParsedTransaction, RowOutcome, RowParsed, RowSkipped, TransactionType
from ...text import collapse_whitespace, fold_words
from ..fields import clean_description, parse_amount, type_from_label
from ..parsers import has_extension

logger = get_logger("financial_import.ingest.pdf")

_LEAD_DATE_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2}|\d{1,2}/\d{1,2}/\d{4}|\d{1,2}/\d{1,2}/\d{2}|\d{1,2}/\d{1,2})(?=\s|$)"
)
_AMOUNT = r"-?(?:R\$\s?)?-?\(?\d{1,3}(?:[.,]?\d{3})*[.,]\d{2}\)?-?"
_TRAILING_AMOUNT_RE = re.compile(rf"(?:^|\s)(?P<amount>{_AMOUNT})(?:\s?(?P<dc>[DCdc]))?$")
_YEAR_RE = re.compile(r"\b(20\d{2})\b")

_SUMMARY_WORDS = frozenset({"saldo", "balance", "total", "subtotal"})
_INCOME_WORDS = ("recebido", "deposito", "salario", "estorno", "rendimento", "credito")
_EXPENSE_WORDS = ("enviado", "pagamento", "compra", "saque", "tarifa", "debito")


def statement_year(text: str) -> int | None:
    """First ``20xx`` year in the text, used to complete ``DD/MM`` dates."""

    m = _YEAR_RE.search(text)
    return int(m.group(1)) if m else None


def _resolve_date(raw: str, year: int | None) -> str:
    parts = raw.split("/")
    try:
        if "-" in raw:
            return dt.date.fromisoformat(raw).isoformat()
        day, month = int(parts[0]), int(parts[1])
        if len(parts) == 3:
            y = int(parts[2])
            y = y + 2000 if y < 100 else y
        elif year is not None:
            y = year
        else:
            raise StatementImportError(
                f"Cannot infer year for date {raw!r}",
                ImportErrorCode.INVALID_DATE_FORMAT,
                {"value": raw},
            )
        return dt.date(y, month, day).isoformat()
    except ValueError as exc:
        raise StatementImportError(
            f"Invalid date: {raw!r}",
            ImportErrorCode.INVALID_DATE_FORMAT,
            {"value": raw},
        ) from exc


def _is_summary_line(text: str) -> bool:
    return any(word in _SUMMARY_WORDS for word in fold_words(text).split())


def _split_amount(rest: str) -> tuple[str, str, str | None] | None:
    """Return ``(description, amount, dc)`` when ``rest`` ends with an amount."""

    m = _TRAILING_AMOUNT_RE.search(rest)
    if m is None:
        return None
    head = rest[: m.start()].rstrip()
    amount, dc = m.group("amount"), m.group("dc")
    # Two trailing amounts: transaction value followed by running balance.
    prev = _TRAILING_AMOUNT_RE.search(head)
    if prev is not None:
        head = head[: prev.start()].rstrip()
        amount, dc = prev.group("amount"), prev.group("dc")
    return head, amount, (dc.upper() if dc else None)


def _infer_pdf_type(amount: Decimal, dc: str | None, description: str) -> TransactionType:
    if dc == "D" or amount < 0:
        return "expense"
    if dc == "C":
        return "income"
    labelled = type_from_label(description)
    if labelled is not None:
        return labelled
    words = fold_words(description)
    if any(w in words for w in _INCOME_WORDS):
        return "income"
    if any(w in words for w in _EXPENSE_WORDS):
        return "expense"
    return "income"


@dataclass
class _Pending:
    idx: int
    date: str | None
    amount: str
    dc: str | None
    parts: list[str] = field(default_factory=list)
    date_error: StatementImportError | None = None


# ---------------------------------------------------------------------------
# Text extraction
# ---------------------------------------------------------------------------


def extract_text(content: str | bytes) -> str:
    """Concatenate the text of every page, one page per block of lines."""

    data = content.encode("utf-8") if isinstance(content, str) else content
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as exc:
        raise StatementImportError(
            f"Failed to extract text from PDF: {exc}",
            ImportErrorCode.PARSE_ERROR,
            {
                "error": str(exc),
                "hint": "The PDF may be corrupted, password-protected, or contain only images",
            },
        ) from exc
    logger.debug("Extracted %d characters from %d PDF pages", sum(map(len, pages)), len(pages))
    return "\n".join(pages)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class PDFParser:
    """Statement parser for ``.pdf`` files, gated by a feature flag.

    ``enabled=None`` reads ``FINANCIAL_IMPORT_PDF_ENABLED`` on every call.
    """

    def __init__(self, enabled: bool | None = None) -> None:
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return config.pdf_import_enabled() if self._enabled is None else self._enabled

    def can_parse(self, filename: str | PathLike[str]) -> bool:
        return self.enabled and has_extension(filename, ".pdf")

    def parse(self, content: str | bytes) -> list[ParsedTransaction]:
        if not self.enabled:
            raise StatementImportError(
                "PDF import is currently disabled",
                ImportErrorCode.INVALID_FILE_FORMAT,
                {"feature_flag": "FINANCIAL_IMPORT_PDF_ENABLED"},
            )
        text = extract_text(content)
        if not text.strip():
            raise StatementImportError(
                "No text content found in PDF file",
                ImportErrorCode.NO_TRANSACTIONS_FOUND,
            )
        return self.parse_text(text)

    def parse_text(self, text: str) -> list[ParsedTransaction]:
        try:
            outcomes = self.parse_rows(text)
        except StatementImportError:
            raise
        except Exception as exc:
            raise StatementImportError(
                "Failed to read transactions from PDF text",
                ImportErrorCode.PARSE_ERROR,
                {"error": str(exc)},
            ) from exc

        transactions = [o.transaction for o in outcomes if isinstance(o, RowParsed)]
        if not transactions:
            raise StatementImportError(
                "No transactions found in PDF file",
                ImportErrorCode.NO_TRANSACTIONS_FOUND,
                {"candidates": len(outcomes)},
            )
        logger.info(
            "Parsed %d PDF transactions (%d candidates skipped)",
            len(transactions),
            len(outcomes) - len(transactions),
        )
        return transactions

    def parse_rows(self, text: str) -> list[RowOutcome]:
        return list(self._iter_outcomes(text))

    def _iter_outcomes(self, text: str) -> Iterator[RowOutcome]:
        year = statement_year(text)
        current_date: str | None = None
        date_error: StatementImportError | None = None
        in_context = False
        carry: list[str] = []
        pending: _Pending | None = None
        idx = 0

        for raw_line in text.splitlines():
            line = collapse_whitespace(raw_line)
            if not line:
                continue

            m = _LEAD_DATE_RE.match(line)
            rest = line
            if m:
                if pending is not None:
                    yield self._finish(pending)
                    pending = None
                carry = []
                in_context = True
                rest = line[m.end() :].strip()
                try:
                    current_date, date_error = _resolve_date(m.group("date"), year), None
                except StatementImportError as exc:
                    current_date, date_error = None, exc
            if not in_context or not rest:
                continue

            if _is_summary_line(rest):
                if pending is not None:
                    yield self._finish(pending)
                    pending = None
                carry = []
                continue

            split = _split_amount(rest)
            if split is not None:
                if pending is not None:
                    yield self._finish(pending)
                head, amount, dc = split
                pending = _Pending(
                    idx=idx,
                    date=current_date,
                    amount=amount,
                    dc=dc,
                    parts=[*carry, head] if head else list(carry),
                    date_error=date_error,
                )
                carry = []
                idx += 1
            elif pending is not None:
                pending.parts.append(rest)
            else:
                carry.append(rest)

        if pending is not None:
            yield self._finish(pending)

    def _finish(self, p: _Pending) -> RowOutcome:
        description = " ".join(p.parts)
        raw = {"date": p.date, "amount": p.amount, "dc": p.dc, "description": description}
        try:
            if p.date_error is not None:
                raise p.date_error
            amount = parse_amount(p.amount)
        except StatementImportError as exc:
            logger.warning("Skipping PDF line %d: %s (raw=%r)", p.idx, exc.message, raw)
            return RowSkipped(p.idx, exc.message, code=exc.code.value, raw=raw)
        if amount == 0 or p.date is None:
            return RowSkipped(p.idx, "zero amount", raw=raw)
        return RowParsed(
            p.idx,
            ParsedTransaction(
                date=p.date,
                amount=float(abs(amount)),
                type=_infer_pdf_type(amount, p.dc, description),
                description=clean_description(description),
                metadata={"row_index": p.idx, "source": "pdf", "raw_amount": p.amount, "dc": p.dc},
            ),
        )


__all__ = ["statement_year", "extract_text", "PDFParser"]
