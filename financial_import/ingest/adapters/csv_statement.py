"""Adapter for mapping bank-exported CSV statements to ``ParsedTransaction``.

Bank exports disagree on delimiter (``,`` / ``;`` / tab), header language
(Portuguese or English, with or without accents) and number locale. The
adapter resolves all three once per file and then reads rows positionally.

Header keywords (substring match on the normalized header, first matching
header per field wins):

- date: ``data``, ``date``, ``data da transacao``, ``data transacao``, ``dt``
- amount: ``valor``, ``amount``, ``value``, ``montante``, ``vlr``
- description: ``descricao``, ``description``, ``historico``, ``desc``
- type (optional): ``tipo``, ``type``, ``categoria``, ``category``
- external id (optional): ``identificador``, ``id``, ``transaction id``,
  ``fitid``

Rows that fail date/amount parsing are logged and skipped; the file fails
only when no row yields a transaction.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from os import PathLike
from typing import Any

from ...errors import ImportErrorCode, StatementImportError
from ...logging_setup import get_logger
from ...models import ParsedTransaction, RowOutcome, RowParsed, RowSkipped
from ...text import normalize_key
from ..fields import clean_description, decode_content, infer_type, parse_amount, parse_date
from ..parsers import has_extension

logger = get_logger("financial_import.ingest.csv")

_DELIMITER_CANDIDATES = (",", ";", "\t")
_SNIFF_LINES = 5

HEADER_KEYWORDS: Mapping[str, tuple[str, ...]] = {
    "date": ("data", "date", "data da transacao", "data transacao", "dt"),
    "amount": ("valor", "amount", "value", "montante", "vlr"),
    "description": ("descricao", "description", "historico", "desc"),
    "type": ("tipo", "type", "categoria", "category"),
    "external_id": ("identificador", "id", "transaction id", "fitid"),
}
REQUIRED_FIELDS = ("date", "amount", "description")


# ---------------------------------------------------------------------------
# Delimiter and header resolution
# ---------------------------------------------------------------------------


def detect_delimiter(text: str) -> str:
    """Pick the delimiter occurring most often in the first non-empty lines.

    Ties (and input without any candidate) resolve to ``,``.
    """

    sample = [line for line in text.splitlines() if line.strip()][:_SNIFF_LINES]
    best, best_count = ",", 0
    for candidate in _DELIMITER_CANDIDATES:
        count = sum(line.count(candidate) for line in sample)
        if count > best_count:
            best, best_count = candidate, count
    return best


@dataclass(frozen=True, slots=True)
class ColumnMapping:
    """Resolved header positions; built once per file, before any row."""

    date: int
    amount: int
    description: int
    type: int | None = None
    external_id: int | None = None

    @classmethod
    def resolve(cls, headers: Sequence[str]) -> ColumnMapping:
        """Map ``headers`` to fields or raise ``MISSING_REQUIRED_COLUMNS``."""

        found: dict[str, int | None] = dict.fromkeys(HEADER_KEYWORDS)
        for pos, header in enumerate(headers):
            key = normalize_key(header)
            if not key:
                continue
            for field_name, keywords in HEADER_KEYWORDS.items():
                if found[field_name] is None and any(k in key for k in keywords):
                    found[field_name] = pos

        missing = [f for f in REQUIRED_FIELDS if found[f] is None]
        if missing:
            raise StatementImportError(
                "Missing required columns: " + ", ".join(missing),
                ImportErrorCode.MISSING_REQUIRED_COLUMNS,
                {"missing": missing, "headers": list(headers)},
            )
        return cls(
            date=found["date"],  # type: ignore[arg-type]
            amount=found["amount"],  # type: ignore[arg-type]
            description=found["description"],  # type: ignore[arg-type]
            type=found["type"],
            external_id=found["external_id"],
        )


def _read_rows(text: str, delimiter: str) -> list[list[str]]:
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, strict=True)
    try:
        rows = [[cell.strip() for cell in row] for row in reader]
    except csv.Error as exc:
        raise StatementImportError(
            f"Malformed CSV structure: {exc}",
            ImportErrorCode.PARSE_ERROR,
            {"error": str(exc), "line": reader.line_num},
        ) from exc
    return [row for row in rows if any(row)]


def _cell(row: Sequence[str], pos: int | None) -> str:
    if pos is None or pos >= len(row):
        return ""
    return row[pos]


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class CSVParser:
    """Statement parser for ``.csv`` files."""

    def can_parse(self, filename: str | PathLike[str]) -> bool:
        return has_extension(filename, ".csv")

    def parse(self, content: str | bytes) -> list[ParsedTransaction]:
        try:
            outcomes = self.parse_rows(content)
        except StatementImportError:
            raise
        except Exception as exc:
            raise StatementImportError(
                "Failed to parse CSV file",
                ImportErrorCode.PARSE_ERROR,
                {"error": str(exc)},
            ) from exc

        transactions = [o.transaction for o in outcomes if isinstance(o, RowParsed)]
        skipped = len(outcomes) - len(transactions)
        if not transactions:
            raise StatementImportError(
                "No valid transactions found in CSV file",
                ImportErrorCode.NO_TRANSACTIONS_FOUND,
                {"rows": len(outcomes), "skipped": skipped},
            )
        logger.info("Parsed %d CSV transactions (%d rows skipped)", len(transactions), skipped)
        return transactions

    def parse_rows(self, content: str | bytes) -> list[RowOutcome]:
        """Return one tagged outcome per data row.

        File-level problems (structure, missing columns) raise; row-level
        problems become :class:`RowSkipped` entries.
        """

        text = decode_content(content)
        rows = _read_rows(text, detect_delimiter(text))
        if not rows:
            return []
        mapping = ColumnMapping.resolve(rows[0])
        return list(self._iter_outcomes(rows[1:], mapping))

    def _iter_outcomes(
        self, rows: Sequence[Sequence[str]], mapping: ColumnMapping
    ) -> Iterator[RowOutcome]:
        for idx, row in enumerate(rows):
            raw: dict[str, Any] = {
                "date": _cell(row, mapping.date),
                "amount": _cell(row, mapping.amount),
                "description": _cell(row, mapping.description),
                "type": _cell(row, mapping.type),
                "external_id": _cell(row, mapping.external_id),
            }
            if not (raw["date"] or raw["amount"] or raw["description"]):
                yield RowSkipped(idx, "empty row", raw=raw)
                continue
            try:
                date = parse_date(raw["date"])
                amount = parse_amount(raw["amount"])
            except StatementImportError as exc:
                logger.warning("Skipping CSV row %d: %s (raw=%r)", idx, exc.message, raw)
                yield RowSkipped(idx, exc.message, code=exc.code.value, raw=raw)
                continue

            if amount == 0:
                logger.debug("Dropping zero-amount CSV row %d", idx)
                yield RowSkipped(idx, "zero amount", raw=raw)
                continue

            tx = ParsedTransaction(
                date=date,
                amount=float(abs(amount)),
                type=infer_type(amount, raw["type"] or None),
                description=clean_description(raw["description"]),
                external_id=raw["external_id"] or None,
                metadata={
                    "row_index": idx,
                    "raw_date": raw["date"],
                    "raw_amount": raw["amount"],
                },
            )
            yield RowParsed(idx, tx)


__all__ = [
    "HEADER_KEYWORDS",
    "REQUIRED_FIELDS",
    "detect_delimiter",
    "ColumnMapping",
    "CSVParser",
]
