"""Adapter for Open Financial Exchange (``.ofx``) statements.

Two dialects exist in the wild:

- OFX 1.x (``OFXHEADER:100`` plus ``VERSION:102``) is SGML: leaf elements
  such as ``<TRNAMT>-12.50`` are usually left unterminated.
- OFX 2.x (``<?OFX OFXHEADER="200" VERSION="220"?>``) is well-formed XML.

Both are read with :mod:`xml.etree.ElementTree`; 1.x bodies are first
converted by closing every unterminated leaf element. Bank statements
(``STMTRS``) and credit-card statements (``CCSTMTRS``) share the
``BANKTRANLIST/STMTTRN`` record layout.
"""

from __future__ import annotations

import datetime as dt
import re
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from os import PathLike

from ...errors import ImportErrorCode, StatementImportError
from ...logging_setup import get_logger
from ...models import (
    NO_DESCRIPTION,
    OFXAccountInfo,
    ParsedTransaction,
    RowOutcome,
    RowParsed,
    RowSkipped,
)
from ..fields import decode_content, parse_amount
from ..parsers import has_extension

logger = get_logger("financial_import.ingest.ofx")

_OFX_START_RE = re.compile(r"<OFX\b[^>]*>", re.IGNORECASE)
_HEADER_RE = re.compile(r"OFXHEADER\s*[:=]\s*\"?(\d+)")
_VERSION_RE = re.compile(r"\bVERSION\s*[:=]\s*\"?(\d+)")
_SGML_LEAF_RE = re.compile(r"<([A-Za-z0-9_.]+)>([^<]+)")
_BARE_AMP_RE = re.compile(r"&(?!(amp|lt|gt|quot|apos|#\d+);)")
_OFX_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})")
_TZ_RE = re.compile(r"\[.*?\]")


# ---------------------------------------------------------------------------
# Document loading
# ---------------------------------------------------------------------------


def detect_version(header: str) -> int:
    """Return the OFX version declared in ``header`` (text before ``<OFX>``).

    Files without a ``VERSION`` are treated as 2.x when they carry an XML
    declaration and as 1.02 otherwise.
    """

    m = _VERSION_RE.search(header)
    if m:
        return int(m.group(1))
    return 200 if "<?xml" in header else 102


def _close_leaf(m: re.Match[str]) -> str:
    tag, value = m.group(1), m.group(2)
    if not value.strip() or m.string.startswith(f"</{tag}>", m.end()):
        return m.group(0)
    return f"<{tag}>{value.strip()}</{tag}>"


def sgml_to_xml(body: str) -> str:
    """Close unterminated SGML leaf elements so the body parses as XML."""

    return _SGML_LEAF_RE.sub(_close_leaf, body)


def load_document(content: str | bytes) -> ET.Element:
    """Parse ``content`` into the ``<OFX>`` root element.

    Raises ``MALFORMED_FILE`` when no ``<OFX>`` element exists and
    ``PARSE_ERROR`` when the body cannot be parsed.
    """

    text = decode_content(content)
    start = _OFX_START_RE.search(text)
    if start is None:
        raise StatementImportError(
            "Invalid OFX file: missing <OFX> element",
            ImportErrorCode.MALFORMED_FILE,
        )
    header, body = text[: start.start()], text[start.start() :]
    if not _HEADER_RE.search(header):
        logger.debug("OFX file without OFXHEADER; inferring version from content")
    version = detect_version(header)
    if version < 200:
        body = sgml_to_xml(body)
    body = _BARE_AMP_RE.sub("&amp;", body)

    try:
        root = ET.fromstring(body)
    except ET.ParseError as exc:
        raise StatementImportError(
            f"Failed to parse OFX v{1 if version < 200 else 2} document: {exc}",
            ImportErrorCode.PARSE_ERROR,
            {"error": str(exc), "version": version},
        ) from exc
    return root


def _text(el: ET.Element, tag: str) -> str | None:
    value = el.findtext(tag)
    if value is None:
        return None
    return value.strip() or None


def parse_ofx_date(raw: str | None) -> str:
    """``YYYYMMDD[HHMMSS[.XXX]][[offset:TZ]]`` -> ``YYYY-MM-DD``."""

    cleaned = _TZ_RE.sub("", raw or "").strip()
    m = _OFX_DATE_RE.match(cleaned)
    if m:
        year, month, day = (int(g) for g in m.groups())
        try:
            return dt.date(year, month, day).isoformat()
        except ValueError:
            pass
    raise StatementImportError(
        f"Invalid OFX date: {raw!r}",
        ImportErrorCode.INVALID_DATE_FORMAT,
        {"value": raw},
    )


def _description(name: str | None, memo: str | None) -> str:
    parts = [p for p in (name, memo) if p]
    if len(parts) == 2 and parts[0] == parts[1]:
        parts = parts[:1]
    return " - ".join(parts) or NO_DESCRIPTION


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class OFXParser:
    """Statement parser for ``.ofx`` files (bank and credit-card statements)."""

    def can_parse(self, filename: str | PathLike[str]) -> bool:
        return has_extension(filename, ".ofx")

    def parse(self, content: str | bytes) -> list[ParsedTransaction]:
        try:
            outcomes = self.parse_rows(content)
        except StatementImportError:
            raise
        except Exception as exc:
            raise StatementImportError(
                "Failed to parse OFX file",
                ImportErrorCode.PARSE_ERROR,
                {"error": str(exc)},
            ) from exc

        transactions = [o.transaction for o in outcomes if isinstance(o, RowParsed)]
        if not transactions:
            raise StatementImportError(
                "No transactions found in OFX file",
                ImportErrorCode.NO_TRANSACTIONS_FOUND,
                {"records": len(outcomes)},
            )
        logger.info(
            "Parsed %d OFX transactions (%d records skipped)",
            len(transactions),
            len(outcomes) - len(transactions),
        )
        return transactions

    def parse_rows(self, content: str | bytes) -> list[RowOutcome]:
        root = load_document(content)
        tran_lists = list(root.iter("BANKTRANLIST"))
        if not tran_lists:
            raise StatementImportError(
                "Invalid OFX structure: missing BANKTRANLIST",
                ImportErrorCode.MALFORMED_FILE,
            )
        records = [trn for tl in tran_lists for trn in tl.findall("STMTTRN")]
        return list(self._iter_outcomes(records))

    def _iter_outcomes(self, records: list[ET.Element]) -> Iterator[RowOutcome]:
        for idx, trn in enumerate(records):
            raw = {
                "trntype": _text(trn, "TRNTYPE"),
                "dtposted": _text(trn, "DTPOSTED"),
                "trnamt": _text(trn, "TRNAMT"),
                "fitid": _text(trn, "FITID"),
                "name": _text(trn, "NAME"),
                "memo": _text(trn, "MEMO"),
                "checknum": _text(trn, "CHECKNUM"),
            }
            try:
                date = parse_ofx_date(raw["dtposted"])
                amount = parse_amount(raw["trnamt"])
            except StatementImportError as exc:
                logger.warning("Skipping OFX record %d: %s (raw=%r)", idx, exc.message, raw)
                yield RowSkipped(idx, exc.message, code=exc.code.value, raw=raw)
                continue

            # Zero rows are balance markers ("Saldo do dia", "Saldo Anterior").
            if amount == 0:
                logger.debug("Dropping zero-amount OFX record %d", idx)
                yield RowSkipped(idx, "zero amount", raw=raw)
                continue

            trntype = (raw["trntype"] or "").upper()
            tx = ParsedTransaction(
                date=date,
                amount=float(abs(amount)),
                type="income" if trntype == "CREDIT" or amount > 0 else "expense",
                description=_description(raw["name"], raw["memo"]),
                external_id=raw["fitid"],
                metadata={
                    "row_index": idx,
                    "ofx_type": raw["trntype"],
                    "name": raw["name"],
                    "memo": raw["memo"],
                    "check_num": raw["checknum"],
                },
            )
            yield RowParsed(idx, tx)

    def get_account_info(self, content: str | bytes) -> OFXAccountInfo | None:
        """Return the statement's account identifiers, or ``None``.

        Account info is optional for callers, so this never raises.
        """

        try:
            root = load_document(content)
        except StatementImportError as exc:
            logger.debug("No OFX account info: %s", exc.message)
            return None
        acct = root.find(".//BANKACCTFROM")
        if acct is None:
            acct = root.find(".//CCACCTFROM")
        if acct is None:
            return None
        return OFXAccountInfo(
            bank_id=_text(acct, "BANKID"),
            branch_id=_text(acct, "BRANCHID"),
            account_id=_text(acct, "ACCTID"),
            account_type=_text(acct, "ACCTTYPE") or ("CREDITCARD" if acct.tag == "CCACCTFROM" else None),
        )


__all__ = ["detect_version", "sgml_to_xml", "load_document", "parse_ofx_date", "OFXParser"]
