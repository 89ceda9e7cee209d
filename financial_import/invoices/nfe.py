"""Brazilian electronic fiscal invoice (NFe / NFCe) XML parsing.

Documents arrive either as the bare ``<NFe>`` element or wrapped in the
authorized ``<nfeProc>`` envelope, always in the
``http://www.portalfiscal.inf.br/nfe`` namespace. Namespaces are stripped
after parsing so lookups use plain tag names (``emit``, ``det/prod``).

Numeric fields in invoice XML are fixed-point with a ``.`` separator, so
they are parsed with :class:`decimal.Decimal` directly; the locale
heuristics used for bank statements do not apply here.

Identifier helpers validate what a user scanned or pasted (a portal URL
from the QR code, or the 44-digit access key) before anything is fetched.
"""

from __future__ import annotations

import datetime as dt
import re
import xml.etree.ElementTree as ET
from decimal import Decimal, InvalidOperation
from urllib.parse import urlsplit

from ..errors import ImportErrorCode, StatementImportError
from ..ingest.fields import decode_content
from ..logging_setup import get_logger
from ..models import (
    InvoiceContent,
    InvoiceTotals,
    MerchantInfo,
    ParsedInvoice,
    ParsedInvoiceItem,
)
from ..text import only_digits
from .classify import CategoryClassifier

logger = get_logger("financial_import.invoices.nfe")

INVOICE_KEY_LENGTH = 44

ALLOWED_PORTAL_HOSTS: tuple[str, ...] = (
    "sat.sef.sc.gov.br",
    "www.sefaz.rs.gov.br",
    "www.nfe.fazenda.gov.br",
    "nfe.fazenda.sp.gov.br",
    "www.fazenda.pr.gov.br",
    "www.sefaz.ba.gov.br",
    "www.sefaz.pe.gov.br",
    "www.sefaz.ce.gov.br",
)

_NO_GTIN = "SEM GTIN"
_HTML_RE = re.compile(r"<!DOCTYPE\s+html|<html[\s>]", re.IGNORECASE)
_KEY_RE = re.compile(r"(?<!\d)\d{44}(?!\d)")
_GROUPED_KEY_RE = re.compile(r"(?<!\d)\d{4}(?: \d{4}){10}(?!\d)")


# ---------------------------------------------------------------------------
# Identifier validation
# ---------------------------------------------------------------------------


def _is_allowed_host(host: str) -> bool:
    return any(host == allowed or host.endswith("." + allowed) for allowed in ALLOWED_PORTAL_HOSTS)


def validate_invoice_identifier(value: str | None) -> bool:
    """Return whether ``value`` is an acceptable portal URL or access key.

    URLs must use ``http``/``https`` and point at an allow-listed tax
    authority host (or a subdomain of one). Anything else is treated as a
    bare key and must contain exactly 44 digits once non-digits are removed.
    """

    candidate = (value or "").strip()
    if not candidate:
        return False
    if candidate.lower().startswith("http"):
        try:
            parts = urlsplit(candidate)
            host = (parts.hostname or "").lower()
        except ValueError:
            return False
        return parts.scheme.lower() in ("http", "https") and _is_allowed_host(host)
    return len(only_digits(candidate)) == INVOICE_KEY_LENGTH


def extract_invoice_key(value: str | None) -> str | None:
    """Find a 44-digit access key in a URL, QR payload or printed DANFE text.

    Printed receipts group the key in blocks of four digits separated by
    spaces; both forms are accepted.
    """

    text = value or ""
    m = _KEY_RE.search(text)
    if m:
        return m.group(0)
    m = _GROUPED_KEY_RE.search(text)
    if m:
        return m.group(0).replace(" ", "")
    return None


# ---------------------------------------------------------------------------
# XML helpers
# ---------------------------------------------------------------------------


def _strip_namespaces(root: ET.Element) -> ET.Element:
    for el in root.iter():
        if isinstance(el.tag, str) and "}" in el.tag:
            el.tag = el.tag.split("}", 1)[1]
    return root


def _text(parent: ET.Element | None, path: str) -> str | None:
    if parent is None:
        return None
    value = parent.findtext(path)
    if value is None:
        return None
    return value.strip() or None


def _number(parent: ET.Element | None, path: str, default: str = "0") -> float:
    raw = _text(parent, path)
    if raw is None:
        raw = default
    try:
        value = Decimal(raw)
    except InvalidOperation:
        value = None
    if value is None or not value.is_finite():
        logger.warning("Invalid number in <%s>: %r; using 0", path, raw)
        return 0.0
    return float(value)


def _product_code(prod: ET.Element) -> str | None:
    for tag in ("cEAN", "cEANTrib"):
        code = _text(prod, tag)
        if code and code.upper() != _NO_GTIN:
            return code
    return None


def _iso_date(raw: str | None) -> str | None:
    if not raw:
        return None
    try:
        return dt.date.fromisoformat(raw[:10]).isoformat()
    except ValueError:
        logger.warning("Ignoring invalid invoice issue date: %r", raw)
        return None


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class InvoiceParser:
    """Extracts merchant, line items and totals from NFe/NFCe XML."""

    def __init__(self, classifier: CategoryClassifier | None = None) -> None:
        self._classifier = classifier or CategoryClassifier()

    def _load(self, xml: str | bytes) -> ET.Element:
        text = decode_content(xml)
        if _HTML_RE.search(text[:2048]):
            raise StatementImportError(
                "Received an HTML page instead of invoice XML",
                ImportErrorCode.PARSE_ERROR,
                {"reason": "html_document"},
            )
        try:
            root = ET.fromstring(xml)
        except ET.ParseError as exc:
            raise StatementImportError(
                f"Invalid invoice XML: {exc}",
                ImportErrorCode.PARSE_ERROR,
                {"error": str(exc)},
            ) from exc
        return _strip_namespaces(root)

    def _merchant(self, root: ET.Element) -> MerchantInfo:
        emit = root if root.tag == "emit" else root.find(".//emit")
        if emit is None:
            raise StatementImportError(
                "Merchant information not found in invoice XML",
                ImportErrorCode.PARSE_ERROR,
                {"reason": "missing_emit"},
            )
        ender = emit.find("enderEmit")
        return MerchantInfo(
            cnpj=only_digits(_text(emit, "CNPJ") or _text(emit, "CPF")),
            name=_text(emit, "xNome") or "",
            trade_name=_text(emit, "xFant"),
            address=_text(ender, "xLgr") or "",
            city=_text(ender, "xMun") or "",
            state=_text(ender, "UF") or "",
        )

    def _items(self, root: ET.Element) -> list[ParsedInvoiceItem]:
        items: list[ParsedInvoiceItem] = []
        for det in root.iter("det"):
            prod = det.find("prod")
            if prod is None:
                continue
            items.append(
                ParsedInvoiceItem(
                    description=_text(prod, "xProd") or "",
                    ncm_code=_text(prod, "NCM"),
                    quantity=_number(prod, "qCom", default="1"),
                    unit_price=_number(prod, "vUnCom"),
                    total_price=_number(prod, "vProd"),
                    discount_amount=_number(prod, "vDesc"),
                    product_code=_product_code(prod),
                )
            )
        return items

    def parse(self, xml: str | bytes) -> InvoiceContent:
        """Return the merchant and line items; raises ``PARSE_ERROR``."""

        root = self._load(xml)
        content = InvoiceContent(self._merchant(root), self._items(root))
        logger.info("Parsed invoice from %r with %d items", content.merchant.name, len(content.items))
        return content

    def extract_items(self, xml: str | bytes) -> list[ParsedInvoiceItem]:
        """Line items only; malformed XML yields an empty list."""

        try:
            root = self._load(xml)
        except StatementImportError as exc:
            logger.warning("Cannot read invoice items: %s", exc.message)
            return []
        return self._items(root)

    def parse_invoice(self, xml: str | bytes) -> ParsedInvoice:
        """Full invoice view including header fields, totals and category."""

        root = self._load(xml)
        merchant = self._merchant(root)
        items = self._items(root)
        ide = root.find(".//ide")

        return ParsedInvoice(
            invoice_key=self._access_key(root),
            invoice_number=_text(ide, "nNF") or "",
            series=_text(ide, "serie") or "1",
            issue_date=_iso_date(_text(ide, "dhEmi") or _text(ide, "dEmi")),
            merchant=merchant,
            items=items,
            totals=self._totals(root, items),
            category=self._classifier.classify(merchant, items),
        )

    @staticmethod
    def _access_key(root: ET.Element) -> str | None:
        inf = root if root.tag == "infNFe" else root.find(".//infNFe")
        if inf is not None:
            key = only_digits(inf.get("Id", "").removeprefix("NFe"))
            if len(key) == INVOICE_KEY_LENGTH:
                return key
        key = only_digits(_text(root, ".//protNFe/infProt/chNFe"))
        return key if len(key) == INVOICE_KEY_LENGTH else None

    @staticmethod
    def _totals(root: ET.Element, items: list[ParsedInvoiceItem]) -> InvoiceTotals:
        tot = root.find(".//total/ICMSTot")
        subtotal = _number(tot, "vProd")
        discount = _number(tot, "vDesc")
        tax = _number(tot, "vTotTrib")
        total = _number(tot, "vNF")
        if total == 0 and items:
            subtotal = sum(i.total_price for i in items)
            discount = sum(i.discount_amount for i in items)
            total = subtotal - discount
        return InvoiceTotals(
            subtotal=round(subtotal, 2),
            discount=round(discount, 2),
            tax=round(tax, 2),
            total=round(total, 2),
        )


__all__ = [
    "INVOICE_KEY_LENGTH",
    "ALLOWED_PORTAL_HOSTS",
    "validate_invoice_identifier",
    "extract_invoice_key",
    "InvoiceParser",
]
