"""Data models for ``financial_import``.

Records handed to callers (transactions, merchants, invoice items, match
results) are validated pydantic models so the invariants below hold for every
instance regardless of which parser produced it. Internal value objects used
while parsing (per-row outcomes, summaries) are frozen dataclasses.

Invariants
----------
- ``ParsedTransaction.amount`` is a non-negative magnitude; direction lives
  only in ``type``.
- ``ParsedTransaction.date`` is an ISO ``YYYY-MM-DD`` calendar date.
- ``ParsedTransaction.description`` is never empty; parsers substitute
  :data:`NO_DESCRIPTION`.
- ``MatchResult.confidence`` lies in ``[0, 1]``.
- Classification always yields exactly one :class:`InvoiceCategory`;
  ``OTHER`` is the only "no signal" value.
"""

from __future__ import annotations

import datetime as dt
import math
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Placeholder used when a statement row carries no description.
NO_DESCRIPTION = "Transação sem descrição"

type TransactionType = Literal["income", "expense"]

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Statement records
# ---------------------------------------------------------------------------


class ParsedTransaction(BaseModel):
    """A single statement transaction in canonical form.

    ``id`` is an opaque token generated per parse call (useful to reference
    rows in a preview); ``external_id`` is the bank-provided identifier
    (OFX ``FITID``, a CSV "Identificador" column) used for de-duplication
    against already imported records. ``metadata`` keeps the raw strings the
    values were parsed from plus the source row index.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    id: str = Field(default_factory=_new_id)
    date: str
    amount: float
    type: TransactionType
    description: str
    external_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("date")
    @classmethod
    def _iso_calendar_date(cls, v: str) -> str:
        if not _ISO_DATE_RE.match(v):
            raise ValueError("date must be formatted as YYYY-MM-DD")
        dt.date.fromisoformat(v)
        return v

    @field_validator("amount")
    @classmethod
    def _non_negative_magnitude(cls, v: float) -> float:
        fv = float(v)
        if math.isnan(fv) or math.isinf(fv):
            raise ValueError("amount must be finite")
        if fv < 0:
            raise ValueError("amount must be non-negative; direction is carried by type")
        return fv

    @field_validator("description")
    @classmethod
    def _description_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("description must be non-empty")
        return v

    @field_validator("external_id")
    @classmethod
    def _blank_external_id_is_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v or None


@dataclass(frozen=True, slots=True)
class OFXAccountInfo:
    bank_id: str | None = None
    branch_id: str | None = None
    account_id: str | None = None
    account_type: str | None = None


@dataclass(frozen=True, slots=True)
class RowParsed:
    """Row outcome: a transaction was produced."""

    row_index: int
    transaction: ParsedTransaction


@dataclass(frozen=True, slots=True)
class RowSkipped:
    """Row outcome: the row produced no transaction.

    ``code`` is ``None`` for silent skips (blank rows, zero amounts) and an
    :class:`~financial_import.errors.ImportErrorCode` value for rows that
    failed to parse.
    """

    row_index: int
    reason: str
    code: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


type RowOutcome = RowParsed | RowSkipped


@dataclass(frozen=True, slots=True)
class ImportSummary:
    total: int
    income: int
    expense: int
    duplicate_count: int
    total_amount: float


@dataclass(frozen=True, slots=True)
class ImportPreview:
    """Parsed transactions plus duplicate flags, ready for user review."""

    transactions: tuple[ParsedTransaction, ...]
    duplicates: frozenset[str]
    summary: ImportSummary
    account_info: OFXAccountInfo | None = None


# ---------------------------------------------------------------------------
# Invoice records
# ---------------------------------------------------------------------------


class InvoiceCategory(str, Enum):
    PHARMACY = "pharmacy"
    GROCERIES = "groceries"
    SUPERMARKET = "supermarket"
    RESTAURANT = "restaurant"
    FUEL = "fuel"
    RETAIL = "retail"
    SERVICES = "services"
    HOME = "home"
    ELECTRONICS = "electronics"
    CLOTHING = "clothing"
    ENTERTAINMENT = "entertainment"
    TRANSPORT = "transport"
    HEALTH = "health"
    EDUCATION = "education"
    PETS = "pets"
    OTHER = "other"


class MerchantInfo(BaseModel):
    """Invoice issuer (``emit`` node). ``cnpj`` holds digits only."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    cnpj: str = ""
    name: str = ""
    trade_name: str | None = None
    address: str = ""
    city: str = ""
    state: str = ""


class ParsedInvoiceItem(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    description: str
    ncm_code: str | None = None
    quantity: float = 1.0
    unit_price: float = 0.0
    total_price: float = 0.0
    discount_amount: float = 0.0
    product_code: str | None = None


class InvoiceTotals(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    subtotal: float = 0.0
    discount: float = 0.0
    tax: float = 0.0
    total: float = 0.0


class InvoiceContent(NamedTuple):
    """Merchant plus line items extracted from one invoice document."""

    merchant: MerchantInfo
    items: list[ParsedInvoiceItem]


class ParsedInvoice(BaseModel):
    """Complete invoice view: header fields, merchant, items, totals, category."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    invoice_key: str | None = None
    invoice_number: str = ""
    series: str = "1"
    issue_date: str | None = None
    merchant: MerchantInfo
    items: list[ParsedInvoiceItem]
    totals: InvoiceTotals
    category: InvoiceCategory = InvoiceCategory.OTHER


# ---------------------------------------------------------------------------
# Product matching
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NormalizedProduct:
    normalized_name: str
    original_name: str
    product_code: str | None = None
    ncm_code: str | None = None


class MatchResult(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    is_match: bool
    confidence: float
    matched_product_id: str | None = None

    @field_validator("confidence")
    @classmethod
    def _confidence_in_unit_interval(cls, v: float) -> float:
        fv = float(v)
        if 0.0 <= fv <= 1.0:
            return fv
        raise ValueError("confidence must be within [0,1]")


__all__ = [
    "NO_DESCRIPTION",
    "TransactionType",
    "ParsedTransaction",
    "OFXAccountInfo",
    "RowParsed",
    "RowSkipped",
    "RowOutcome",
    "ImportSummary",
    "ImportPreview",
    "InvoiceCategory",
    "MerchantInfo",
    "ParsedInvoiceItem",
    "InvoiceTotals",
    "InvoiceContent",
    "ParsedInvoice",
    "NormalizedProduct",
    "MatchResult",
]
