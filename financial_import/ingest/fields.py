"""Field-level parsers shared by the statement adapters.

Every adapter (CSV, OFX, PDF) funnels raw strings through the same helpers
so a value like ``"R$ 1.234,56"`` means the same thing regardless of the
file it came from.

Failures raise :class:`~financial_import.errors.StatementImportError` with a
row-level code (``INVALID_DATE_FORMAT`` / ``INVALID_AMOUNT_FORMAT``); the
adapters catch those per row and skip the row.
"""

from __future__ import annotations

import datetime as dt
import math
import re
from decimal import Decimal, InvalidOperation

from ..errors import ImportErrorCode, StatementImportError
from ..models import NO_DESCRIPTION, TransactionType
from ..text import collapse_whitespace, normalize_key

# ---------------------------------------------------------------------------
# Content decoding
# ---------------------------------------------------------------------------


def decode_content(content: str | bytes) -> str:
    """Return ``content`` as text.

    Bytes are decoded as UTF-8 (a leading BOM is dropped); legacy bank
    exports that are not valid UTF-8 are decoded as Latin-1, which never
    fails.
    """

    if isinstance(content, str):
        return content.removeprefix("\ufeff")
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

# (pattern, group order) pairs; day/month accept one or two digits.
_DATE_FORMATS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$"), "dmy"),
    (re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$"), "ymd"),
    (re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$"), "dmy"),
)


def parse_date(raw: str | None) -> str:
    """Parse ``DD/MM/YYYY``, ``YYYY-MM-DD`` or ``DD-MM-YYYY`` into ISO form.

    Raises ``INVALID_DATE_FORMAT`` for other shapes and for impossible
    calendar dates such as ``31/02/2025``.
    """

    s = (raw or "").strip()
    for pattern, order in _DATE_FORMATS:
        m = pattern.match(s)
        if not m:
            continue
        if order == "dmy":
            day, month, year = (int(g) for g in m.groups())
        else:
            year, month, day = (int(g) for g in m.groups())
        try:
            return dt.date(year, month, day).isoformat()
        except ValueError as exc:
            raise StatementImportError(
                f"Invalid calendar date: {raw!r}",
                ImportErrorCode.INVALID_DATE_FORMAT,
                {"value": raw},
            ) from exc
    raise StatementImportError(
        f"Unrecognized date format: {raw!r}",
        ImportErrorCode.INVALID_DATE_FORMAT,
        {"value": raw},
    )


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------

_CURRENCY_SYMBOLS = ("R$", "$", "€", "£", "¥")
_WS_RE = re.compile(r"\s+")
_DECIMAL_LITERAL_RE = re.compile(r"^(\d+(\.\d*)?|\.\d+)$")
_THOUSANDS_RE = {
    ",": re.compile(r"^\d{1,3}(,\d{3})+$"),
    ".": re.compile(r"^\d{1,3}(\.\d{3})+$"),
}


def _invalid_amount(raw: str | None) -> StatementImportError:
    return StatementImportError(
        f"Invalid amount: {raw!r}",
        ImportErrorCode.INVALID_AMOUNT_FORMAT,
        {"value": raw},
    )


def parse_amount(raw: str | None) -> Decimal:
    """Parse a signed monetary amount written in either locale convention.

    - currency symbols and whitespace are ignored;
    - a leading ``-``, a trailing ``-`` or surrounding parentheses make the
      value negative;
    - when both ``,`` and ``.`` appear, the last one is the decimal separator;
    - a single ``,`` is a decimal separator (``"100,50"``);
    - a repeated separator with no other separator is a thousands separator
      (``"1.234.567"``).
    """

    s = _WS_RE.sub("", raw or "")
    if not s:
        raise _invalid_amount(raw)

    negative = False
    # Markers may appear in any order ("-R$10", "R$(10)", "10,00-").
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:]
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:]
            changed = True
        elif s.endswith("-"):
            negative = True
            s = s[:-1]
            changed = True
        for sym in _CURRENCY_SYMBOLS:
            if s.startswith(sym):
                s = s[len(sym) :]
                changed = True
                break
        if len(s) >= 2 and s.startswith("(") and s.endswith(")"):
            negative = True
            s = s[1:-1]
            changed = True
        if not changed:
            break

    last_comma = s.rfind(",")
    last_dot = s.rfind(".")
    if last_comma != -1 and last_dot != -1:
        if last_comma > last_dot:
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif last_comma != -1 or last_dot != -1:
        sep = "," if last_comma != -1 else "."
        if s.count(sep) > 1:
            if not _THOUSANDS_RE[sep].match(s):
                raise _invalid_amount(raw)
            s = s.replace(sep, "")
        elif sep == ",":
            s = s.replace(",", ".")

    if not _DECIMAL_LITERAL_RE.match(s):
        raise _invalid_amount(raw)
    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise _invalid_amount(raw) from exc
    if not math.isfinite(float(d)):
        raise _invalid_amount(raw)
    return -d if negative else d


# ---------------------------------------------------------------------------
# Type and description
# ---------------------------------------------------------------------------

_INCOME_MARKERS = ("receita", "income", "credito")
_EXPENSE_MARKERS = ("despesa", "expense", "debito")


def type_from_label(label: str | None) -> TransactionType | None:
    """Map a free-text type label ("Receita", "DÉBITO") to a direction."""

    key = normalize_key(label)
    if not key:
        return None
    if any(m in key for m in _INCOME_MARKERS):
        return "income"
    if any(m in key for m in _EXPENSE_MARKERS):
        return "expense"
    return None


def infer_type(amount: Decimal, label: str | None = None) -> TransactionType:
    """Direction from an explicit label when recognizable, else from the sign."""

    labelled = type_from_label(label)
    if labelled is not None:
        return labelled
    return "expense" if amount < 0 else "income"


def clean_description(value: str | None) -> str:
    cleaned = collapse_whitespace(value or "")
    return cleaned or NO_DESCRIPTION


__all__ = [
    "decode_content",
    "parse_date",
    "parse_amount",
    "type_from_label",
    "infer_type",
    "clean_description",
]
