"""Duplicate detection between freshly parsed and previously imported rows.

Public surface:
- ``ExistingTransaction``: minimal view of an already stored transaction,
  supplied by the caller (this package never reads a database).
- ``compute_fingerprint``: stable SHA-256 over canonical fields.
- ``find_duplicates``: ids of parsed transactions that already exist.

A parsed transaction is a duplicate when any of the following holds:
its ``external_id`` equals an existing one; its fingerprint equals an
existing one; or an existing row with the same normalized description lies
within ``window_days`` and ``amount_tolerance`` of it.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import json
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from .logging_setup import get_logger
from .models import ParsedTransaction
from .text import fold_words

logger = get_logger("financial_import.duplicates")

# Float slack so a 0.01 tolerance accepts 100.50 vs 100.49.
_EPS = 1e-9


@dataclass(frozen=True, slots=True)
class ExistingTransaction:
    date: str
    amount: float
    description: str
    external_id: str | None = None
    id: str | None = None


def _amount_2dp(value: float) -> str:
    q = Decimal(str(abs(value))).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{q:.2f}"


def compute_fingerprint(tx: ParsedTransaction | ExistingTransaction) -> str:
    """Compute a stable SHA-256 fingerprint over canonical fields.

    Fields used: external id (or None), amount (2dp magnitude), date
    (YYYY-MM-DD) and description (folded to lowercase ASCII words).
    """

    payload = {
        "id": (tx.external_id or "").strip() or None,
        "amount": _amount_2dp(tx.amount),
        "date": tx.date,
        "description": fold_words(tx.description),
    }
    # Ensure deterministic JSON serialization
    data = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def _to_date(value: str) -> dt.date | None:
    try:
        return dt.date.fromisoformat(value[:10])
    except ValueError:
        return None


def find_duplicates(
    parsed: Iterable[ParsedTransaction],
    existing: Iterable[ExistingTransaction],
    *,
    window_days: int = 2,
    amount_tolerance: float = 0.01,
) -> frozenset[str]:
    """Return the ``id`` of every parsed transaction already present."""

    existing = list(existing)
    external_ids = {e.external_id for e in existing if e.external_id}
    fingerprints = {compute_fingerprint(e) for e in existing}
    by_description: dict[str, list[tuple[dt.date, float]]] = {}
    for e in existing:
        d = _to_date(e.date)
        if d is None:
            logger.debug("Ignoring existing transaction with invalid date %r", e.date)
            continue
        by_description.setdefault(fold_words(e.description), []).append((d, abs(e.amount)))

    window = dt.timedelta(days=window_days)
    duplicates: set[str] = set()
    for tx in parsed:
        if tx.external_id and tx.external_id in external_ids:
            duplicates.add(tx.id)
            continue
        if compute_fingerprint(tx) in fingerprints:
            duplicates.add(tx.id)
            continue
        tx_date = _to_date(tx.date)
        candidates = by_description.get(fold_words(tx.description), [])
        if tx_date is not None and any(
            abs(tx_date - d) <= window and abs(tx.amount - amount) <= amount_tolerance + _EPS
            for d, amount in candidates
        ):
            duplicates.add(tx.id)

    if duplicates:
        logger.info("Flagged %d duplicate transactions", len(duplicates))
    return frozenset(duplicates)


__all__ = ["ExistingTransaction", "compute_fingerprint", "find_duplicates"]
