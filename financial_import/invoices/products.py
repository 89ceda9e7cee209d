"""Product name normalization and cross-invoice product matching.

The same physical product is described differently by each merchant
("COCA-COLA 2L PET" vs "REFRIG COCA COLA 2 L"). Matching is two-tier:

- equal, non-empty product codes (EAN/GTIN) always match with confidence 1;
- otherwise the normalized names are compared as token sets using Jaccard
  similarity (intersection over union) and match when the similarity reaches
  the threshold (``0.75`` unless configured otherwise).

Price history groups purchases of the same product across invoices so the
lowest/highest/average unit price can be reported per product.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .. import config
from ..logging_setup import get_logger
from ..models import MatchResult, MerchantInfo, NormalizedProduct, ParsedInvoiceItem
from ..text import fold_words

logger = get_logger("financial_import.invoices.products")

_SIZE_RE = re.compile(r"(\d+(?:[.,]\d+)?)\s*(ml|kg|mg|unid|un|l|g)\b", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def normalize_product_name(name: str | None) -> str:
    """Lowercase, accent-free, punctuation-free words of two or more chars.

    ``"COCA-COLA   2L  PET   REFRIG"`` -> ``"coca cola 2l pet refrig"``.
    """

    return " ".join(tok for tok in fold_words(name).split() if len(tok) > 1)


def normalize_product(
    name: str,
    product_code: str | None = None,
    ncm_code: str | None = None,
) -> NormalizedProduct:
    return NormalizedProduct(
        normalized_name=normalize_product_name(name),
        original_name=name,
        product_code=(product_code or "").strip() or None,
        ncm_code=(ncm_code or "").strip() or None,
    )


def batch_normalize(items: Iterable[ParsedInvoiceItem]) -> list[NormalizedProduct]:
    return [normalize_product(i.description, i.product_code, i.ncm_code) for i in items]


def extract_size(name: str) -> str | None:
    """Package size such as ``"500ml"``, ``"2l"`` or ``"1.5kg"``, if present."""

    m = _SIZE_RE.search(name or "")
    if m is None:
        return None
    return f"{m.group(1).replace(',', '.')}{m.group(2).lower()}"


def extract_brand(name: str) -> str | None:
    """Leading all-caps word longer than two characters (``"NESCAU 400G"``)."""

    words = (name or "").split()
    if not words:
        return None
    first = words[0]
    if len(first) > 2 and first == first.upper() and any(ch.isalpha() for ch in first):
        return first
    return None


def generate_product_key(product: NormalizedProduct) -> str:
    parts: list[str] = []
    if product.product_code:
        parts.append(f"code:{product.product_code}")
    if product.ncm_code:
        parts.append(f"ncm:{product.ncm_code}")
    if product.normalized_name:
        parts.append("name:" + "-".join(product.normalized_name.split()[:3]))
    return "|".join(parts)


def group_similar_products(
    products: Iterable[NormalizedProduct],
) -> dict[str, list[NormalizedProduct]]:
    """Group products sharing the same :func:`generate_product_key`."""

    groups: dict[str, list[NormalizedProduct]] = {}
    for product in products:
        groups.setdefault(generate_product_key(product), []).append(product)
    return groups


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def name_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the token sets of two normalized names."""

    ta, tb = set(a.split()), set(b.split())
    union = ta | tb
    if not union:
        return 0.0
    return len(ta & tb) / len(union)


class ProductMatcher:
    """Decides whether two normalized products are the same item.

    ``threshold=None`` uses ``FINANCIAL_IMPORT_MATCH_THRESHOLD`` (default
    ``0.75``).
    """

    def __init__(self, threshold: float | None = None) -> None:
        if threshold is None:
            threshold = config.match_threshold()
        if not 0.0 < threshold <= 1.0:
            raise ValueError(f"threshold must be within (0, 1]; got {threshold!r}")
        self.threshold = threshold

    def match(self, a: NormalizedProduct, b: NormalizedProduct) -> MatchResult:
        if a.product_code and b.product_code and a.product_code == b.product_code:
            return MatchResult(is_match=True, confidence=1.0)
        similarity = name_similarity(a.normalized_name, b.normalized_name)
        return MatchResult(is_match=similarity >= self.threshold, confidence=similarity)

    def find_matching_product(
        self,
        product: NormalizedProduct,
        candidates: Iterable[tuple[str, NormalizedProduct]],
    ) -> MatchResult:
        """Best match among ``(id, product)`` candidates; stops at an exact match."""

        best = MatchResult(is_match=False, confidence=0.0)
        for candidate_id, candidate in candidates:
            result = self.match(product, candidate)
            if result.is_match and result.confidence > best.confidence:
                best = result.model_copy(update={"matched_product_id": candidate_id})
                if result.confidence >= 1.0:
                    break
        return best


def match_products(
    a: NormalizedProduct,
    b: NormalizedProduct,
    *,
    threshold: float | None = None,
) -> MatchResult:
    return ProductMatcher(threshold).match(a, b)


def find_matching_product(
    product: NormalizedProduct,
    candidates: Iterable[tuple[str, NormalizedProduct]],
    *,
    threshold: float | None = None,
) -> MatchResult:
    return ProductMatcher(threshold).find_matching_product(product, candidates)


# ---------------------------------------------------------------------------
# Price history
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class InvoicePurchase:
    """One line item bought from ``merchant`` on ``date`` (ISO, optional)."""

    item: ParsedInvoiceItem
    merchant: MerchantInfo
    date: str | None = None


@dataclass(frozen=True, slots=True)
class PricePoint:
    date: str | None
    merchant_name: str
    merchant_cnpj: str
    unit_price: float
    quantity: float


@dataclass(frozen=True, slots=True)
class ProductPriceHistory:
    product: NormalizedProduct
    points: tuple[PricePoint, ...]
    lowest_price: float
    highest_price: float
    average_price: float


def _unit_price(item: ParsedInvoiceItem) -> float:
    if item.unit_price > 0:
        return item.unit_price
    if item.quantity > 0:
        return round(item.total_price / item.quantity, 4)
    return 0.0


def _history(product: NormalizedProduct, purchases: Sequence[InvoicePurchase]) -> ProductPriceHistory:
    points = tuple(
        sorted(
            (
                PricePoint(
                    date=p.date,
                    merchant_name=p.merchant.trade_name or p.merchant.name,
                    merchant_cnpj=p.merchant.cnpj,
                    unit_price=_unit_price(p.item),
                    quantity=p.item.quantity,
                )
                for p in purchases
            ),
            key=lambda pt: (pt.date is None, pt.date or ""),
        )
    )
    prices = [pt.unit_price for pt in points]
    return ProductPriceHistory(
        product=product,
        points=points,
        lowest_price=min(prices),
        highest_price=max(prices),
        average_price=round(sum(prices) / len(prices), 4),
    )


def build_price_history(
    purchases: Iterable[InvoicePurchase],
    *,
    matcher: ProductMatcher | None = None,
) -> list[ProductPriceHistory]:
    """Cluster purchases of the same product and summarize their prices.

    Each purchase joins the first cluster whose first member it matches;
    clusters keep first-seen order.
    """

    matcher = matcher or ProductMatcher()
    clusters: list[tuple[NormalizedProduct, list[InvoicePurchase]]] = []
    for purchase in purchases:
        item = purchase.item
        product = normalize_product(item.description, item.product_code, item.ncm_code)
        for head, members in clusters:
            if matcher.match(head, product).is_match:
                members.append(purchase)
                break
        else:
            clusters.append((product, [purchase]))
    logger.debug("Grouped purchases into %d products", len(clusters))
    return [_history(head, members) for head, members in clusters]


__all__ = [
    "normalize_product_name",
    "normalize_product",
    "batch_normalize",
    "extract_size",
    "extract_brand",
    "generate_product_key",
    "group_similar_products",
    "name_similarity",
    "ProductMatcher",
    "match_products",
    "find_matching_product",
    "InvoicePurchase",
    "PricePoint",
    "ProductPriceHistory",
    "build_price_history",
]
