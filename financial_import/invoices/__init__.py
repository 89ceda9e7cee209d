"""Fiscal invoice parsing, merchant classification and product matching."""

from .classify import CategoryClassifier, CategoryDecision
from .nfe import InvoiceParser, extract_invoice_key, validate_invoice_identifier
from .products import ProductMatcher, match_products, normalize_product_name

__all__ = [
    "CategoryClassifier",
    "CategoryDecision",
    "InvoiceParser",
    "extract_invoice_key",
    "validate_invoice_identifier",
    "ProductMatcher",
    "match_products",
    "normalize_product_name",
]
