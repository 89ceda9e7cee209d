"""Public interface for the ``financial_import`` package.

This module exposes the package's API functions, parsers and public
models/types as the stable import surface. There is no runtime logic here,
only symbol re-exports.
"""

from .api import (
    calculate_summary,
    classify_invoice,
    parse_invoice,
    parse_statement,
    preview_import,
)
from .duplicates import ExistingTransaction, find_duplicates
from .errors import ImportErrorCode, StatementImportError, get_error_message
from .ingest.adapters import CSVParser, OFXParser, PDFParser
from .ingest.parsers import StatementParser, default_parsers, select_parser
from .invoices import (
    CategoryClassifier,
    InvoiceParser,
    ProductMatcher,
    extract_invoice_key,
    match_products,
    normalize_product_name,
    validate_invoice_identifier,
)
from .models import (
    ImportPreview,
    ImportSummary,
    InvoiceCategory,
    InvoiceContent,
    MatchResult,
    MerchantInfo,
    NormalizedProduct,
    OFXAccountInfo,
    ParsedInvoice,
    ParsedInvoiceItem,
    ParsedTransaction,
)

__all__ = [
    # API
    "parse_statement",
    "preview_import",
    "calculate_summary",
    "parse_invoice",
    "classify_invoice",
    "find_duplicates",
    # Parsers / services
    "StatementParser",
    "CSVParser",
    "OFXParser",
    "PDFParser",
    "default_parsers",
    "select_parser",
    "InvoiceParser",
    "CategoryClassifier",
    "ProductMatcher",
    "match_products",
    "normalize_product_name",
    "validate_invoice_identifier",
    "extract_invoice_key",
    # Errors
    "ImportErrorCode",
    "StatementImportError",
    "get_error_message",
    # Models / types
    "ParsedTransaction",
    "ExistingTransaction",
    "ImportPreview",
    "ImportSummary",
    "OFXAccountInfo",
    "MerchantInfo",
    "ParsedInvoiceItem",
    "ParsedInvoice",
    "InvoiceContent",
    "InvoiceCategory",
    "NormalizedProduct",
    "MatchResult",
]
