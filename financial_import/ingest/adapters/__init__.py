"""Format-specific statement parsers (CSV, OFX, PDF)."""

from .csv_statement import ColumnMapping, CSVParser
from .ofx_statement import OFXParser
from .pdf_statement import PDFParser

__all__ = ["ColumnMapping", "CSVParser", "OFXParser", "PDFParser"]
