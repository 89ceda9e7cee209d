"""Statement ingestion: shared field parsers, parser contract and adapters."""

from .parsers import StatementParser, default_parsers, select_parser

__all__ = ["StatementParser", "default_parsers", "select_parser"]
