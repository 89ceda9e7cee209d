"""Statement parser contract and format selection.

Each adapter module exposes one parser class satisfying
:class:`StatementParser`. There is no global registry: callers ask for a
fresh list via :func:`default_parsers` (preference order OFX, CSV, PDF) or
pass their own sequence to :func:`select_parser`.
"""

from __future__ import annotations

from collections.abc import Sequence
from os import PathLike
from pathlib import PurePath
from typing import Protocol, runtime_checkable

from ..models import ParsedTransaction


@runtime_checkable
class StatementParser(Protocol):
    """Converts one statement file format into canonical transactions.

    ``can_parse`` is a cheap check on the file name only. ``parse`` fails
    exclusively with :class:`~financial_import.errors.StatementImportError`.
    """

    def can_parse(self, filename: str | PathLike[str]) -> bool: ...

    def parse(self, content: str | bytes) -> list[ParsedTransaction]: ...


def has_extension(filename: str | PathLike[str], *extensions: str) -> bool:
    suffix = PurePath(filename).suffix.lower()
    return suffix in extensions


def default_parsers() -> list[StatementParser]:
    from .adapters.csv_statement import CSVParser
    from .adapters.ofx_statement import OFXParser
    from .adapters.pdf_statement import PDFParser

    return [OFXParser(), CSVParser(), PDFParser()]


def select_parser(
    filename: str | PathLike[str],
    parsers: Sequence[StatementParser] | None = None,
) -> StatementParser | None:
    """Return the first parser accepting ``filename``, or ``None``."""

    for parser in parsers if parsers is not None else default_parsers():
        if parser.can_parse(filename):
            return parser
    return None


__all__ = ["StatementParser", "has_extension", "default_parsers", "select_parser"]
