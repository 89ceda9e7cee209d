"""Environment-driven settings for the import engine.

Values are read at call time (not import time) so tests and long-lived hosts
can change them with ``monkeypatch.setenv`` / a reloaded ``.env``. Malformed
values fall back to the documented default with a warning.

Variables
---------
``FINANCIAL_IMPORT_PDF_ENABLED``
    Enables the PDF statement parser (default ``true``).
``FINANCIAL_IMPORT_MATCH_THRESHOLD``
    Minimum token-set similarity for two product names to match
    (default ``0.75``; must lie in ``(0, 1]``).
``FINANCIAL_IMPORT_MAX_FILE_BYTES``
    Upper bound for statement uploads accepted by ``api.preview_import``
    (default 10 MiB).
``FINANCIAL_IMPORT_LOG_LEVEL``
    Read by :mod:`financial_import.logging_setup`.
"""

from __future__ import annotations

import os

from .logging_setup import get_logger

logger = get_logger("financial_import.config")

DEFAULT_MATCH_THRESHOLD = 0.75
DEFAULT_MAX_FILE_BYTES = 10 * 1024 * 1024

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    logger.warning("Ignoring invalid boolean for %s: %r", name, raw)
    return default


def pdf_import_enabled() -> bool:
    return _env_bool("FINANCIAL_IMPORT_PDF_ENABLED", True)


def match_threshold() -> float:
    raw = os.getenv("FINANCIAL_IMPORT_MATCH_THRESHOLD")
    if raw is None or not raw.strip():
        return DEFAULT_MATCH_THRESHOLD
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid FINANCIAL_IMPORT_MATCH_THRESHOLD: %r", raw)
        return DEFAULT_MATCH_THRESHOLD
    if not 0.0 < value <= 1.0:
        logger.warning("FINANCIAL_IMPORT_MATCH_THRESHOLD out of range (0, 1]: %r", raw)
        return DEFAULT_MATCH_THRESHOLD
    return value


def max_file_bytes() -> int:
    raw = os.getenv("FINANCIAL_IMPORT_MAX_FILE_BYTES")
    if raw is None or not raw.strip():
        return DEFAULT_MAX_FILE_BYTES
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring invalid FINANCIAL_IMPORT_MAX_FILE_BYTES: %r", raw)
        return DEFAULT_MAX_FILE_BYTES
    if value <= 0:
        logger.warning("FINANCIAL_IMPORT_MAX_FILE_BYTES must be positive: %r", raw)
        return DEFAULT_MAX_FILE_BYTES
    return value


__all__ = [
    "DEFAULT_MATCH_THRESHOLD",
    "DEFAULT_MAX_FILE_BYTES",
    "pdf_import_enabled",
    "match_threshold",
    "max_file_bytes",
]
