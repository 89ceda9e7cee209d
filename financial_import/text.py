"""Text normalization helpers shared by header mapping, classification and
product matching.

Bank exports and fiscal invoices mix upper/lower case, accented and
unaccented spellings ("Descrição" vs "DESCRICAO") and punctuation. These
helpers fold all of that into a comparable ASCII-ish lowercase form.
"""

from __future__ import annotations

import re
import unicodedata

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_NON_ALNUM_TO_SPACE_RE = re.compile(r"[^a-z0-9]+")
_WS_RE = re.compile(r"\s+")
_NON_DIGIT_RE = re.compile(r"[^0-9]")


def strip_accents(value: str) -> str:
    """Remove combining diacritics (``"ção"`` -> ``"cao"``)."""

    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_key(value: str | None) -> str:
    """Lowercase, drop diacritics and non-alphanumerics (spaces kept), trim.

    Used for CSV header names and type-column values, e.g.
    ``"Data da Transação"`` -> ``"data da transacao"`` and
    ``"Descrição:"`` -> ``"descricao"``.
    """

    if not value:
        return ""
    s = strip_accents(value.lower())
    s = _NON_ALNUM_RE.sub("", s)
    return s.strip()


def fold_words(value: str | None) -> str:
    """Return lowercase, accent-free words separated by single spaces.

    Punctuation is treated as a word separator so ``"COCA-COLA"`` becomes
    ``"coca cola"``.
    """

    if not value:
        return ""
    s = strip_accents(value.lower())
    s = _NON_ALNUM_TO_SPACE_RE.sub(" ", s)
    return _WS_RE.sub(" ", s).strip()


def collapse_whitespace(value: str) -> str:
    return _WS_RE.sub(" ", value).strip()


def only_digits(value: str | None) -> str:
    if not value:
        return ""
    return _NON_DIGIT_RE.sub("", value)


__all__ = [
    "strip_accents",
    "normalize_key",
    "fold_words",
    "collapse_whitespace",
    "only_digits",
]
