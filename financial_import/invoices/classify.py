"""Merchant category classification for fiscal invoices.

Two signals are consulted, strongest first:

1. Merchant name plus trade name, folded to lowercase ASCII words, tested
   against a priority-ordered keyword table. Keywords written with
   surrounding spaces (``" bar "``) only match whole words, which keeps
   short words from matching inside longer ones ("barbearia").
2. NCM product codes of the line items, longest prefix first (4-digit
   headings before 2-digit chapters). The first item with a matching code
   decides.

When neither signal fires the result is :attr:`InvoiceCategory.OTHER`.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Literal

from ..logging_setup import get_logger
from ..models import InvoiceCategory, MerchantInfo, ParsedInvoiceItem
from ..text import fold_words, only_digits

logger = get_logger("financial_import.invoices.classify")

type DecisionSource = Literal["name", "ncm", "default"]

_C = InvoiceCategory

# Order matters: specific trades first, generic retail/service words last.
CATEGORY_KEYWORDS: tuple[tuple[InvoiceCategory, tuple[str, ...]], ...] = (
    (_C.PHARMACY, ("farmacia", "drogaria", "farma", "droga", "medicamento")),
    (_C.GROCERIES, ("hortifruti", "hortifrutti", "sacolao", "feira", "verdura", "fruta", "acougue", "peixaria")),
    (_C.SUPERMARKET, ("supermercado", "hipermercado", "mercado", "atacadao", "atacado", " super ")),
    (
        _C.RESTAURANT,
        (
            "restaurante",
            "lanchonete",
            " bar ",
            " cafe ",
            "cafeteria",
            "pizzaria",
            "hamburgueria",
            "padaria",
            "confeitaria",
            "sorveteria",
            "churrascaria",
        ),
    ),
    (_C.FUEL, (" posto ", "combustivel", "gasolina", "etanol", "diesel", " gnv ")),
    (_C.HEALTH, ("clinica", "hospital", "laboratorio", "odontolog", " otica", "consultorio")),
    (_C.PETS, ("petshop", "pet shop", " pet ", "veterinari", "agropet")),
    (_C.EDUCATION, ("escola", "colegio", "faculdade", "universidade", "livraria", "papelaria", " curso")),
    (_C.ELECTRONICS, ("eletronico", "eletronica", "informatica", "celular", "eletrodomestico")),
    (_C.CLOTHING, ("vestuario", "confeccoes", "calcados", "roupa", " moda ", "boutique")),
    (_C.HOME, ("moveis", "decoracao", "material de construcao", "materiais de construcao", "ferragens", "home center")),
    (_C.ENTERTAINMENT, ("cinema", "teatro", "ingresso", "boliche", "parque de diversao")),
    (_C.TRANSPORT, ("transporte", "estacionamento", "pedagio", "viacao", " taxi ", " uber ")),
    (_C.RETAIL, ("loja", "magazine", "varejo", "comercio", "shopping")),
    (_C.SERVICES, ("servico", "manutencao", "conserto", "reparo", "lavanderia", "assistencia tecnica")),
)

_GROCERY_CHAPTERS = ("01", "02", "03", "04", "07", "08", "09", "10", "11", "12") + tuple(
    str(ch) for ch in range(15, 23)
)

# (prefix, category) sorted longest prefix first.
NCM_RULES: tuple[tuple[str, InvoiceCategory], ...] = tuple(
    sorted(
        (
            ("2309", _C.PETS),
            ("4901", _C.EDUCATION),
            ("8471", _C.ELECTRONICS),
            ("8517", _C.ELECTRONICS),
            ("8528", _C.ELECTRONICS),
            ("30", _C.PHARMACY),
            ("27", _C.FUEL),
            ("61", _C.CLOTHING),
            ("62", _C.CLOTHING),
            ("64", _C.CLOTHING),
            ("94", _C.HOME),
            *((ch, _C.GROCERIES) for ch in _GROCERY_CHAPTERS),
        ),
        key=lambda rule: -len(rule[0]),
    )
)


@dataclass(frozen=True, slots=True)
class CategoryDecision:
    category: InvoiceCategory
    source: DecisionSource
    evidence: str | None = None


class CategoryClassifier:
    """Assigns exactly one :class:`InvoiceCategory` to an invoice.

    Custom tables may be passed for experimentation; the defaults are the
    module-level :data:`CATEGORY_KEYWORDS` and :data:`NCM_RULES`.
    """

    def __init__(
        self,
        keywords: Sequence[tuple[InvoiceCategory, Sequence[str]]] | None = None,
        ncm_rules: Sequence[tuple[str, InvoiceCategory]] | None = None,
    ) -> None:
        self._keywords = tuple(keywords) if keywords is not None else CATEGORY_KEYWORDS
        rules = ncm_rules if ncm_rules is not None else NCM_RULES
        self._ncm_rules = tuple(sorted(rules, key=lambda rule: -len(rule[0])))

    def classify(
        self,
        merchant: MerchantInfo,
        items: Iterable[ParsedInvoiceItem] | None = None,
    ) -> InvoiceCategory:
        return self.explain(merchant, items).category

    def explain(
        self,
        merchant: MerchantInfo,
        items: Iterable[ParsedInvoiceItem] | None = None,
    ) -> CategoryDecision:
        """Return the category together with the signal that produced it."""

        haystack = f" {fold_words(merchant.name)} {fold_words(merchant.trade_name)} "
        for category, keywords in self._keywords:
            for kw in keywords:
                if kw in haystack:
                    return CategoryDecision(category, "name", kw.strip())

        for item in items or ():
            code = only_digits(item.ncm_code)
            if not code:
                continue
            for prefix, category in self._ncm_rules:
                if code.startswith(prefix):
                    return CategoryDecision(category, "ncm", code)

        logger.debug("No category signal for merchant %r", merchant.name)
        return CategoryDecision(InvoiceCategory.OTHER, "default")


def classify_merchant(
    merchant: MerchantInfo,
    items: Iterable[ParsedInvoiceItem] | None = None,
) -> InvoiceCategory:
    return CategoryClassifier().classify(merchant, items)


__all__ = [
    "CATEGORY_KEYWORDS",
    "NCM_RULES",
    "CategoryDecision",
    "CategoryClassifier",
    "classify_merchant",
]
