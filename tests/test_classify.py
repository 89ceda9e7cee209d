import pytest

from financial_import.invoices.classify import CategoryClassifier, classify_merchant
from financial_import.models import InvoiceCategory, MerchantInfo, ParsedInvoiceItem


def _merchant(name: str, trade_name: str | None = None) -> MerchantInfo:
    return MerchantInfo(cnpj="12345678000190", name=name, trade_name=trade_name)


def _item(ncm: str | None) -> ParsedInvoiceItem:
    return ParsedInvoiceItem(description="ITEM", ncm_code=ncm)


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("DROGARIA SAO PAULO S.A.", InvoiceCategory.PHARMACY),
        ("Farmácia Popular", InvoiceCategory.PHARMACY),
        ("SACOLAO DO POVO", InvoiceCategory.GROCERIES),
        ("SUPERMERCADO BOM PRECO LTDA", InvoiceCategory.SUPERMARKET),
        ("ATACADAO S.A.", InvoiceCategory.SUPERMARKET),
        ("PADARIA E CONFEITARIA ESTRELA", InvoiceCategory.RESTAURANT),
        ("BAR DO ZE", InvoiceCategory.RESTAURANT),
        ("AUTO POSTO SHELL", InvoiceCategory.FUEL),
        ("OTICA VISAO", InvoiceCategory.HEALTH),
        ("PET SHOP AMIGO", InvoiceCategory.PETS),
        ("LIVRARIA CULTURA", InvoiceCategory.EDUCATION),
        ("MUNDO INFORMATICA", InvoiceCategory.ELECTRONICS),
        ("CALCADOS BEIRA RIO", InvoiceCategory.CLOTHING),
        ("MOVEIS E DECORACAO SILVA", InvoiceCategory.HOME),
        ("CINEMARK CINEMA", InvoiceCategory.ENTERTAINMENT),
        ("ESTACIONAMENTO CENTRAL", InvoiceCategory.TRANSPORT),
        ("LOJA DO ZE", InvoiceCategory.RETAIL),
        ("LAVANDERIA LIMPA", InvoiceCategory.SERVICES),
    ],
)
def test_keyword_categories(name, expected):
    assert classify_merchant(_merchant(name)) is expected


def test_priority_order_prefers_specific_trades():
    # A pharmacy inside a supermarket name is still a pharmacy.
    assert classify_merchant(_merchant("FARMACIA DO MERCADO")) is InvoiceCategory.PHARMACY
    # Fuel stations with a convenience store are fuel, not retail.
    assert classify_merchant(_merchant("POSTO E LOJA DE CONVENIENCIA")) is InvoiceCategory.FUEL


@pytest.mark.parametrize("name", ["BARBEARIA DO ZE", "ROBOTICA INDUSTRIAL", "JOSE DA SILVA ME", "IMPOSTO", "COMPOSTO QUIMICO LTDA"])
def test_whole_word_keywords_do_not_match_inside_words(name):
    assert classify_merchant(_merchant(name)) is InvoiceCategory.OTHER


def test_trade_name_is_consulted():
    merchant = _merchant("COMERCIAL ABC LTDA", trade_name="Drogaria ABC")
    assert classify_merchant(merchant) is InvoiceCategory.PHARMACY


@pytest.mark.parametrize(
    ("ncm", "expected"),
    [
        ("30049099", InvoiceCategory.PHARMACY),
        ("2710.12.59", InvoiceCategory.FUEL),
        ("23091000", InvoiceCategory.PETS),
        ("84713012", InvoiceCategory.ELECTRONICS),
        ("85171231", InvoiceCategory.ELECTRONICS),
        ("61091000", InvoiceCategory.CLOTHING),
        ("94036000", InvoiceCategory.HOME),
        ("49019900", InvoiceCategory.EDUCATION),
        ("10063021", InvoiceCategory.GROCERIES),
        ("19059090", InvoiceCategory.GROCERIES),
        ("33051000", InvoiceCategory.OTHER),
    ],
)
def test_ncm_fallback(ncm, expected):
    assert classify_merchant(_merchant("JOSE DA SILVA ME"), [_item(ncm)]) is expected


def test_first_item_with_known_code_decides():
    items = [_item(None), _item("33051000"), _item("30049099"), _item("27101259")]
    classifier = CategoryClassifier()
    decision = classifier.explain(_merchant("JOSE DA SILVA ME"), items)
    assert decision.category is InvoiceCategory.PHARMACY
    assert decision.source == "ncm"
    assert decision.evidence == "30049099"


def test_name_beats_ncm():
    decision = CategoryClassifier().explain(_merchant("DROGARIA X"), [_item("27101259")])
    assert decision.category is InvoiceCategory.PHARMACY
    assert decision.source == "name"
    assert decision.evidence == "drogaria"


def test_default_is_other():
    decision = CategoryClassifier().explain(_merchant(""), None)
    assert decision.category is InvoiceCategory.OTHER
    assert decision.source == "default"


def test_custom_tables():
    classifier = CategoryClassifier(
        keywords=[(InvoiceCategory.SERVICES, ("oficina",))],
        ncm_rules=[("33", InvoiceCategory.HEALTH), ("3305", InvoiceCategory.RETAIL)],
    )
    assert classifier.classify(_merchant("OFICINA DO JOAO")) is InvoiceCategory.SERVICES
    # Longest prefix wins regardless of the order given.
    assert classifier.classify(_merchant("DROGARIA"), [_item("33051000")]) is InvoiceCategory.RETAIL
