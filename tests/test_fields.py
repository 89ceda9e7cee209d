from decimal import Decimal

import pytest

from financial_import.errors import ImportErrorCode, StatementImportError
from financial_import.ingest.fields import (
    clean_description,
    decode_content,
    infer_type,
    parse_amount,
    parse_date,
    type_from_label,
)
from financial_import.models import NO_DESCRIPTION


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("06/11/2025", "2025-11-06"),
        ("2025-11-06", "2025-11-06"),
        ("06-11-2025", "2025-11-06"),
        ("6/1/2025", "2025-01-06"),
        ("2025-1-6", "2025-01-06"),
        (" 01/11/2025 ", "2025-11-01"),
    ],
)
def test_parse_date_accepted_formats(raw, expected):
    assert parse_date(raw) == expected


@pytest.mark.parametrize("raw", ["", "11/2025", "2025/11/06", "31/02/2025", "13/13/2025", "ontem"])
def test_parse_date_rejects_invalid(raw):
    with pytest.raises(StatementImportError) as ei:
        parse_date(raw)
    assert ei.value.code is ImportErrorCode.INVALID_DATE_FORMAT
    assert ei.value.context["value"] == raw


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1234.56", Decimal("1234.56")),
        ("1234,56", Decimal("1234.56")),
        ("1.234,56", Decimal("1234.56")),
        ("1,234.56", Decimal("1234.56")),
        ("-100.50", Decimal("-100.50")),
        ("(100.50)", Decimal("-100.50")),
        ("R$ 100.50", Decimal("100.50")),
        ("R$ -1.234,56", Decimal("-1234.56")),
        ("-R$ 10,00", Decimal("-10.00")),
        ("100,50-", Decimal("-100.50")),
        ("1.234.567", Decimal("1234567")),
        ("1,234,567", Decimal("1234567")),
        ("+42", Decimal("42")),
        ("€ 3,5", Decimal("3.5")),
        ("0,00", Decimal("0")),
    ],
)
def test_parse_amount_locale_variants(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "abc", "nan", "inf", "1e5", "12.34.5", "1,2,3", "--", "R$", "9" * 400])
def test_parse_amount_rejects_invalid(raw):
    with pytest.raises(StatementImportError) as ei:
        parse_amount(raw)
    assert ei.value.code is ImportErrorCode.INVALID_AMOUNT_FORMAT


def test_type_from_label_and_sign_fallback():
    assert type_from_label("Receita") == "income"
    assert type_from_label("DÉBITO") == "expense"
    assert type_from_label("Crédito em conta") == "income"
    assert type_from_label("Transferência") is None
    assert type_from_label(None) is None

    assert infer_type(Decimal("-5")) == "expense"
    assert infer_type(Decimal("5")) == "income"
    # Explicit label beats the sign.
    assert infer_type(Decimal("50"), "Despesa") == "expense"
    assert infer_type(Decimal("-50"), "Outros") == "expense"


def test_decode_content_handles_bom_and_latin1():
    assert decode_content("\ufeffData".encode()) == "Data"
    assert decode_content("Descrição".encode("latin-1")) == "Descrição"
    assert decode_content("\ufefftexto") == "texto"


def test_clean_description_placeholder():
    assert clean_description("  PIX   enviado  ") == "PIX enviado"
    assert clean_description("") == NO_DESCRIPTION
    assert clean_description(None) == NO_DESCRIPTION
