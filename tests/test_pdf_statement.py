import textwrap

import pytest

from financial_import.errors import ImportErrorCode, StatementImportError
from financial_import.ingest.adapters import pdf_statement
from financial_import.ingest.adapters.pdf_statement import PDFParser, extract_text, statement_year
from financial_import.models import RowParsed, RowSkipped

STATEMENT_TEXT = textwrap.dedent(
    """
    BANCO EXEMPLO S.A.
    Extrato de conta corrente - Novembro 2025
    Data Histórico Valor Saldo
    01/11/2025 SALDO ANTERIOR 1.000,00
    03/11 PIX RECEBIDO JOAO 500,00 C 1.500,00
    COMPRA CARTAO MERCADO 150,25 D 1.349,75
    PADARIA
    CENTRAL
    05/11 TARIFA PACOTE -29,90 1.319,85
    SALDO DO DIA 1.319,85
    """
)


class _FakePage:
    def __init__(self, text):
        self._text = text

    def extract_text(self):
        return self._text


class _FakePDF:
    def __init__(self, pages):
        self.pages = [_FakePage(t) for t in pages]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class _FakePdfplumber:
    def __init__(self, pages=None, error=None):
        self._pages = pages or []
        self._error = error
        self.opened = []

    def open(self, stream):
        if self._error is not None:
            raise self._error
        self.opened.append(stream.read())
        return _FakePDF(self._pages)


def test_can_parse_respects_flag(monkeypatch):
    assert PDFParser().can_parse("extrato.PDF")
    assert not PDFParser().can_parse("extrato.csv")
    assert not PDFParser(enabled=False).can_parse("extrato.pdf")

    monkeypatch.setenv("FINANCIAL_IMPORT_PDF_ENABLED", "false")
    assert not PDFParser().can_parse("extrato.pdf")
    assert PDFParser(enabled=True).can_parse("extrato.pdf")


def test_disabled_parse_is_rejected(monkeypatch):
    monkeypatch.setenv("FINANCIAL_IMPORT_PDF_ENABLED", "0")
    with pytest.raises(StatementImportError) as ei:
        PDFParser().parse(b"%PDF-1.4")
    assert ei.value.code is ImportErrorCode.INVALID_FILE_FORMAT
    assert ei.value.context["feature_flag"] == "FINANCIAL_IMPORT_PDF_ENABLED"


def test_statement_year():
    assert statement_year(STATEMENT_TEXT) == 2025
    assert statement_year("sem ano 03/11") is None


def test_parse_text_statement_layout():
    txs = PDFParser().parse_text(STATEMENT_TEXT)
    assert [(t.date, t.amount, t.type, t.description) for t in txs] == [
        ("2025-11-03", 500.0, "income", "PIX RECEBIDO JOAO"),
        ("2025-11-03", 150.25, "expense", "COMPRA CARTAO MERCADO PADARIA CENTRAL"),
        ("2025-11-05", 29.9, "expense", "TARIFA PACOTE"),
    ]
    assert txs[0].metadata["source"] == "pdf"
    assert txs[0].metadata["dc"] == "C"
    assert txs[1].metadata["raw_amount"] == "150,25"


def test_description_lines_before_amount_are_carried():
    text = textwrap.dedent(
        """
        10/11/2025
        TRANSFERENCIA RECEBIDA
        MARIA SILVA 200,00
        """
    )
    (tx,) = PDFParser().parse_text(text)
    assert tx.date == "2025-11-10"
    assert tx.description == "TRANSFERENCIA RECEBIDA MARIA SILVA"
    assert tx.amount == 200.0


@pytest.mark.parametrize(
    ("line", "date", "tx_type"),
    [
        ("2025-11-03 COMPRA PADARIA 10,00", "2025-11-03", "expense"),
        ("03/11/25 DEPOSITO EM CONTA 10,00", "2025-11-03", "income"),
        ("03/11/2025 SAQUE 24H 10,00", "2025-11-03", "expense"),
        ("03/11/2025 PIX QUALQUER 10,00", "2025-11-03", "income"),
        ("03/11/2025 ESTORNO LOJA 10,00 D", "2025-11-03", "expense"),
        ("03/11/2025 DEBITO AUTOMATICO 1.234,56", "2025-11-03", "expense"),
    ],
)
def test_line_formats_and_type_inference(line, date, tx_type):
    (tx,) = PDFParser().parse_text(line)
    assert tx.date == date
    assert tx.type == tx_type


def test_day_month_without_year_is_skipped():
    text = "Extrato\n03/11 PIX RECEBIDO 10,00"
    outcomes = PDFParser().parse_rows(text)
    assert len(outcomes) == 1
    assert isinstance(outcomes[0], RowSkipped)
    assert outcomes[0].code == "INVALID_DATE_FORMAT"

    with pytest.raises(StatementImportError) as ei:
        PDFParser().parse_text(text)
    assert ei.value.code is ImportErrorCode.NO_TRANSACTIONS_FOUND


def test_lines_before_first_date_are_ignored():
    text = "Resumo 2025 Limite 5.000,00\n02/11/2025 PAGAMENTO BOLETO 80,00"
    outcomes = PDFParser().parse_rows(text)
    assert [type(o) for o in outcomes] == [RowParsed]
    assert outcomes[0].transaction.description == "PAGAMENTO BOLETO"


def test_only_summary_lines_has_no_transactions():
    text = "01/11/2025 SALDO ANTERIOR 100,00\n30/11/2025 SALDO FINAL 100,00"
    with pytest.raises(StatementImportError) as ei:
        PDFParser().parse_text(text)
    assert ei.value.code is ImportErrorCode.NO_TRANSACTIONS_FOUND


def test_extract_text_joins_pages(monkeypatch):
    fake = _FakePdfplumber(pages=["pagina 1", None, "pagina 3"])
    monkeypatch.setattr(pdf_statement, "pdfplumber", fake)
    assert extract_text(b"%PDF-fake") == "pagina 1\n\npagina 3"
    assert fake.opened == [b"%PDF-fake"]


def test_extract_text_failure_is_parse_error(monkeypatch):
    monkeypatch.setattr(pdf_statement, "pdfplumber", _FakePdfplumber(error=ValueError("encrypted")))
    with pytest.raises(StatementImportError) as ei:
        extract_text(b"%PDF-fake")
    assert ei.value.code is ImportErrorCode.PARSE_ERROR
    assert "hint" in ei.value.context


def test_parse_end_to_end_with_extracted_text(monkeypatch):
    monkeypatch.setattr(pdf_statement, "pdfplumber", _FakePdfplumber(pages=[STATEMENT_TEXT]))
    txs = PDFParser().parse(b"%PDF-fake")
    assert len(txs) == 3


def test_image_only_pdf_has_no_transactions(monkeypatch):
    monkeypatch.setattr(pdf_statement, "pdfplumber", _FakePdfplumber(pages=[None, ""]))
    with pytest.raises(StatementImportError) as ei:
        PDFParser().parse(b"%PDF-fake")
    assert ei.value.code is ImportErrorCode.NO_TRANSACTIONS_FOUND
