import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from financial_import.cli import app

runner = CliRunner()

CSV_CONTENT = "Data,Valor,Descrição,ID\n01/11/2025,-42.00,Farmácia Central,T1\n02/11/2025,100.00,PIX recebido,T2\n"

NFE_XML = """<nfeProc xmlns="http://www.portalfiscal.inf.br/nfe"><NFe><infNFe>
<ide><nNF>77</nNF><serie>1</serie><dEmi>2025-10-20</dEmi></ide>
<emit><CNPJ>11222333000181</CNPJ><xNome>DROGARIA POPULAR LTDA</xNome></emit>
<det><prod><xProd>DIPIRONA 500MG</xProd><NCM>30049099</NCM><cEAN>7896004700021</cEAN>
<qCom>1</qCom><vUnCom>8.99</vUnCom><vProd>8.99</vProd></prod></det>
<total><ICMSTot><vProd>8.99</vProd><vNF>8.99</vNF></ICMSTot></total>
</infNFe></NFe></nfeProc>"""


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _write(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    return path


def test_parse_statement_prints_json(workdir):
    path = _write(workdir / "extrato.csv", CSV_CONTENT)
    result = runner.invoke(app, ["parse-statement", str(path)])
    assert result.exit_code == 0, result.output
    rows = json.loads(result.stdout)
    assert [(r["date"], r["amount"], r["type"], r["external_id"]) for r in rows] == [
        ("2025-11-01", 42.0, "expense", "T1"),
        ("2025-11-02", 100.0, "income", "T2"),
    ]
    assert rows[0]["description"] == "Farmácia Central"


def test_parse_statement_missing_file(workdir):
    result = runner.invoke(app, ["parse-statement", str(workdir / "nope.csv")])
    assert result.exit_code == 1
    assert "File not found" in result.output


def test_parse_statement_reports_error_code(workdir):
    path = _write(workdir / "extrato.txt", "whatever")
    result = runner.invoke(app, ["parse-statement", str(path)])
    assert result.exit_code == 1
    assert "Error: INVALID_FILE_FORMAT:" in result.output


def test_preview_import_flags_duplicates(workdir):
    path = _write(workdir / "extrato.csv", CSV_CONTENT)
    existing = _write(
        workdir / "existing.json",
        json.dumps([{"date": "2025-11-01", "amount": -42.0, "description": "", "external_id": "T1"}]),
    )
    result = runner.invoke(app, ["preview-import", str(path), "--existing", str(existing)])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert [t["duplicate"] for t in payload["transactions"]] == [True, False]
    assert payload["summary"]["duplicate_count"] == 1
    assert payload["summary"]["total"] == 2
    assert payload["account_info"] is None


def test_preview_import_invalid_existing_file(workdir):
    path = _write(workdir / "extrato.csv", CSV_CONTENT)
    existing = _write(workdir / "existing.json", '[{"amount": 1}]')
    result = runner.invoke(app, ["preview-import", str(path), "--existing", str(existing)])
    assert result.exit_code == 1
    assert "Invalid existing-transactions file" in result.output


def test_preview_import_max_bytes_option(workdir):
    path = _write(workdir / "extrato.csv", CSV_CONTENT)
    result = runner.invoke(app, ["preview-import", str(path), "--max-bytes", "10"])
    assert result.exit_code == 1
    assert "FILE_TOO_LARGE" in result.output


def test_dotenv_is_loaded_from_cwd(workdir):
    _write(workdir / ".env", "FINANCIAL_IMPORT_MAX_FILE_BYTES=16\n")
    path = _write(workdir / "extrato.csv", CSV_CONTENT)
    result = runner.invoke(app, ["preview-import", str(path)])
    assert result.exit_code == 1
    assert "FILE_TOO_LARGE" in result.output


def test_parse_invoice(workdir):
    path = _write(workdir / "nota.xml", NFE_XML)
    result = runner.invoke(app, ["parse-invoice", str(path)])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["category"] == "pharmacy"
    assert payload["merchant"]["cnpj"] == "11222333000181"
    assert payload["issue_date"] == "2025-10-20"
    assert payload["items"][0]["product_code"] == "7896004700021"


def test_parse_invoice_html(workdir):
    path = _write(workdir / "nota.xml", "<html><body>erro</body></html>")
    result = runner.invoke(app, ["parse-invoice", str(path)])
    assert result.exit_code == 1
    assert "PARSE_ERROR" in result.output


def test_validate_invoice_id():
    key = "35251112345678000190650010000012341000012345"
    ok = runner.invoke(app, ["validate-invoice-id", f"https://www.sefaz.rs.gov.br/nfce?p={key}"])
    assert ok.exit_code == 0
    assert json.loads(ok.stdout) == {"valid": True, "invoice_key": key}

    bad = runner.invoke(app, ["validate-invoice-id", "https://example.com/nfce"])
    assert bad.exit_code == 1
    assert json.loads(bad.stdout) == {"valid": False, "invoice_key": None}


def test_match_products():
    result = runner.invoke(
        app, ["match-products", "LEITE INTEGRAL PIRACANJUBA 1L", "Leite Piracanjuba Integral 1L"]
    )
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["is_match"] is True
    assert payload["confidence"] == 1.0
    assert payload["normalized"] == ["leite integral piracanjuba 1l", "leite piracanjuba integral 1l"]


def test_match_products_by_code_and_threshold():
    result = runner.invoke(
        app, ["match-products", "A", "B", "--code-a", "789", "--code-b", "789"]
    )
    assert json.loads(result.stdout)["is_match"] is True

    bad = runner.invoke(app, ["match-products", "A", "B", "--threshold", "2"])
    assert bad.exit_code == 1
    assert "threshold" in bad.output
