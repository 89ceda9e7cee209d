import io
import logging

import pytest

from financial_import import logging_setup
from financial_import.errors import (
    ERROR_MESSAGES,
    ImportErrorCode,
    StatementImportError,
    get_error_message,
)
from financial_import.logging_setup import _parse_level, configure_logging, get_logger


def test_every_code_has_a_message():
    assert set(ERROR_MESSAGES) == set(ImportErrorCode)


def test_error_carries_code_and_context():
    exc = StatementImportError("boom", ImportErrorCode.PARSE_ERROR, {"row": 3, "raw": ("a", 1)})
    assert str(exc) == "boom"
    assert exc.code is ImportErrorCode.PARSE_ERROR
    assert exc.to_dict() == {
        "code": "PARSE_ERROR",
        "message": "boom",
        "context": {"row": 3, "raw": ["a", 1]},
    }
    assert "PARSE_ERROR" in repr(exc)


def test_context_defaults_to_empty_dict():
    assert StatementImportError("x", ImportErrorCode.MALFORMED_FILE).context == {}


def test_wrapped_cause_is_preserved():
    try:
        try:
            int("x")
        except ValueError as inner:
            raise StatementImportError("bad", ImportErrorCode.PARSE_ERROR) from inner
    except StatementImportError as exc:
        assert isinstance(exc.__cause__, ValueError)


def test_get_error_message():
    msg = get_error_message(ImportErrorCode.MISSING_REQUIRED_COLUMNS)
    assert msg.startswith("Colunas obrigatórias não encontradas. ")
    assert "Data, Valor e Descrição" in msg
    assert (
        get_error_message(ImportErrorCode.FILE_TOO_LARGE, include_suggestion=False)
        == "Arquivo muito grande"
    )


@pytest.mark.parametrize(
    ("level", "env", "expected"),
    [
        (logging.DEBUG, None, logging.DEBUG),
        ("warning", None, logging.WARNING),
        ("15", None, 15),
        (None, "ERROR", logging.ERROR),
        ("nonsense", "DEBUG", logging.DEBUG),
        (None, "nonsense", logging.INFO),
        (None, None, logging.INFO),
    ],
)
def test_parse_level(monkeypatch, level, env, expected):
    if env is not None:
        monkeypatch.setenv("FINANCIAL_IMPORT_LOG_LEVEL", env)
    assert _parse_level(level) == expected


def test_get_logger_is_namespaced():
    logger = get_logger("financial_import.ingest.csv")
    assert logger.name == "financial_import.ingest.csv"
    assert logging.getLogger("financial_import").handlers


def test_configure_logging_replaces_null_handler(monkeypatch):
    pkg = logging.getLogger("financial_import")
    saved = (list(pkg.handlers), pkg.level, pkg.propagate)
    monkeypatch.setattr(logging_setup, "_CONFIGURED", False)
    pkg.handlers = [logging.NullHandler()]
    stream = io.StringIO()
    try:
        configure_logging("debug", fmt="%(levelname)s:%(message)s", stream=stream)
        configure_logging("error", stream=io.StringIO())
        get_logger("financial_import.cli").debug("hello")
        assert stream.getvalue() == "DEBUG:hello\n"
        assert len(pkg.handlers) == 1
        assert not pkg.propagate
    finally:
        pkg.handlers = saved[0]
        pkg.setLevel(saved[1])
        pkg.propagate = saved[2]
