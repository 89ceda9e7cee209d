"""Typed error vocabulary shared by every statement and invoice parser.

All parsers fail with :class:`StatementImportError`, whose ``code`` is always
a member of :class:`ImportErrorCode`. Calling code (an HTTP handler, the CLI)
pattern-matches on ``code`` and looks up user-facing text in
:data:`ERROR_MESSAGES` instead of parsing message strings.

File-level codes
----------------
``PARSE_ERROR``, ``MALFORMED_FILE``, ``NO_TRANSACTIONS_FOUND``,
``MISSING_REQUIRED_COLUMNS``, ``INVALID_FILE_FORMAT``, ``FILE_TOO_LARGE``
abort the call with no partial result.

Row-level codes
---------------
``INVALID_DATE_FORMAT`` and ``INVALID_AMOUNT_FORMAT`` are raised by the field
parsers and caught per row; the row is logged and skipped.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ImportErrorCode(str, Enum):
    INVALID_FILE_FORMAT = "INVALID_FILE_FORMAT"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    PARSE_ERROR = "PARSE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NO_TRANSACTIONS_FOUND = "NO_TRANSACTIONS_FOUND"
    MISSING_REQUIRED_COLUMNS = "MISSING_REQUIRED_COLUMNS"
    INVALID_DATE_FORMAT = "INVALID_DATE_FORMAT"
    INVALID_AMOUNT_FORMAT = "INVALID_AMOUNT_FORMAT"
    MALFORMED_FILE = "MALFORMED_FILE"


class StatementImportError(Exception):
    """Import failure carrying a machine-readable ``code`` and diagnostics.

    ``context`` is a free-form mapping (raw values, row index, missing
    columns, the wrapped exception text) meant for logs and debugging; it is
    never required to interpret the failure.
    """

    def __init__(
        self,
        message: str,
        code: ImportErrorCode,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.context: dict[str, Any] = dict(context or {})

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"StatementImportError(code={self.code.value!r}, message={self.message!r})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "context": {k: _jsonable(v) for k, v in self.context.items()},
        }


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return str(value)


# ---------------------------------------------------------------------------
# User-facing messages (pt-BR)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ErrorMessage:
    message: str
    suggestion: str | None = None


ERROR_MESSAGES: Mapping[ImportErrorCode, ErrorMessage] = {
    ImportErrorCode.INVALID_FILE_FORMAT: ErrorMessage(
        "Formato de arquivo não suportado",
        "Certifique-se de que o arquivo tem extensão .ofx, .csv ou .pdf. "
        "Baixe o extrato diretamente do site do seu banco.",
    ),
    ImportErrorCode.FILE_TOO_LARGE: ErrorMessage(
        "Arquivo muito grande",
        "Tente importar um período menor ou divida o arquivo em partes menores.",
    ),
    ImportErrorCode.PARSE_ERROR: ErrorMessage(
        "Erro ao processar o arquivo",
        "Verifique se o arquivo não está corrompido. Tente baixar o extrato "
        "novamente ou use um formato diferente (OFX ou CSV).",
    ),
    ImportErrorCode.VALIDATION_ERROR: ErrorMessage(
        "Dados inválidos encontrados no arquivo",
        "Verifique se as datas estão no formato correto e os valores são numéricos.",
    ),
    ImportErrorCode.NO_TRANSACTIONS_FOUND: ErrorMessage(
        "Nenhuma transação encontrada no arquivo",
        "O arquivo parece estar vazio ou não contém transações. Verifique se "
        "você baixou o extrato correto.",
    ),
    ImportErrorCode.MISSING_REQUIRED_COLUMNS: ErrorMessage(
        "Colunas obrigatórias não encontradas",
        "O arquivo CSV deve conter as colunas: Data, Valor e Descrição.",
    ),
    ImportErrorCode.INVALID_DATE_FORMAT: ErrorMessage(
        "Formato de data inválido",
        "As datas devem estar no formato DD/MM/YYYY, YYYY-MM-DD ou DD-MM-YYYY.",
    ),
    ImportErrorCode.INVALID_AMOUNT_FORMAT: ErrorMessage(
        "Formato de valor inválido",
        "Os valores devem ser números com vírgula ou ponto decimal (ex: 100,50 ou 100.50).",
    ),
    ImportErrorCode.MALFORMED_FILE: ErrorMessage(
        "Arquivo corrompido ou mal formatado",
        "Tente baixar o extrato novamente ou abra o arquivo para verificar se está legível.",
    ),
}


def get_error_message(code: ImportErrorCode, *, include_suggestion: bool = True) -> str:
    """Return the localized message for ``code``, optionally with its suggestion."""

    info = ERROR_MESSAGES[code]
    if include_suggestion and info.suggestion:
        return f"{info.message}. {info.suggestion}"
    return info.message


__all__ = [
    "ImportErrorCode",
    "StatementImportError",
    "ErrorMessage",
    "ERROR_MESSAGES",
    "get_error_message",
]
