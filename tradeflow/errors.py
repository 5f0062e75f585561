from __future__ import annotations
from dataclasses import dataclass

# Коды предупреждений нормализации -> сообщение
ISSUE_MAP = {
    "missing_column": "Column not found in the sheet; the default value was used.",
    "empty_value": "Cell is empty; the default value was used.",
    "unparsable_number": "Value is not a number; 0 was used.",
}


class TradeFlowError(Exception):
    """Базовое исключение пакета."""


class ParseError(TradeFlowError):
    """Байты файла нельзя прочитать как CSV или первый лист Excel."""

    def __init__(self, message: str, filename: str = ""):
        super().__init__(message)
        self.filename = filename


class PersistenceError(TradeFlowError):
    """Любая ошибка внешнего хранилища."""


class InvalidTransition(TradeFlowError, ValueError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Document cannot move from '{current}' to '{target}'")
        self.current = current
        self.target = target


class UploadCancelled(TradeFlowError):
    """Загрузка прервана; документ остаётся в статусе processing."""

    def __init__(self, document_id: str = "", written: int = 0):
        super().__init__(f"Upload cancelled after {written} record(s) for document '{document_id}'")
        self.document_id = document_id
        self.written = written


@dataclass(frozen=True)
class ValidationWarning:
    # не исключение: хранится в записи, строка не отбрасывается
    field: str
    code: str
    raw: str = ""

    @property
    def message(self) -> str:
        msg = ISSUE_MAP.get(self.code, self.code)
        if self.raw:
            return f"{self.field}: {msg} (got '{self.raw}')"
        return f"{self.field}: {msg}"

    def to_dict(self):
        return {"field": self.field, "code": self.code, "raw": self.raw}
