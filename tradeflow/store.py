"""
Ключ-значение хранилище документов/записей/профилей.

Ядро пользуется только четырьмя операциями: create / list / update / delete,
фильтр - равенство полей. Настоящее хранилище внешнее; здесь - реализация в
памяти (тесты) и JSON-файл (локальные данные пользователя). Одновременная
запись в один документ не ожидается; если она случится, побеждает последняя.
"""
from __future__ import annotations
import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol
from .errors import PersistenceError
from .utils import save_json, store_path

logger = logging.getLogger(__name__)


class Store(Protocol):
    def create(self, entity: str, id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def list(
        self,
        entity: str,
        where: Optional[Dict[str, Any]] = None,
        order_by: Optional[Dict[str, str]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        ...

    def update(self, entity: str, id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def delete(self, entity: str, id: str) -> None:
        ...


def _sort_key(value: Any):
    # None всегда в конце при asc; числа и строки не сравниваются между собой
    if value is None:
        return (1, 0, "")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, 0, value)
    return (0, 1, str(value))


class InMemoryStore:
    def __init__(self, data: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for entity, rows in (data or {}).items():
            self._data[entity] = {str(k): dict(v) for k, v in rows.items()}

    def _table(self, entity: str) -> Dict[str, Dict[str, Any]]:
        return self._data.setdefault(entity, {})

    def _commit(self) -> None:
        pass

    def create(self, entity: str, id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        table = self._table(entity)
        if not id:
            raise PersistenceError(f"{entity}: empty id")
        if id in table:
            raise PersistenceError(f"{entity}: id '{id}' already exists")
        row = copy.deepcopy(dict(fields))
        row["id"] = id
        table[id] = row
        try:
            self._commit()
        except PersistenceError:
            del table[id]
            raise
        return copy.deepcopy(row)

    def list(
        self,
        entity: str,
        where: Optional[Dict[str, Any]] = None,
        order_by: Optional[Dict[str, str]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        where = where or {}
        rows = [r for r in self._table(entity).values() if all(r.get(k) == v for k, v in where.items())]
        for fld, direction in reversed(list((order_by or {}).items())):
            rows.sort(key=lambda r: _sort_key(r.get(fld)), reverse=str(direction).lower() == "desc")
        if limit is not None:
            rows = rows[:max(0, int(limit))]
        return [copy.deepcopy(r) for r in rows]

    def update(self, entity: str, id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        table = self._table(entity)
        if id not in table:
            raise PersistenceError(f"{entity}: id '{id}' not found")
        before = table[id]
        row = dict(before)
        row.update(copy.deepcopy({k: v for k, v in fields.items() if k != "id"}))
        table[id] = row
        try:
            self._commit()
        except PersistenceError:
            table[id] = before
            raise
        return copy.deepcopy(row)

    def delete(self, entity: str, id: str) -> None:
        table = self._table(entity)
        if id not in table:
            raise PersistenceError(f"{entity}: id '{id}' not found")
        row = table.pop(id)
        try:
            self._commit()
        except PersistenceError:
            table[id] = row
            raise


class JsonFileStore(InMemoryStore):
    """
    Тот же InMemoryStore, но после каждой мутации файл переписывается целиком.
    Формат файла: {"<entity>": {"<id>": {...поля...}}}
    По умолчанию файл лежит в каталоге данных пользователя (store_path()).
    Существующий, но нечитаемый файл - ошибка, а не пустое хранилище.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else store_path()
        super().__init__(self._load())

    def _load(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                obj = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Cannot read {self.path}: {e}") from e
        if not isinstance(obj, dict):
            raise PersistenceError(f"Cannot read {self.path}: not a JSON object")
        skipped = [entity for entity, rows in obj.items() if not isinstance(rows, dict)]
        if skipped:
            logger.warning("Store file %s: ignoring malformed entities %s", self.path, ", ".join(skipped))
        return {entity: rows for entity, rows in obj.items() if isinstance(rows, dict)}

    def _commit(self) -> None:
        try:
            save_json(self.path, self._data)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot write {self.path}: {e}") from e
