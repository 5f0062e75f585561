from __future__ import annotations
from typing import Iterable, List, Set
import pandas as pd
from .rules import ColumnAliases
from .utils import cell_text, norm_text


def alias_vocabulary(columns: ColumnAliases) -> Set[str]:
    return {norm_text(a) for _, aliases in columns for a in aliases if norm_text(a)}


def _row_alias_hits(values: Iterable, vocab: Set[str]) -> int:
    # Сколько ячеек строки совпадает с известным алиасом колонки
    return sum(1 for v in values if norm_text(cell_text(v)) in vocab)


def is_blank_row(values: Iterable) -> bool:
    return all(cell_text(v) == "" for v in values)


def detect_header_row(df_raw: pd.DataFrame, columns: ColumnAliases, max_scan_rows: int = 30) -> int:
    """
    Возвращает индекс (0-based) строки заголовков.
    Идея:
      - над шапкой бывают титульные строки ("Gümrük beyannamesi 2024", дата выгрузки)
      - шапка - первая строка с максимумом совпадений по алиасам
      - если совпадений нет нигде, шапкой считается первая непустая строка
    """
    vocab = alias_vocabulary(columns)
    n = min(max_scan_rows, len(df_raw))

    best_row = -1
    best_hits = 0
    first_nonblank = -1
    for i in range(n):
        values = df_raw.iloc[i, 1:].tolist()  # без _origin_row
        if first_nonblank < 0 and not is_blank_row(values):
            first_nonblank = i
        hits = _row_alias_hits(values, vocab)
        if hits > best_hits:
            best_hits = hits
            best_row = i

    if best_row >= 0:
        return best_row
    return max(first_nonblank, 0)


def header_names(df_raw: pd.DataFrame, header_row: int) -> List[str]:
    if len(df_raw) == 0:
        return []
    return [cell_text(v) for v in df_raw.iloc[header_row, 1:].tolist()]
