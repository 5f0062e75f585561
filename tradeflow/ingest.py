from __future__ import annotations
import csv
import logging
import zipfile
from io import BytesIO, StringIO
from typing import Any, List, Optional
import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from .errors import ParseError

logger = logging.getLogger(__name__)

EXCEL_FORMATS = ("xlsx", "xlsm", "xls", "excel")
CSV_FORMATS = ("csv", "txt")
CSV_ENCODINGS = ["utf-8-sig", "utf-8", "cp1254", "cp1251"]
ORIGIN_ROW = "_origin_row"


def detect_format(filename: str) -> str:
    # формат по расширению файла; без расширения считаем CSV
    name = (filename or "").lower()
    ext = name.rsplit(".", 1)[-1] if "." in name else ""
    if ext in EXCEL_FORMATS:
        return "xlsx" if ext != "xls" else "xls"
    return "csv"
# =========================

# Excel: читаем первый лист как матрицу, разворачиваем merged cells
# =========================
def _first_sheet_matrix(wb_bytes: bytes) -> List[List[Any]]:
    wb = load_workbook(BytesIO(wb_bytes), read_only=False, data_only=True)
    try:
        ws = wb.worksheets[0]
        merged_map = {}
        for r in ws.merged_cells.ranges:
            min_col, min_row, max_col, max_row = r.bounds
            top_val = ws.cell(min_row, min_col).value
            for rr in range(min_row, max_row + 1):
                for cc in range(min_col, max_col + 1):
                    merged_map[(rr, cc)] = top_val

        rows = []
        for r in range(1, ws.max_row + 1):
            row_vals = []
            for c in range(1, ws.max_column + 1):
                v = ws.cell(r, c).value
                if (r, c) in merged_map and (v is None or str(v).strip() == ""):
                    v = merged_map[(r, c)]
                row_vals.append(v)
            rows.append(row_vals)
        return rows
    finally:
        wb.close()


def _read_excel_bytes(data: bytes, fmt: str) -> pd.DataFrame:
    if fmt == "xls":
        # старый бинарный формат openpyxl не читает - отдаём pandas
        try:
            return pd.read_excel(BytesIO(data), sheet_name=0, header=None)
        except Exception as e:
            raise ParseError(f"Cannot read legacy Excel workbook: {e}") from e

    try:
        matrix = _first_sheet_matrix(data)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
        raise ParseError(f"Cannot read Excel workbook: {e}") from e
    return pd.DataFrame(matrix, dtype=object)
# =========================

# CSV: устойчивое чтение из bytes (выгрузки таможенных систем, Excel "Save as CSV")
# =========================
def _guess_delimiter(sample_text: str) -> str:
    # ',' (en-US) или ';' (tr/ru locales), иногда табы
    try:
        dialect = csv.Sniffer().sniff(sample_text, delimiters=";,\t|")
        if dialect.delimiter:
            return dialect.delimiter
    except csv.Error:
        pass

    # fallback по количеству в первых строках
    candidates = [";", ",", "\t", "|"]
    lines = [ln for ln in sample_text.splitlines() if ln.strip()][:20]
    if not lines:
        return ","

    scores = {}
    for d in candidates:
        cnts = [ln.count(d) for ln in lines]
        scores[d] = sum(cnts) / max(1, len(cnts))

    best = max(scores.items(), key=lambda x: x[1])[0]
    return best if scores.get(best, 0) > 0 else ","


def _read_csv_text(text: str) -> pd.DataFrame:
    # csv.reader вместо pd.read_csv: строки разной длины (титул над шапкой) не ломают разбор;
    # пустые строки оставляем, чтобы _origin_row совпадал с номером строки в файле
    delim = _guess_delimiter(text[:65536])
    rows = list(csv.reader(StringIO(text), delimiter=delim))
    width = max((len(r) for r in rows), default=0)
    matrix = [r + [""] * (width - len(r)) for r in rows]
    return pd.DataFrame(matrix, dtype=object)


def _read_csv_bytes(data: bytes) -> pd.DataFrame:
    # читаем БЕЗ header: строка заголовков определяется позже (header_detect)
    if b"\x00" in data[:65536]:
        raise ParseError("Content is binary, not CSV text")

    last_err: Optional[Exception] = None
    for enc in CSV_ENCODINGS:
        try:
            text = data.decode(enc)
        except UnicodeDecodeError as e:
            last_err = e
            continue
        if not text.strip():
            return pd.DataFrame()
        try:
            return _read_csv_text(text)
        except csv.Error as e:
            last_err = e
            continue

    raise ParseError(f"Cannot decode CSV content: {last_err}")
# =========================

# Main: bytes -> матрица первого листа
# =========================
def read_first_table(data: bytes, fmt: str) -> pd.DataFrame:
    """
    Возвращает "сырую" матрицу первого листа/таблицы:
      - строки как в исходнике, без заголовков (header=None)
      - первая колонка - _origin_row (номер строки в исходнике, начиная с 1)
    Остальные листы книги игнорируются.
    """
    fmt = (fmt or "").lower().lstrip(".")
    if not data:
        df = pd.DataFrame()
    elif fmt in EXCEL_FORMATS:
        df = _read_excel_bytes(data, "xls" if fmt == "xls" else "xlsx")
    elif fmt in CSV_FORMATS:
        df = _read_csv_bytes(data)
    else:
        raise ParseError(f"Unsupported format: {fmt!r}")

    df = df.reset_index(drop=True)
    df.columns = range(df.shape[1])
    df.insert(0, ORIGIN_ROW, range(1, len(df) + 1))
    logger.debug("Read %d raw row(s) x %d column(s) from %s content", len(df), df.shape[1] - 1, fmt)
    return df
