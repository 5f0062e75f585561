from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional
import pandas as pd
from .errors import ValidationWarning
from .header_detect import detect_header_row, header_names, is_blank_row
from .ingest import read_first_table
from .models import TradeRecord
from .rules import ColumnAliases, NUMERIC_FIELDS, Rules, default_rules
from .utils import cell_text, norm_text, parse_number

logger = logging.getLogger(__name__)

# поле без колонки в файле не считается проблемой
OPTIONAL_FIELDS = ("destinationCountry",)


def resolve_columns(headers: List[str], columns: ColumnAliases) -> Dict[str, Optional[int]]:
    """
    Для каждого логического поля - индекс колонки первого найденного алиаса.
    Сравнение без учёта регистра/лишних пробелов; порядок алиасов = приоритет.
    """
    index: Dict[str, int] = {}
    for i, h in enumerate(headers):
        key = norm_text(h)
        if key and key not in index:
            index[key] = i

    resolved: Dict[str, Optional[int]] = {}
    for fld, aliases in columns:
        resolved[fld] = None
        for alias in aliases:
            j = index.get(norm_text(alias))
            if j is not None:
                resolved[fld] = j
                break
    return resolved


def _row_to_record(values: List[Any], mapping: Dict[str, Optional[int]], defaults, source_row: int) -> TradeRecord:
    warnings: List[ValidationWarning] = []
    out: Dict[str, Any] = {}

    for fld, j in mapping.items():
        raw = values[j] if j is not None and j < len(values) else None
        txt = cell_text(raw)

        if fld in NUMERIC_FIELDS:
            num = parse_number(raw) if txt else None
            if j is None:
                warnings.append(ValidationWarning(fld, "missing_column"))
            elif not txt:
                warnings.append(ValidationWarning(fld, "empty_value"))
            elif num is None:
                warnings.append(ValidationWarning(fld, "unparsable_number", txt))
            out[fld] = num if num is not None else 0.0
            continue

        if not txt and fld not in OPTIONAL_FIELDS:
            warnings.append(ValidationWarning(fld, "missing_column" if j is None else "empty_value"))
        out[fld] = txt or defaults.get(fld, "")

    if warnings:
        logger.debug("Row %d: defaults used for %s", source_row, ", ".join(w.field for w in warnings))

    return TradeRecord(
        product_code=out.get("productCode", ""),
        product_description=out.get("productDescription", ""),
        origin_country=out.get("originCountry", ""),
        destination_country=out.get("destinationCountry", ""),
        quantity=float(out.get("quantity", 0.0)),
        unit=out.get("unit") or defaults.get("unit", "KG"),
        value=float(out.get("value", 0.0)),
        currency=out.get("currency") or defaults.get("currency", "USD"),
        source_row=source_row,
        warnings=tuple(warnings),
    )


def normalize_frame(df_raw: pd.DataFrame, rules: Optional[Rules] = None) -> List[TradeRecord]:
    # df_raw - матрица из read_first_table (первая колонка _origin_row)
    rules = rules or default_rules()
    if df_raw.empty or df_raw.shape[1] <= 1:
        return []

    h = detect_header_row(df_raw, rules.columns, max_scan_rows=rules.header_scan_rows)
    headers = header_names(df_raw, h)
    mapping = resolve_columns(headers, rules.columns)
    missing = [f for f, j in mapping.items() if j is None and f not in OPTIONAL_FIELDS]
    if missing:
        logger.info("Columns not found for: %s", ", ".join(missing))

    records: List[TradeRecord] = []
    for i in range(h + 1, len(df_raw)):
        row = df_raw.iloc[i]
        values = row.iloc[1:].tolist()
        if is_blank_row(values):
            continue
        records.append(_row_to_record(values, mapping, rules.defaults, int(row.iloc[0])))
    return records


def normalize(data: bytes, fmt: str, rules: Optional[Rules] = None) -> List[TradeRecord]:
    """
    bytes -> канонические записи (ещё без классификации CBAM).
    ParseError - если содержимое нельзя прочитать как CSV/первый лист Excel.
    """
    df_raw = read_first_table(data, fmt)
    records = normalize_frame(df_raw, rules)
    logger.info("Normalized %d record(s) from %s content", len(records), fmt)
    return records
