"""
Таблицы правил: алиасы колонок, ключевые слова CBAM, страны/категории риска.

Правила - данные, а не код: по умолчанию читаются из data/rules.json
(путь переопределяется переменной TRADEFLOW_RULES) и превращаются в
неизменяемые объекты, которые передаются в нормализатор/классификатор/скоринг.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple
from .utils import load_json, rules_path, norm_text

logger = logging.getLogger(__name__)

CANONICAL_FIELDS = (
    "productCode",
    "productDescription",
    "originCountry",
    "destinationCountry",
    "quantity",
    "unit",
    "value",
    "currency",
)
NUMERIC_FIELDS = ("quantity", "value")

# (поле, (алиас, ...)) в порядке приоритета
ColumnAliases = Tuple[Tuple[str, Tuple[str, ...]], ...]


@dataclass(frozen=True)
class CbamRules:
    # (категория, (ключевое слово, ...)) - порядок категорий задаёт приоритет
    categories: Tuple[Tuple[str, Tuple[str, ...]], ...]

    @property
    def category_names(self) -> Tuple[str, ...]:
        return tuple(c for c, _ in self.categories)


@dataclass(frozen=True)
class RiskRules:
    high_risk_countries: frozenset
    medium_risk_countries: frozenset
    high_risk_categories: frozenset
    base_scores: Mapping[str, float] = field(
        default_factory=lambda: MappingProxyType({"high": 40.0, "medium": 70.0, "low": 85.0})
    )
    value_divisor: float = 100000.0
    max_value_penalty: float = 15.0
    risk_weights: Mapping[str, int] = field(
        default_factory=lambda: MappingProxyType({"high": 3, "medium": 2, "low": 1})
    )


@dataclass(frozen=True)
class Rules:
    columns: ColumnAliases
    defaults: Mapping[str, str]
    cbam: CbamRules
    risk: RiskRules
    header_scan_rows: int = 30


def _str_tuple(values: Any) -> Tuple[str, ...]:
    if not isinstance(values, (list, tuple)):
        return ()
    return tuple(str(v) for v in values if str(v).strip())


def _parse_columns(raw: Any) -> ColumnAliases:
    out = []
    seen = set()
    for item in raw or []:
        if not isinstance(item, dict):
            continue
        fld = str(item.get("field", "")).strip()
        if fld not in CANONICAL_FIELDS:
            logger.warning("Unknown field %r in column aliases, ignored", fld)
            continue
        if fld in seen:
            continue
        seen.add(fld)
        out.append((fld, _str_tuple(item.get("aliases"))))
    return tuple(out)


def _parse_cbam(raw: Any) -> CbamRules:
    cats = []
    for item in raw or []:
        if not isinstance(item, dict):
            continue
        name = str(item.get("category", "")).strip().lower()
        if not name:
            continue
        # сравнение без учёта регистра: храним ключевые слова в нижнем регистре
        kws = tuple(k.lower() for k in _str_tuple(item.get("keywords")))
        cats.append((name, kws))
    return CbamRules(categories=tuple(cats))


def _parse_risk(raw: Dict[str, Any]) -> RiskRules:
    base = {"high": 40.0, "medium": 70.0, "low": 85.0}
    for k, v in (raw.get("base_scores") or {}).items():
        base[str(k)] = float(v)
    weights = {"high": 3, "medium": 2, "low": 1}
    for k, v in (raw.get("risk_weights") or {}).items():
        weights[str(k)] = int(v)

    return RiskRules(
        high_risk_countries=frozenset(norm_text(c) for c in _str_tuple(raw.get("high_risk_countries"))),
        medium_risk_countries=frozenset(norm_text(c) for c in _str_tuple(raw.get("medium_risk_countries"))),
        high_risk_categories=frozenset(c.lower() for c in _str_tuple(raw.get("high_risk_categories"))),
        base_scores=MappingProxyType(base),
        value_divisor=float(raw.get("value_divisor", 100000) or 100000),
        max_value_penalty=float(raw.get("max_value_penalty", 15)),
        risk_weights=MappingProxyType(weights),
    )


def rules_from_dict(obj: Dict[str, Any]) -> Rules:
    if not isinstance(obj, dict):
        obj = {}
    defaults = {"unit": "KG", "currency": "USD"}
    defaults.update({str(k): str(v) for k, v in (obj.get("defaults") or {}).items()})
    return Rules(
        columns=_parse_columns(obj.get("columns")),
        defaults=MappingProxyType(defaults),
        cbam=_parse_cbam(obj.get("cbam_categories")),
        risk=_parse_risk(obj.get("risk") or {}),
        header_scan_rows=int(obj.get("header_scan_rows", 30) or 30),
    )


def load_rules(path: Optional[Path] = None) -> Rules:
    p = Path(path) if path is not None else rules_path()
    obj = load_json(p, None)
    if obj is None:
        logger.warning("Rules file %s is missing or unreadable; using empty tables", p)
        obj = {}
    return rules_from_dict(obj)


@lru_cache(maxsize=1)
def default_rules() -> Rules:
    return load_rules()
