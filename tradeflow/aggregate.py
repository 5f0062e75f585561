"""
Свёртка записей в срезы для отчётов: страны, категории CBAM, маршруты.

Один проход по записям; группы хранятся в dict (порядок вставки), поэтому
рейтинги "топ стран"/"топ маршрутов" при равной стоимости сохраняют порядок
первого появления ключа (sorted стабилен). Входная коллекция не меняется,
результат - значение: одинаковый вход даёт равный результат.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple
from .models import HIGH, LOW, MEDIUM, RISK_LEVELS, TradeRecord
from .rules import default_rules


def percent(part: float, whole: float) -> float:
    # доля в процентах; при нулевом знаменателе - 0, а не ошибка/NaN
    if not whole:
        return 0.0
    return float(part) / float(whole) * 100.0


@dataclass(frozen=True)
class CountryRollup:
    country: str
    record_count: int
    total_value: float
    cbam_count: int
    products: Tuple[str, ...] = ()

    @property
    def distinct_products(self) -> int:
        return len(self.products)

    def top_products(self, limit: int = 5) -> Tuple[str, ...]:
        return self.products[:max(0, limit)]


@dataclass(frozen=True)
class RouteRollup:
    origin: str
    destination: str
    record_count: int
    total_value: float
    cbam_count: int


class CategoryShare(NamedTuple):
    category: str
    count: int
    percent: float


class _CountryAcc:
    __slots__ = ("count", "value", "cbam", "products", "risk")

    def __init__(self):
        self.count = 0
        self.value = 0.0
        self.cbam = 0
        self.products: Dict[str, None] = {}  # упорядоченное множество
        self.risk = 0


class _RouteAcc:
    __slots__ = ("count", "value", "cbam")

    def __init__(self):
        self.count = 0
        self.value = 0.0
        self.cbam = 0


@dataclass(frozen=True)
class AggregationResult:
    total_records: int = 0
    cbam_relevant_count: int = 0
    average_compliance_score: float = 0.0
    countries: Tuple[CountryRollup, ...] = ()
    categories: Tuple[Tuple[str, int], ...] = ()
    routes: Tuple[RouteRollup, ...] = ()
    risk_distribution: Tuple[Tuple[str, int], ...] = ((LOW, 0), (MEDIUM, 0), (HIGH, 0))
    country_risk: Tuple[Tuple[str, int], ...] = ()
    total_value: float = 0.0

    @property
    def high_risk_count(self) -> int:
        return dict(self.risk_distribution).get(HIGH, 0)

    @property
    def unique_countries(self) -> int:
        return len(self.countries)

    @property
    def cbam_share(self) -> float:
        return percent(self.cbam_relevant_count, self.total_records)

    @property
    def high_risk_share(self) -> float:
        return percent(self.high_risk_count, self.cbam_relevant_count)

    def category_breakdown(self) -> List[CategoryShare]:
        # проценты - состав внутри CBAM-релевантных записей, а не от всех записей
        return [CategoryShare(c, n, percent(n, self.cbam_relevant_count)) for c, n in self.categories]

    def country(self, name: str) -> Optional[CountryRollup]:
        for c in self.countries:
            if c.country == name:
                return c
        return None

    def top_countries(self, limit: Optional[int] = None) -> List[CountryRollup]:
        ranked = sorted(self.countries, key=lambda c: c.total_value, reverse=True)
        return ranked if limit is None else ranked[:limit]

    def top_routes(self, limit: Optional[int] = 10) -> List[RouteRollup]:
        ranked = sorted(self.routes, key=lambda r: r.total_value, reverse=True)
        return ranked if limit is None else ranked[:limit]

    def to_dict(self, top_products: int = 5) -> Dict[str, Any]:
        return {
            "summary": {
                "totalRecords": self.total_records,
                "cbamRelevantCount": self.cbam_relevant_count,
                "averageComplianceScore": self.average_compliance_score,
                "totalValue": self.total_value,
                "highRiskCount": self.high_risk_count,
                "uniqueCountries": self.unique_countries,
                "cbamShare": self.cbam_share,
            },
            "countries": [
                {
                    "country": c.country,
                    "recordCount": c.record_count,
                    "totalValue": c.total_value,
                    "cbamCount": c.cbam_count,
                    "distinctProducts": c.distinct_products,
                    "topProducts": list(c.top_products(top_products)),
                }
                for c in self.countries
            ],
            "categories": [
                {"category": s.category, "count": s.count, "percent": s.percent}
                for s in self.category_breakdown()
            ],
            "routes": [
                {
                    "origin": r.origin,
                    "destination": r.destination,
                    "recordCount": r.record_count,
                    "totalValue": r.total_value,
                    "cbamCount": r.cbam_count,
                }
                for r in self.routes
            ],
            "riskDistribution": dict(self.risk_distribution),
            "countryRisk": dict(self.country_risk),
        }


def aggregate(records: Iterable[TradeRecord], risk_weights: Optional[Mapping[str, int]] = None) -> AggregationResult:
    weights = risk_weights if risk_weights is not None else default_rules().risk.risk_weights

    total = 0
    cbam = 0
    total_value = 0.0
    score_sum = 0.0
    scored = 0
    countries: Dict[str, _CountryAcc] = {}
    categories: Dict[str, int] = {}
    routes: Dict[Tuple[str, str], _RouteAcc] = {}
    risk = {level: 0 for level in RISK_LEVELS}

    for r in records:
        total += 1
        total_value += r.value

        acc = countries.get(r.origin_country)
        if acc is None:
            acc = countries[r.origin_country] = _CountryAcc()
        acc.count += 1
        acc.value += r.value
        if r.product_description:
            acc.products.setdefault(r.product_description, None)

        key = (r.origin_country, r.destination_country)
        route = routes.get(key)
        if route is None:
            route = routes[key] = _RouteAcc()
        route.count += 1
        route.value += r.value

        if r.is_cbam_relevant:
            cbam += 1
            acc.cbam += 1
            route.cbam += 1
            categories[r.cbam_category] = categories.get(r.cbam_category, 0) + 1

        if r.is_scored:
            scored += 1
            score_sum += r.compliance_score
            risk[r.risk_level] += 1
            acc.risk += int(weights.get(r.risk_level, 0))

    return AggregationResult(
        total_records=total,
        cbam_relevant_count=cbam,
        average_compliance_score=score_sum / scored if scored else 0.0,
        countries=tuple(
            CountryRollup(name, a.count, a.value, a.cbam, tuple(a.products)) for name, a in countries.items()
        ),
        categories=tuple(categories.items()),
        routes=tuple(
            RouteRollup(o, d, a.count, a.value, a.cbam) for (o, d), a in routes.items()
        ),
        risk_distribution=tuple((level, risk[level]) for level in RISK_LEVELS),
        country_risk=tuple((name, a.risk) for name, a in countries.items() if a.risk),
        total_value=total_value,
    )
