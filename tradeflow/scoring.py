from __future__ import annotations
from typing import Iterable, List, NamedTuple, Optional
import numpy as np
from .models import HIGH, LOW, MEDIUM, TradeRecord
from .rules import RiskRules, default_rules
from .utils import norm_text


class Score(NamedTuple):
    risk_level: str
    compliance_score: float


class RiskScorer:
    """
    Уровень риска и compliance score для CBAM-релевантной записи.

      high   - страна из high_risk_countries И категория из high_risk_categories
      medium - страна высокого риска ИЛИ категория высокого риска ИЛИ страна среднего риска
      low    - иначе

    score = base(level) - min(value / value_divisor, max_value_penalty), в пределах [0, 100]
    """

    def __init__(self, rules: Optional[RiskRules] = None):
        self.rules = rules if rules is not None else default_rules().risk

    def risk_level(self, origin_country: str, category: Optional[str]) -> str:
        country = norm_text(origin_country)
        cat = (category or "").lower()
        high_country = country in self.rules.high_risk_countries
        high_category = cat in self.rules.high_risk_categories

        if high_country and high_category:
            return HIGH
        if high_country or high_category or country in self.rules.medium_risk_countries:
            return MEDIUM
        return LOW

    def compliance_score(self, risk_level: str, value: float) -> float:
        base = float(self.rules.base_scores.get(risk_level, 0.0))
        # чем больше стоимость партии, тем ниже балл (штраф ограничен)
        penalty = min(float(value) / self.rules.value_divisor, self.rules.max_value_penalty)
        return float(np.clip(base - penalty, 0.0, 100.0))

    def score(self, origin_country: str, category: Optional[str], value: float) -> Score:
        level = self.risk_level(origin_country, category)
        return Score(level, self.compliance_score(level, value))

    def score_record(self, record: TradeRecord) -> TradeRecord:
        # для нерелевантных записей скоринг не определён - возвращаем как есть
        if not record.is_cbam_relevant:
            return record
        level, value = self.score(record.origin_country, record.cbam_category, record.value)
        return record.with_score(level, value)

    def score_all(self, records: Iterable[TradeRecord]) -> List[TradeRecord]:
        return [self.score_record(r) for r in records]


def score(origin_country: str, category: Optional[str], value: float) -> Score:
    return RiskScorer().score(origin_country, category, value)
