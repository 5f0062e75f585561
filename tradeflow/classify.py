from __future__ import annotations
from typing import Iterable, List, NamedTuple, Optional
from .models import TradeRecord
from .rules import CbamRules, default_rules


class Classification(NamedTuple):
    relevant: bool
    category: Optional[str]


NOT_RELEVANT = Classification(False, None)


class CbamClassifier:
    """
    Определение CBAM-категории по коду товара и описанию.

    Правило: код и описание в нижнем регистре; категории перебираются в
    порядке таблицы, внутри категории - ключевые слова в порядке таблицы;
    побеждает первая категория, у которой хоть одно ключевое слово входит
    подстрокой в код или описание. Это не "лучшее" совпадение: описание
    "steel frame with aluminum panels" даёт steel, потому что steel выше.
    """

    def __init__(self, rules: Optional[CbamRules] = None):
        self.rules = rules if rules is not None else default_rules().cbam

    def classify(self, product_code: str, description: str) -> Classification:
        code = (product_code or "").lower()
        desc = (description or "").lower()
        for category, keywords in self.rules.categories:
            for kw in keywords:
                if kw in code or kw in desc:
                    return Classification(True, category)
        return NOT_RELEVANT

    def classify_record(self, record: TradeRecord) -> TradeRecord:
        relevant, category = self.classify(record.product_code, record.product_description)
        return record.with_classification(relevant, category)

    def classify_all(self, records: Iterable[TradeRecord]) -> List[TradeRecord]:
        return [self.classify_record(r) for r in records]


def classify(product_code: str, description: str) -> Classification:
    # по таблице правил по умолчанию
    return CbamClassifier().classify(product_code, description)
