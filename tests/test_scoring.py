import pytest

from tradeflow.classify import CbamClassifier
from tradeflow.models import TradeRecord
from tradeflow.scoring import RiskScorer, Score, score


def test_high_risk_country_and_category():
    assert score("China", "steel", 50000) == Score("high", 39.5)


@pytest.mark.parametrize("country, category, level", [
    ("China", "electricity", "medium"),
    ("Germany", "cement", "medium"),
    ("Brazil", "fertilizers", "medium"),
    ("Germany", "electricity", "low"),
    ("  india ", "aluminum", "high"),
])
def test_risk_levels(country, category, level):
    assert RiskScorer().risk_level(country, category) == level


def test_value_penalty_is_capped():
    scorer = RiskScorer()
    assert scorer.compliance_score("low", 0) == 85.0
    assert scorer.compliance_score("low", 250000) == 82.5
    assert scorer.compliance_score("medium", 10 ** 9) == 55.0
    assert scorer.compliance_score("high", 10 ** 9) == 25.0


@pytest.mark.parametrize("value", [-10 ** 9, -1, 0, 1, 99999, 10 ** 6, 10 ** 12])
@pytest.mark.parametrize("level", ["low", "medium", "high"])
def test_score_stays_in_bounds(level, value):
    assert 0.0 <= RiskScorer().compliance_score(level, value) <= 100.0


def test_scoring_relevant_record():
    rec = CbamClassifier().classify_record(
        TradeRecord(product_code="7301", product_description="steel pipe", origin_country="China", value=50000)
    )
    scored = RiskScorer().score_record(rec)

    assert scored.risk_level == "high"
    assert scored.compliance_score == pytest.approx(39.5)
    # исходная запись не меняется
    assert rec.risk_level is None


def test_scoring_non_relevant_record_is_noop():
    rec = TradeRecord(product_description="cotton t-shirts", origin_country="China", value=1000)
    assert RiskScorer().score_record(rec) is rec


def test_record_refuses_score_without_relevance():
    with pytest.raises(ValueError):
        TradeRecord(risk_level="low", compliance_score=80.0)
