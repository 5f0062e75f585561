import pytest

from tradeflow.aggregate import AggregationResult, aggregate, percent
from tradeflow.classify import CbamClassifier
from tradeflow.models import TradeRecord
from tradeflow.scoring import RiskScorer


def make(code="", desc="", origin="", value=0.0, destination=""):
    rec = TradeRecord(
        product_code=code,
        product_description=desc,
        origin_country=origin,
        destination_country=destination,
        value=value,
    )
    return RiskScorer().score_record(CbamClassifier().classify_record(rec))


@pytest.fixture
def records():
    return [
        make("7301", "steel pipe", "China", 50000, "Germany"),
        make("6109", "cotton t-shirts", "France", 1000, "Germany"),
        make("6110", "wool sweaters", "France", 2000, "Germany"),
        make("7601", "aluminium sheet", "Turkey", 12000, "Netherlands"),
        make("2523", "portland cement", "China", 8000, "Germany"),
    ]


def test_country_rollup(records):
    result = aggregate(records)
    france = result.country("France")

    assert france.record_count == 2
    assert france.total_value == 3000
    assert france.cbam_count == 0
    assert france.products == ("cotton t-shirts", "wool sweaters")


def test_empty_input_gives_zeroed_result():
    result = aggregate([])

    assert result == AggregationResult()
    assert result.total_records == 0
    assert result.cbam_relevant_count == 0
    assert result.average_compliance_score == 0
    assert result.cbam_share == 0
    assert result.category_breakdown() == []
    assert result.top_countries() == []


def test_zero_cbam_records_gives_zero_percent():
    result = aggregate([make("6109", "cotton t-shirts", "France", 1000)])

    assert result.cbam_relevant_count == 0
    assert result.high_risk_share == 0
    assert result.average_compliance_score == 0


def test_summary_statistics(records):
    result = aggregate(records)

    assert result.total_records == 5
    assert result.cbam_relevant_count == 3
    assert result.cbam_share == pytest.approx(60.0)
    # China/steel: 39.5; Turkey/aluminum: 40 - 0.12; China/cement: 40 - 0.08
    assert result.average_compliance_score == pytest.approx((39.5 + 39.88 + 39.92) / 3)
    assert result.high_risk_count == 3
    assert result.unique_countries == 3


def test_category_percent_is_share_of_cbam_records(records):
    breakdown = {s.category: (s.count, s.percent) for s in aggregate(records).category_breakdown()}

    assert breakdown["steel"] == (1, pytest.approx(100 / 3))
    assert breakdown["aluminum"] == (1, pytest.approx(100 / 3))
    assert breakdown["cement"] == (1, pytest.approx(100 / 3))


def test_aggregation_is_idempotent_and_does_not_mutate_input(records):
    snapshot = list(records)

    first = aggregate(records)
    second = aggregate(records)

    assert first == second
    assert records == snapshot
    assert first.to_dict() == second.to_dict()


def test_top_countries_ties_keep_first_seen_order():
    recs = [
        make(desc="a", origin="Spain", value=100),
        make(desc="b", origin="Italy", value=500),
        make(desc="c", origin="Chile", value=100),
        make(desc="d", origin="Peru", value=100),
    ]
    ranked = [c.country for c in aggregate(recs).top_countries()]

    assert ranked == ["Italy", "Spain", "Chile", "Peru"]
    assert [c.country for c in aggregate(recs).top_countries(2)] == ["Italy", "Spain"]


def test_routes_are_keyed_by_origin_and_destination(records):
    routes = aggregate(records).top_routes()

    top = routes[0]
    assert (top.origin, top.destination) == ("China", "Germany")
    assert top.record_count == 2
    assert top.total_value == 58000
    assert top.cbam_count == 2
    assert [(r.origin, r.destination) for r in routes] == [
        ("China", "Germany"),
        ("Turkey", "Netherlands"),
        ("France", "Germany"),
    ]


def test_distinct_products_are_capped_on_request():
    recs = [make(desc=f"item {i}", origin="Japan", value=1) for i in range(8)]
    recs.append(make(desc="item 0", origin="Japan", value=1))
    japan = aggregate(recs).country("Japan")

    assert japan.distinct_products == 8
    assert japan.top_products(3) == ("item 0", "item 1", "item 2")


def test_country_risk_weights(records):
    risk = dict(aggregate(records).country_risk)
    assert risk == {"China": 6, "Turkey": 3}


@pytest.mark.parametrize("part, whole, expected", [
    (1, 4, 25.0),
    (0, 0, 0.0),
    (5, 0, 0.0),
])
def test_percent(part, whole, expected):
    assert percent(part, whole) == expected
