import json

import pytest

from tradeflow.classify import CbamClassifier, Classification, classify
from tradeflow.models import TradeRecord
from tradeflow.rules import CbamRules, load_rules


@pytest.mark.parametrize("code, description, category", [
    ("7301", "steel pipe", "steel"),
    ("", "Portland CEMENT clinker", "cement"),
    ("7601", "", "aluminum"),
    ("", "Aluminium foil", "aluminum"),
    ("3102", "", "fertilizers"),
    ("", "granular UREA", "fertilizers"),
    ("2716", "", "electricity"),
    ("", "Electricity supply contract", "electricity"),
])
def test_keyword_and_code_matches(code, description, category):
    assert classify(code, description) == Classification(True, category)


def test_no_match_is_not_relevant():
    assert classify("6109", "cotton t-shirts") == Classification(False, None)
    assert classify("", "") == Classification(False, None)


def test_earlier_category_wins_on_ties():
    # steel и aluminum одновременно - steel стоит раньше в таблице
    assert classify("", "steel frame with aluminum panels").category == "steel"
    assert classify("", "aluminum frame with steel bolts").category == "steel"


def test_code_substring_matching_follows_table_order():
    # "2523" (cement) проверяется раньше "72" (steel)
    assert classify("25237200", "").category == "cement"


def test_classification_is_deterministic():
    clf = CbamClassifier()
    results = {clf.classify("7304", "seamless iron tube") for _ in range(20)}
    assert results == {Classification(True, "steel")}


def test_substituted_table_is_used():
    rules = CbamRules(categories=(("hydrogen", ("2804", "hydrogen")), ("steel", ("steel",))))
    clf = CbamClassifier(rules)

    assert clf.classify("", "Hydrogen and steel").category == "hydrogen"
    assert clf.classify("7301", "pipe").relevant is False


def test_rules_file_can_replace_defaults(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({
        "cbam_categories": [{"category": "Hydrogen", "keywords": ["H2", "Hydrogen"]}],
    }), encoding="utf-8")
    clf = CbamClassifier(load_rules(path).cbam)

    assert clf.classify("", "compressed h2 cylinders") == Classification(True, "hydrogen")


def test_classify_record_keeps_relevance_category_invariant():
    clf = CbamClassifier()
    relevant = clf.classify_record(TradeRecord(product_code="7301", product_description="pipe"))
    other = clf.classify_record(TradeRecord(product_code="6109", product_description="shirts"))

    for rec in (relevant, other):
        assert rec.is_cbam_relevant == (rec.cbam_category is not None)
    assert relevant.cbam_category == "steel"
    assert other.cbam_category is None


def test_record_rejects_broken_invariant():
    with pytest.raises(ValueError):
        TradeRecord(is_cbam_relevant=True, cbam_category=None)
    with pytest.raises(ValueError):
        TradeRecord(is_cbam_relevant=False, cbam_category="steel")
