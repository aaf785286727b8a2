"""Unit tests for the ordered audit rule chain"""

import pytest
from datetime import date

from audit_gateway.domain.models import RiskLevel, Severity
from audit_gateway.domain.scoring import RuleContext, assess_batch, evaluate_transaction


def _by_id(assessments):
    return {a.transaction_id: a for a in assessments}


def test_duplicate_rule_flags_every_member(make_txn):
    """All members of a duplicate group are HIGH with the group size in the reason"""
    batch = [make_txn("a"), make_txn("b"), make_txn("c"), make_txn("d", vendor="Unrelated Ltd")]

    results = _by_id(assess_batch(batch))

    for txn_id in ("a", "b", "c"):
        assessment = results[txn_id]
        assert assessment.risk_level == RiskLevel.HIGH
        assert assessment.risk_score == 90
        assert [f.type for f in assessment.risk_factors] == ["duplicate_transaction"]
        assert assessment.risk_factors[0].severity == Severity.HIGH
        assert "(3 occurrences)" in assessment.risk_reason
        assert assessment.risk_reason.startswith("Rule 1 triggered")

    assert results["d"].risk_level == RiskLevel.LOW


def test_duplicate_sibling_later_in_batch(make_txn):
    """A row is a duplicate even when its sibling comes after it"""
    batch = [make_txn("first"), make_txn("x", vendor="Filler Co"), make_txn("last")]
    ctx = RuleContext.from_batch(batch)

    assert evaluate_transaction(batch[0], ctx).risk_level == RiskLevel.HIGH


@pytest.mark.parametrize(
    "amount, level, score",
    [
        ("1000000.01", RiskLevel.HIGH, 85),
        ("1000000", RiskLevel.MEDIUM, 60),
        ("750000", RiskLevel.MEDIUM, 60),
        ("500000", RiskLevel.MEDIUM, 60),
    ],
)
def test_high_value_rule_boundaries(make_txn, amount, level, score):
    """1,000,000 belongs to the medium band; only strictly above it is HIGH"""
    (assessment,) = assess_batch([make_txn("a", amount=amount)])

    assert assessment.risk_level == level
    assert assessment.risk_score == score
    assert assessment.risk_factors[0].type == "high_value_transaction"
    assert assessment.risk_reason.startswith("Rule 2 triggered")


def test_high_value_rule_below_threshold_falls_through(make_txn):
    """499,999 does not fire rule 2; lower-priority rules still apply"""
    (plain,) = assess_batch([make_txn("a", amount="499999")])
    (panama,) = assess_batch([make_txn("b", amount="499999", country="Panama")])

    assert plain.risk_level == RiskLevel.LOW
    assert panama.risk_level == RiskLevel.MEDIUM
    assert panama.risk_factors[0].type == "vendor_country_risk"


@pytest.mark.parametrize("country", ["United Arab Emirates", "UNITED ARAB EMIRATES", "united arab emirates", " uae "])
def test_vendor_country_rule_normalizes_uae(make_txn, country):
    (assessment,) = assess_batch([make_txn("a", country=country)])

    assert assessment.risk_level == RiskLevel.MEDIUM
    assert assessment.risk_score == 50
    assert assessment.risk_reason == "Rule 3 triggered: Vendor country is UAE"


def test_vendor_country_rule_does_not_override_earlier_rule(make_txn):
    (assessment,) = assess_batch([make_txn("a", amount="2500000", country="United Arab Emirates")])

    assert assessment.risk_level == RiskLevel.HIGH
    assert [f.type for f in assessment.risk_factors] == ["high_value_transaction"]


def test_duplicate_wins_over_high_value(make_txn):
    """Rule priority: a high-value duplicate carries only the duplicate factor"""
    batch = [make_txn("a", amount="2000000"), make_txn("b", amount="2000000")]

    for assessment in assess_batch(batch):
        assert assessment.risk_score == 90
        assert len(assessment.risk_factors) == 1
        assert assessment.risk_factors[0].type == "duplicate_transaction"


def test_frequency_rule_same_vendor_same_date(make_txn):
    """Same vendor and date, different amounts: both MEDIUM via rule 4 with count 2"""
    batch = [make_txn("a", amount="100.00"), make_txn("b", amount="250.00")]

    for assessment in assess_batch(batch):
        assert assessment.risk_level == RiskLevel.MEDIUM
        assert assessment.risk_score == 45
        assert assessment.risk_factors[0].type == "frequency_risk"
        assert assessment.risk_reason == "Rule 4 triggered: 2 payments to same vendor on same date"


def test_frequency_rule_ignores_blank_vendor(make_txn):
    batch = [make_txn("a", vendor="", amount="10"), make_txn("b", vendor="", amount="20")]

    assert all(a.risk_level == RiskLevel.LOW for a in assess_batch(batch))


def test_frequency_rule_needs_same_date(make_txn):
    batch = [make_txn("a", day=date(2024, 3, 1), amount="10"), make_txn("b", day=date(2024, 3, 2), amount="20")]

    assert all(a.risk_level == RiskLevel.LOW for a in assess_batch(batch))


def test_no_rule_triggered(make_txn):
    (assessment,) = assess_batch([make_txn("a")])

    assert assessment.risk_level == RiskLevel.LOW
    assert assessment.risk_score == 0
    assert assessment.risk_factors == []
    assert assessment.risk_reason == "No rule triggered"
    assert assessment.triggered_rules == "None"
    assert assessment.is_flagged is False


def test_assessments_independent_of_batch_order(make_txn):
    batch = [
        make_txn("a"),
        make_txn("b"),
        make_txn("c", vendor="Gulf Trading", country="UAE", amount="10"),
        make_txn("d", vendor="Big Build", amount="800000"),
        make_txn("e", vendor="Daily Foods", amount="12"),
        make_txn("f", vendor="Daily Foods", amount="13"),
    ]

    forward = _by_id(assess_batch(batch))
    backward = _by_id(assess_batch(list(reversed(batch))))

    assert forward == backward
    assert [forward[i].risk_score for i in "abcdef"] == [90, 90, 50, 60, 45, 45]
