"""Unit tests for session statistics and report narrative"""

import json
import pytest
from datetime import datetime
from decimal import Decimal

from audit_gateway.domain.exceptions import NarrativeQuotaError, UpstreamNarrativeError
from audit_gateway.domain.models import AnalysisSession, RiskAssessment, RiskFactor, RiskLevel, Severity
from audit_gateway.domain.reporting import (
    REPORT_SYSTEM_PROMPT,
    aggregate,
    build_report_prompt,
    compose_report,
    parse_report,
    statistics_snapshot,
)
from audit_gateway.domain.scoring import assess_batch

REPORT_JSON = json.dumps(
    {
        "executive_summary": "The analysis of 6 transactions identified 2 high-risk transactions.",
        "risk_posture": "Needs Improvement",
        "key_risk_themes": [{"title": "Duplicate payments", "description": "Rule 1 fired twice"}],
        "areas_of_attention": [{"area": "Payment authorization", "priority": "High", "recommendation": "Dual sign-off"}],
    }
)


@pytest.fixture
def session() -> AnalysisSession:
    return AnalysisSession(
        id="session-1",
        user_id="auditor-1",
        file_name="march.csv",
        created_at=datetime(2024, 3, 31, 9, 30),
        status="completed",
    )


@pytest.fixture
def batch(make_txn):
    return [
        make_txn("a", vendor="Acme Supplies", department="Finance"),
        make_txn("b", vendor="Acme Supplies", department="Finance"),
        make_txn("c", vendor="Gulf Trading", country="UAE", amount="300", department="Operations"),
        make_txn("d", vendor="", amount="50", department="Operations"),
        make_txn("e", vendor="Big Build", amount="600000", department=""),
        make_txn("f", vendor="Quiet Vendor", amount="10", department="Legal"),
    ]


def test_aggregate_counts_and_totals(session, batch):
    stats = aggregate(session, batch, assess_batch(batch))

    assert stats.total_transactions == 6
    assert (stats.high_risk_count, stats.medium_risk_count, stats.low_risk_count) == (2, 2, 2)
    assert stats.total_amount == Decimal("602760.00")
    assert stats.analysis_date.isoformat() == "2024-03-31"


def test_top_vendors_by_total_amount(session, batch):
    stats = aggregate(session, batch, assess_batch(batch))

    assert [v.name for v in stats.top_vendors] == [
        "Big Build",
        "Acme Supplies",
        "Gulf Trading",
        "Unidentified",
        "Quiet Vendor",
    ]
    assert stats.top_vendors[1].count == 2
    assert stats.top_vendors[1].total_amount == Decimal("2400.00")


def test_top_vendors_ties_keep_first_seen_order(session, make_txn):
    batch = [make_txn(str(i), vendor=f"Vendor {i}", amount="100") for i in range(7)]

    stats = aggregate(session, batch, [])

    assert [v.name for v in stats.top_vendors] == [f"Vendor {i}" for i in range(5)]


def test_top_risk_factors_by_count(session, batch):
    stats = aggregate(session, batch, assess_batch(batch))

    assert [(f.type, f.count) for f in stats.top_risk_factors] == [
        ("duplicate_transaction", 2),
        ("vendor_country_risk", 1),
        ("high_value_transaction", 1),
    ]


def test_department_breakdown_averages(session, batch):
    stats = aggregate(session, batch, assess_batch(batch))
    breakdown = {d.department: d for d in stats.department_breakdown}

    assert breakdown["Finance"].risk_score == 90
    assert breakdown["Unknown"].risk_score == 60
    assert breakdown["Operations"].risk_score == 25  # (50 + 0) / 2
    assert breakdown["Legal"].risk_score == 0
    assert [d.department for d in stats.department_breakdown] == ["Finance", "Unknown", "Operations", "Legal"]


def test_department_without_assessments_scores_zero(session, make_txn):
    batch = [make_txn("a", department="Procurement"), make_txn("b", vendor="Other", department="Procurement")]
    assessed_elsewhere = RiskAssessment(
        transaction_id="not-in-batch",
        risk_level=RiskLevel.HIGH,
        risk_score=90,
        risk_factors=[RiskFactor("duplicate_transaction", "dup", Severity.HIGH)],
        risk_reason="Rule 1 triggered: Duplicate transaction (2 occurrences)",
    )

    stats = aggregate(session, batch, [assessed_elsewhere])

    assert stats.department_breakdown[0].risk_score == 0
    assert stats.high_risk_count == 0
    assert stats.top_risk_factors == []


def test_statistics_snapshot(session, batch):
    snapshot = statistics_snapshot(aggregate(session, batch, assess_batch(batch)))

    assert snapshot == {
        "total_transactions": 6,
        "high_risk": 2,
        "medium_risk": 2,
        "low_risk": 2,
        "total_amount": 602760.0,
    }


def test_report_prompt_uses_exact_figures(session, batch):
    prompt = build_report_prompt(aggregate(session, batch, assess_batch(batch)))

    assert "Total Transactions: 6" in prompt
    assert "High Risk Count: 2 (33.3%)" in prompt
    assert "- duplicate_transaction: 2 occurrences" in prompt
    assert "- Acme Supplies: 2 transactions, 2,400.00 total" in prompt
    assert "- Operations: 2 transactions, avg risk score 25" in prompt
    assert "FILE ANALYZED: march.csv" in prompt
    assert "DO NOT infer, estimate, or round" in prompt


def test_report_prompt_handles_empty_session(session):
    prompt = build_report_prompt(aggregate(session, [], []))

    assert "High Risk Count: 0 (0.0%)" in prompt


async def test_compose_report_parses_narrative(session, batch, narrative):
    narrative.content = "```json\n" + REPORT_JSON + "\n```"

    report = await compose_report(aggregate(session, batch, assess_batch(batch)), narrative)

    assert report.risk_posture == "Needs Improvement"
    assert report.key_risk_themes[0]["title"] == "Duplicate payments"
    assert report.areas_of_attention[0]["priority"] == "High"
    assert narrative.calls[0]["temperature"] == 0.4
    assert narrative.calls[0]["system_prompt"] == REPORT_SYSTEM_PROMPT
    assert "executive audiences" in narrative.calls[0]["system_prompt"]


@pytest.mark.parametrize(
    "content", ["", "[]", "not json", json.dumps({"risk_posture": "Satisfactory"}), None, [{"risk_posture": "x"}]]
)
def test_parse_report_rejects_unusable_content(content):
    with pytest.raises(UpstreamNarrativeError):
        parse_report(content)


async def test_compose_report_propagates_quota_error(session, narrative):
    narrative.error = NarrativeQuotaError("credits exhausted")

    with pytest.raises(NarrativeQuotaError):
        await compose_report(aggregate(session, [], []), narrative)
