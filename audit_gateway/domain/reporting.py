"""Session statistics and audit report narrative"""

import json
from decimal import Decimal
from typing import Any, Dict, List, Sequence

from pydantic import BaseModel, ValidationError as PydanticValidationError

from audit_gateway.domain.exceptions import UpstreamNarrativeError
from audit_gateway.domain.models import (
    AnalysisSession,
    DepartmentStat,
    ReportNarrative,
    RiskAssessment,
    RiskFactorStat,
    RiskLevel,
    SessionStatistics,
    Transaction,
    VendorStat,
)
from audit_gateway.domain.narrative import NarrativeGenerator
from audit_gateway.utils.normalize import format_amount, strip_code_fences

TOP_N = 5
UNIDENTIFIED_VENDOR = "Unidentified"
UNKNOWN_DEPARTMENT = "Unknown"
UNKNOWN_FACTOR = "unknown"

REPORT_SYSTEM_PROMPT = """You are an expert internal auditor functioning as a professional audit assistant.

CORE PRINCIPLES:
- Act as a trusted advisor providing factual, evidence-based insights
- Never speculate: every statement must be traceable to specific data
- Acknowledge data limitations explicitly rather than overstating conclusions
- Use professional audit terminology appropriate for executive audiences
- Keep findings suitable for enterprise audit programs
- Prioritize clarity and explainability over complexity

Always respond with valid JSON only, no markdown formatting."""


def _top_vendors(transactions: Sequence[Transaction]) -> List[VendorStat]:
    vendors: Dict[str, VendorStat] = {}
    for txn in transactions:
        name = (txn.vendor_name or "").strip() or UNIDENTIFIED_VENDOR
        stat = vendors.setdefault(name, VendorStat(name=name, count=0, total_amount=Decimal("0")))
        stat.count += 1
        stat.total_amount += Decimal(txn.amount)
    # sorted() is stable: equal totals keep first-seen order
    return sorted(vendors.values(), key=lambda v: v.total_amount, reverse=True)[:TOP_N]


def _top_risk_factors(assessments: Sequence[RiskAssessment]) -> List[RiskFactorStat]:
    factors: Dict[str, RiskFactorStat] = {}
    for assessment in assessments:
        for factor in assessment.risk_factors:
            key = factor.type or UNKNOWN_FACTOR
            factors.setdefault(key, RiskFactorStat(type=key, count=0)).count += 1
    return sorted(factors.values(), key=lambda f: f.count, reverse=True)[:TOP_N]


def _department_breakdown(
    transactions: Sequence[Transaction],
    assessments_by_txn: Dict[str, RiskAssessment],
) -> List[DepartmentStat]:
    totals: Dict[str, List[int]] = {}  # department -> [count, score sum]
    for txn in transactions:
        department = (txn.department or "").strip() or UNKNOWN_DEPARTMENT
        assessment = assessments_by_txn.get(txn.id)
        score = assessment.risk_score if assessment else 0
        bucket = totals.setdefault(department, [0, 0])
        bucket[0] += 1
        bucket[1] += score

    breakdown = [
        DepartmentStat(department=dept, count=count, risk_score=score_sum / count)
        for dept, (count, score_sum) in totals.items()
    ]
    return sorted(breakdown, key=lambda d: d.risk_score, reverse=True)


def aggregate(
    session: AnalysisSession,
    transactions: Sequence[Transaction],
    assessments: Sequence[RiskAssessment],
) -> SessionStatistics:
    """
    Compute the summary figures a report is written from.

    Tier counts come from the assessments of the session's transactions;
    unassessed transactions count toward the total and score 0 in the
    department averages.
    """
    txn_ids = {t.id for t in transactions}
    assessments = [a for a in assessments if a.transaction_id in txn_ids]
    assessments_by_txn = {a.transaction_id: a for a in assessments}

    def count(level: RiskLevel) -> int:
        return sum(1 for a in assessments if a.risk_level == level)

    return SessionStatistics(
        session_id=session.id,
        file_name=session.file_name or "Unknown",
        analysis_date=session.created_at.date(),
        total_transactions=len(transactions),
        high_risk_count=count(RiskLevel.HIGH),
        medium_risk_count=count(RiskLevel.MEDIUM),
        low_risk_count=count(RiskLevel.LOW),
        total_amount=sum((Decimal(t.amount) for t in transactions), Decimal("0")),
        top_vendors=_top_vendors(transactions),
        top_risk_factors=_top_risk_factors(assessments),
        department_breakdown=_department_breakdown(transactions, assessments_by_txn),
    )


def statistics_snapshot(stats: SessionStatistics) -> Dict[str, Any]:
    """JSON-safe statistics block stored on the report"""
    return {
        "total_transactions": stats.total_transactions,
        "high_risk": stats.high_risk_count,
        "medium_risk": stats.medium_risk_count,
        "low_risk": stats.low_risk_count,
        "total_amount": float(stats.total_amount),
    }


def _percent(part: int, total: int) -> str:
    return f"{(part / total * 100):.1f}%" if total else "0.0%"


def build_report_prompt(stats: SessionStatistics) -> str:
    total = stats.total_transactions
    factor_lines = "\n".join(f"- {f.type}: {f.count} occurrences" for f in stats.top_risk_factors) or "- None"
    vendor_lines = "\n".join(
        f"- {v.name}: {v.count} transactions, {format_amount(v.total_amount)} total" for v in stats.top_vendors
    ) or "- None"
    department_lines = "\n".join(
        f"- {d.department}: {d.count} transactions, avg risk score {d.risk_score:.0f}"
        for d in stats.department_breakdown
    ) or "- None"

    return f"""You are a senior internal auditor acting as a professional audit assistant.

CRITICAL BEHAVIOR RULES:
1. ALL statistics below are EXACT COUNTS derived from the final classified transaction table - DO NOT infer, estimate, or round these numbers
2. Use ONLY the exact figures provided - never approximate or use phrases like "approximately", "around", "nearly"
3. NEVER use speculative language - avoid words like "might", "could", "possibly", "may indicate"
4. Every numerical statement must match the exact counts provided below
5. Reference SPECIFIC RISK RULES that triggered findings:
   - Rule 1 (DUPLICATE TRANSACTION): Same vendor, same amount, same date occurring more than once -> HIGH risk
   - Rule 2 (HIGH-VALUE TRANSACTION): Amount > 1,000,000 -> HIGH risk; 500,000-1,000,000 -> MEDIUM risk
   - Rule 3 (VENDOR COUNTRY RISK): Vendors from Panama or UAE -> MEDIUM risk
   - Rule 4 (FREQUENCY RISK): Multiple payments to same vendor on same date -> MEDIUM risk
6. Focus on CONTROL WEAKNESSES implied by the findings (e.g., payment authorization, vendor monitoring)

DATA LIMITATIONS:
- Analysis is based on exactly {total} transactions from file: {stats.file_name}
- Risk levels are assigned using predefined audit rules, not historical baselines

FILE ANALYZED: {stats.file_name}
ANALYSIS DATE: {stats.analysis_date.isoformat()}

===== EXACT STATISTICS FROM CLASSIFIED TABLE (DO NOT MODIFY) =====
Total Transactions: {total}
Total Amount: {format_amount(stats.total_amount)}
High Risk Count: {stats.high_risk_count} ({_percent(stats.high_risk_count, total)})
Medium Risk Count: {stats.medium_risk_count} ({_percent(stats.medium_risk_count, total)})
Low Risk Count: {stats.low_risk_count} ({_percent(stats.low_risk_count, total)})

RISK FACTORS (exact counts from rule triggers):
{factor_lines}

VENDOR ANALYSIS (exact from transaction table):
{vendor_lines}

DEPARTMENT BREAKDOWN (exact from transaction table):
{department_lines}
================================================================

Generate a professional audit report with these EXACT sections:
1. "executive_summary" - 2-3 paragraphs using ONLY the exact statistics above. State which specific rules triggered the high/medium risk flags. Mention control weaknesses.
2. "risk_posture" - "Satisfactory", "Needs Improvement", or "Unsatisfactory" WITH justification citing specific rule violations and exact counts
3. "key_risk_themes" - Array of 3-5 themes based on the SPECIFIC RULES that triggered (duplicate_transaction, high_value_transaction, vendor_country_risk, frequency_risk)
4. "areas_of_attention" - Array of 3-5 items with "area", "priority" (High/Medium/Low), and actionable "recommendation" addressing control gaps

Respond with valid JSON only:
{{
  "executive_summary": "string",
  "risk_posture": "string",
  "key_risk_themes": [{{"title": "string", "description": "string"}}],
  "areas_of_attention": [{{"area": "string", "priority": "High|Medium|Low", "recommendation": "string"}}]
}}"""


class ReportPayload(BaseModel):
    executive_summary: str
    risk_posture: str
    key_risk_themes: List[Dict[str, Any]] = []
    areas_of_attention: List[Dict[str, Any]] = []


def parse_report(content: str) -> ReportNarrative:
    """Raises UpstreamNarrativeError when the content is not a usable report"""
    if not isinstance(content, str) or not content.strip():
        raise UpstreamNarrativeError("No content in narrative response")
    try:
        payload = ReportPayload.model_validate(json.loads(strip_code_fences(content)))
    except (json.JSONDecodeError, PydanticValidationError) as e:
        raise UpstreamNarrativeError(f"Malformed report narrative: {e}") from e

    return ReportNarrative(
        executive_summary=payload.executive_summary,
        risk_posture=payload.risk_posture,
        key_risk_themes=payload.key_risk_themes,
        areas_of_attention=payload.areas_of_attention,
    )


async def compose_report(
    stats: SessionStatistics,
    generator: NarrativeGenerator,
    temperature: float = 0.4,
) -> ReportNarrative:
    """Single generator call; every failure propagates so no report is fabricated"""
    content = await generator.generate(REPORT_SYSTEM_PROMPT, build_report_prompt(stats), temperature)
    return parse_report(content)
