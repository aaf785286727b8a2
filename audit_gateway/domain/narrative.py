"""Advisory narrative for flagged assessments"""

import json
import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Protocol, Sequence

from pydantic import BaseModel, ValidationError as PydanticValidationError, field_validator

from audit_gateway.domain.exceptions import (
    NarrativeQuotaError,
    NarrativeRateLimitError,
    UpstreamNarrativeError,
)
from audit_gateway.domain.models import RiskAssessment, Transaction
from audit_gateway.utils.normalize import strip_code_fences


class NarrativeGenerator(Protocol):
    """Text generation capability; raises UpstreamNarrativeError on failure"""

    async def generate(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        ...


AUDITOR_SYSTEM_PROMPT = """You are an expert internal auditor functioning as a professional audit assistant.

CORE PRINCIPLES:
- Act with professional skepticism but avoid speculation
- Every statement must be evidence-based and justifiable
- When data is limited, clearly state the limitation rather than guessing
- Use precise, professional audit terminology
- Ensure all findings are explainable to both technical and non-technical stakeholders

Always respond with valid JSON only, no markdown formatting."""

EXPLANATION_PROMPT_TEMPLATE = """You are a senior internal auditor acting as a professional audit assistant.

CRITICAL BEHAVIOR RULES:
1. NEVER use speculative language (avoid "might", "could", "possibly", "perhaps")
2. ALWAYS justify every conclusion with specific evidence from the data
3. If data is insufficient for a definitive conclusion, explicitly state: "Insufficient data to determine [X]. Additional documentation required."
4. Cite ONLY the evidence provided below; do not introduce outside facts
5. Use professional, factual language suitable for formal audit documentation
6. Be precise with numbers and percentages
7. Focus on WHAT was observed, WHY it matters, and WHAT action is needed

For each transaction, provide:
1. "audit_observation" - A factual 1-2 sentence finding based ONLY on available evidence
2. "risk_reason" - Specific, evidence-based explanation citing the exact risk factors detected
3. "suggested_action" - Concrete, actionable next step (e.g., "Request supporting invoice documentation from vendor")

Transactions to analyze:
{transactions}

Respond with a JSON array matching this structure:
[
  {{
    "transaction_id": "string",
    "audit_observation": "string",
    "risk_reason": "string",
    "suggested_action": "string"
  }}
]"""


class AdvisoryExplanation(BaseModel):
    """One entry of the generator's JSON array"""

    transaction_id: str
    audit_observation: Optional[str] = None
    risk_reason: Optional[str] = None
    suggested_action: Optional[str] = None

    @field_validator("transaction_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)


def _transaction_payload(txn: Transaction) -> Dict[str, Any]:
    payload = asdict(txn)
    payload["transaction_date"] = txn.transaction_date.isoformat()
    payload["amount"] = str(txn.amount)
    return payload


def _assessment_payload(assessment: RiskAssessment) -> Dict[str, Any]:
    return {
        "transaction_id": assessment.transaction_id,
        "risk_score": assessment.risk_score,
        "risk_level": assessment.risk_level.value,
        "risk_factors": [
            {"type": f.type, "description": f.description, "severity": f.severity.value}
            for f in assessment.risk_factors
        ],
        "risk_reason": assessment.risk_reason,
        "triggered_rules": assessment.triggered_rules,
    }


def build_explanation_prompt(
    flagged: Sequence[RiskAssessment],
    transactions_by_id: Dict[str, Transaction],
) -> str:
    details = []
    for assessment in flagged:
        entry = _assessment_payload(assessment)
        txn = transactions_by_id.get(assessment.transaction_id)
        entry["transaction"] = _transaction_payload(txn) if txn else None
        details.append(entry)
    return EXPLANATION_PROMPT_TEMPLATE.format(transactions=json.dumps(details, indent=2))


def parse_explanations(content: str) -> List[AdvisoryExplanation]:
    """
    Parse the generator's JSON array.

    Raises UpstreamNarrativeError when the content is not a JSON array.
    Individual malformed entries are skipped.
    """
    if not isinstance(content, str):
        raise UpstreamNarrativeError(f"Narrative content is {type(content).__name__}, expected text")
    try:
        data = json.loads(strip_code_fences(content))
    except json.JSONDecodeError as e:
        raise UpstreamNarrativeError(f"Narrative response is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise UpstreamNarrativeError("Narrative response is not a JSON array")

    explanations = []
    for item in data:
        try:
            explanations.append(AdvisoryExplanation.model_validate(item))
        except PydanticValidationError:
            logging.warning("Skipping malformed narrative entry", extra={"entry": repr(item)[:200]})
    return explanations


async def augment_assessments(
    assessments: List[RiskAssessment],
    transactions: Sequence[Transaction],
    generator: NarrativeGenerator,
    temperature: float = 0.3,
) -> List[RiskAssessment]:
    """
    Fill advisory fields on every non-low assessment.

    Only audit_observation, risk_reason_detail and suggested_action are
    written; level, score, factors and the rule reason stay as the rule
    engine produced them.

    Generator failures leave advisory fields empty, except rate-limit and
    quota responses which are re-raised for the caller to surface. The
    assessments passed in are mutated in place either way.
    """
    flagged = [a for a in assessments if a.is_flagged]
    if not flagged:
        return assessments

    transactions_by_id = {t.id: t for t in transactions}
    prompt = build_explanation_prompt(flagged, transactions_by_id)

    try:
        content = await generator.generate(AUDITOR_SYSTEM_PROMPT, prompt, temperature)
        explanations = parse_explanations(content)
    except (NarrativeRateLimitError, NarrativeQuotaError):
        raise
    except UpstreamNarrativeError as e:
        logging.warning(f"Narrative unavailable, returning rule-based assessments only: {e}")
        return assessments

    pending = {a.transaction_id: a for a in flagged}
    matched = 0
    for explanation in explanations:
        assessment = pending.get(explanation.transaction_id)
        if assessment is None:
            continue
        assessment.audit_observation = explanation.audit_observation
        assessment.risk_reason_detail = explanation.risk_reason
        assessment.suggested_action = explanation.suggested_action
        matched += 1

    if matched < len(flagged):
        logging.info(
            "Narrative covered %d of %d flagged assessments", matched, len(flagged)
        )

    return assessments
