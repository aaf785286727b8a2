"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from audit_gateway.domain.models import RiskAssessment, Transaction
from audit_gateway.infrastructure.database.repositories import to_domain_assessment


class TransactionIn(BaseModel):
    """Structured transaction record produced by file ingestion"""

    transaction_id: str = Field(..., min_length=1, description="External transaction identifier")
    transaction_date: date
    amount: Decimal = Field(..., ge=0, description="Non-negative currency value")
    vendor_name: str = ""
    vendor_country: str = ""
    payment_method: str = ""
    department: str = ""
    description: str = ""


class AnalyzeTransaction(TransactionIn):
    """Transaction with the stable id assessments are keyed by"""

    id: str = Field(..., min_length=1)

    def to_domain(self) -> Transaction:
        return Transaction(
            id=self.id,
            transaction_id=self.transaction_id,
            transaction_date=self.transaction_date,
            amount=self.amount,
            vendor_name=self.vendor_name,
            vendor_country=self.vendor_country,
            payment_method=self.payment_method,
            department=self.department,
            description=self.description,
        )


class AnalyzeRequest(BaseModel):
    """Request body for POST /v1/analyze"""

    model_config = ConfigDict(populate_by_name=True)

    transactions: List[AnalyzeTransaction] = Field(default_factory=list)
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class RiskFactorSchema(BaseModel):
    type: str
    description: str
    severity: str


class AssessmentSchema(BaseModel):
    """Per-transaction result; advisory fields only when the narrative was available"""

    transaction_id: str
    risk_score: int
    risk_level: str
    risk_factors: List[RiskFactorSchema]
    risk_reason: str
    triggered_rules: str
    audit_observation: Optional[str] = None
    risk_reason_detail: Optional[str] = None
    suggested_action: Optional[str] = None

    @classmethod
    def from_domain(cls, assessment: RiskAssessment) -> "AssessmentSchema":
        return cls(
            transaction_id=assessment.transaction_id,
            risk_score=assessment.risk_score,
            risk_level=assessment.risk_level.value,
            risk_factors=[
                RiskFactorSchema(type=f.type, description=f.description, severity=f.severity.value)
                for f in assessment.risk_factors
            ],
            risk_reason=assessment.risk_reason,
            triggered_rules=assessment.triggered_rules,
            audit_observation=assessment.audit_observation,
            risk_reason_detail=assessment.risk_reason_detail,
            suggested_action=assessment.suggested_action,
        )


class AnalyzeResponse(BaseModel):
    """Response for POST /v1/analyze"""

    assessments: List[AssessmentSchema]


class CreateSessionRequest(BaseModel):
    """Request body for POST /v1/sessions"""

    file_name: str = Field(..., min_length=1)
    transactions: List[TransactionIn] = Field(default_factory=list)


class StoredTransaction(TransactionIn):
    id: str


class CreateSessionResponse(BaseModel):
    """Response for POST /v1/sessions"""

    session_id: str
    status: str
    transactions: List[StoredTransaction]


class SessionResponse(BaseModel):
    """Response for GET /v1/sessions/{session_id}"""

    session_id: str
    file_name: str
    status: str
    total_transactions: int
    high_risk_count: int
    medium_risk_count: int
    low_risk_count: int
    created_at: str
    completed_at: Optional[str] = None


class ReportRequest(BaseModel):
    """Request body for POST /v1/generate-report"""

    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")


class ReportSchema(BaseModel):
    report_id: str
    session_id: str
    title: str
    executive_summary: Optional[str]
    risk_posture: Optional[str]
    key_risk_themes: List[Dict[str, Any]]
    areas_of_attention: List[Dict[str, Any]]
    statistics: Dict[str, Any]
    created_at: str

    @classmethod
    def from_record(cls, record) -> "ReportSchema":
        return cls(
            report_id=str(record.id),
            session_id=str(record.session_id),
            title=record.title,
            executive_summary=record.executive_summary,
            risk_posture=record.risk_posture,
            key_risk_themes=record.key_risk_themes or [],
            areas_of_attention=record.areas_of_attention or [],
            statistics=record.statistics or {},
            created_at=record.created_at.isoformat(),
        )


class ReportResponse(BaseModel):
    """Response for POST /v1/generate-report"""

    report: ReportSchema
    success: bool = True


class ReportHistoryResponse(BaseModel):
    """Response for GET /v1/sessions/{session_id}/reports"""

    session_id: str
    reports: List[ReportSchema]


class StoredAssessmentSchema(AssessmentSchema):
    """Persisted assessment with reviewer state"""

    reviewed: bool = False
    review_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[str] = None

    @classmethod
    def from_record(cls, record) -> "StoredAssessmentSchema":
        base = AssessmentSchema.from_domain(to_domain_assessment(record))
        return cls(
            **base.model_dump(),
            reviewed=bool(record.reviewed),
            review_notes=record.review_notes,
            reviewed_by=record.reviewed_by,
            reviewed_at=record.reviewed_at.isoformat() if record.reviewed_at else None,
        )


class SessionTransactionSchema(StoredTransaction):
    assessment: Optional[StoredAssessmentSchema] = None

    @classmethod
    def from_record(cls, record) -> "SessionTransactionSchema":
        return cls(
            id=record.id,
            transaction_id=record.transaction_id,
            transaction_date=record.transaction_date,
            amount=record.amount,
            vendor_name=record.vendor_name,
            vendor_country=record.vendor_country,
            payment_method=record.payment_method,
            department=record.department,
            description=record.description or "",
            assessment=StoredAssessmentSchema.from_record(record.assessment) if record.assessment else None,
        )


class SessionTransactionsResponse(BaseModel):
    """Response for GET /v1/sessions/{session_id}/transactions"""

    session_id: str
    transactions: List[SessionTransactionSchema]


class ReviewRequest(BaseModel):
    """Request body for PATCH /v1/transactions/{transaction_id}/review"""

    reviewed: Optional[bool] = None
    review_notes: Optional[str] = None
