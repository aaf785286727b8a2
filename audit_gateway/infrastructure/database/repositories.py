"""Data access layer for sessions, transactions, assessments and reports"""

from collections import Counter
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy.orm import Session, contains_eager

from audit_gateway.infrastructure.database.models import (
    AnalysisSessionRecord,
    AuditReportRecord,
    RiskAssessmentRecord,
    TransactionRecord,
)
from audit_gateway.domain.models import (
    AnalysisSession,
    ReportNarrative,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
    Severity,
    Transaction,
)


def to_domain_transaction(record: TransactionRecord) -> Transaction:
    return Transaction(
        id=record.id,
        transaction_id=record.transaction_id,
        transaction_date=record.transaction_date,
        amount=Decimal(record.amount),
        vendor_name=record.vendor_name,
        vendor_country=record.vendor_country,
        payment_method=record.payment_method,
        department=record.department,
        description=record.description or "",
    )


def to_domain_assessment(record: RiskAssessmentRecord) -> RiskAssessment:
    factors = [
        RiskFactor(
            type=f.get("type") or "unknown",
            description=f.get("description", ""),
            severity=Severity(f.get("severity", Severity.MEDIUM.value)),
        )
        for f in (record.risk_factors or [])
        if isinstance(f, dict)
    ]
    return RiskAssessment(
        transaction_id=record.transaction_id,
        risk_level=RiskLevel(record.risk_level),
        risk_score=record.risk_score,
        risk_factors=factors,
        risk_reason=record.risk_reason or "",
        audit_observation=record.audit_observation,
        risk_reason_detail=record.risk_reason_detail,
        suggested_action=record.suggested_action,
    )


def to_domain_session(record: AnalysisSessionRecord) -> AnalysisSession:
    return AnalysisSession(
        id=record.id,
        user_id=record.user_id,
        file_name=record.file_name,
        created_at=record.created_at,
        status=record.status,
    )


class AnalysisSessionRepository:
    """Repository for analysis sessions"""

    def __init__(self, db: Session):
        self.db = db

    def create_session(self, user_id: str, file_name: str, total_transactions: int) -> AnalysisSessionRecord:
        db_session = AnalysisSessionRecord(
            user_id=user_id,
            file_name=file_name,
            total_transactions=total_transactions,
            status="processing",
        )
        self.db.add(db_session)
        self.db.flush()  # Get ID without committing
        return db_session

    def get_owned_session(self, session_id: str, user_id: str) -> Optional[AnalysisSessionRecord]:
        """Fetch a session only if it belongs to `user_id`"""
        return (
            self.db.query(AnalysisSessionRecord)
            .filter(AnalysisSessionRecord.id == session_id, AnalysisSessionRecord.user_id == user_id)
            .first()
        )

    def mark_completed(self, db_session: AnalysisSessionRecord, risk_levels: Iterable[str]) -> None:
        """Store tier counts and close the session"""
        counts = Counter(risk_levels)
        db_session.high_risk_count = counts.get(RiskLevel.HIGH.value, 0)
        db_session.medium_risk_count = counts.get(RiskLevel.MEDIUM.value, 0)
        db_session.low_risk_count = counts.get(RiskLevel.LOW.value, 0)
        db_session.status = "completed"
        db_session.completed_at = datetime.now(timezone.utc)

    def delete_session(self, db_session: AnalysisSessionRecord) -> None:
        """Delete a session with its transactions, assessments and reports"""
        self.db.delete(db_session)


class TransactionRepository:
    """Repository for ingested transactions"""

    def __init__(self, db: Session):
        self.db = db

    def add_transactions(self, session_id: str, transactions: List[Dict[str, Any]]) -> List[TransactionRecord]:
        records = [
            TransactionRecord(session_id=session_id, position=position, **txn)
            for position, txn in enumerate(transactions)
        ]
        self.db.add_all(records)
        self.db.flush()
        return records

    def get_by_session(self, session_id: str) -> List[TransactionRecord]:
        """Transactions in upload order"""
        return (
            self.db.query(TransactionRecord)
            .filter(TransactionRecord.session_id == session_id)
            .order_by(TransactionRecord.position)
            .all()
        )

    def get_with_assessments(self, session_id: str, risk_level: Optional[str] = None) -> List[TransactionRecord]:
        """Transactions in upload order with their assessment loaded, optionally one tier only"""
        query = (
            self.db.query(TransactionRecord)
            .outerjoin(TransactionRecord.assessment)
            .options(contains_eager(TransactionRecord.assessment))
            .filter(TransactionRecord.session_id == session_id)
        )
        if risk_level is not None:
            query = query.filter(RiskAssessmentRecord.risk_level == risk_level)
        return query.order_by(TransactionRecord.position).all()

    def get_owned_transaction(self, transaction_id: str, user_id: str) -> Optional[TransactionRecord]:
        """Fetch a transaction only if its session belongs to `user_id`"""
        return (
            self.db.query(TransactionRecord)
            .join(TransactionRecord.session)
            .filter(TransactionRecord.id == transaction_id, AnalysisSessionRecord.user_id == user_id)
            .first()
        )


class AssessmentRepository:
    """Repository for risk assessments"""

    def __init__(self, db: Session):
        self.db = db

    def replace_assessments(self, assessments: List[RiskAssessment]) -> None:
        """
        Persist assessments, replacing the rule and advisory fields of any
        earlier result for the same transaction so each transaction keeps
        exactly one. Reviewer fields survive re-analysis.
        """
        existing = {r.transaction_id: r for r in self.get_for_transactions([a.transaction_id for a in assessments])}

        for assessment in assessments:
            record = existing.get(assessment.transaction_id)
            if record is None:
                record = RiskAssessmentRecord(transaction_id=assessment.transaction_id)
                self.db.add(record)
            record.risk_score = assessment.risk_score
            record.risk_level = assessment.risk_level.value
            record.risk_factors = [
                {"type": f.type, "description": f.description, "severity": f.severity.value}
                for f in assessment.risk_factors
            ]
            record.risk_reason = assessment.risk_reason
            record.audit_observation = assessment.audit_observation
            record.risk_reason_detail = assessment.risk_reason_detail
            record.suggested_action = assessment.suggested_action
        self.db.flush()

    def update_review(
        self,
        record: RiskAssessmentRecord,
        reviewer_id: str,
        reviewed: Optional[bool] = None,
        review_notes: Optional[str] = None,
    ) -> RiskAssessmentRecord:
        """
        Mark or unmark an assessment as reviewed and/or save notes.

        Unmarking clears reviewer and timestamp; notes are kept unless
        new ones are given.
        """
        if reviewed is not None:
            record.reviewed = reviewed
            record.reviewed_at = datetime.now(timezone.utc) if reviewed else None
            record.reviewed_by = reviewer_id if reviewed else None
        if review_notes is not None:
            record.review_notes = review_notes
        self.db.flush()
        return record

    def get_for_transactions(self, transaction_ids: List[str]) -> List[RiskAssessmentRecord]:
        if not transaction_ids:
            return []
        return (
            self.db.query(RiskAssessmentRecord)
            .filter(RiskAssessmentRecord.transaction_id.in_(transaction_ids))
            .all()
        )


class ReportRepository:
    """Repository for audit reports"""

    def __init__(self, db: Session):
        self.db = db

    def create_report(
        self,
        session: AnalysisSession,
        narrative: ReportNarrative,
        statistics: Dict[str, Any],
    ) -> AuditReportRecord:
        db_report = AuditReportRecord(
            session_id=session.id,
            user_id=session.user_id,
            title=f"Audit Report - {session.file_name}",
            executive_summary=narrative.executive_summary,
            risk_posture=narrative.risk_posture,
            key_risk_themes=narrative.key_risk_themes,
            areas_of_attention=narrative.areas_of_attention,
            statistics=statistics,
        )
        self.db.add(db_report)
        self.db.flush()
        return db_report

    def get_reports_by_session(self, session_id: str, limit: int = 20) -> List[AuditReportRecord]:
        """Fetch recent reports for a session"""
        return (
            self.db.query(AuditReportRecord)
            .filter(AuditReportRecord.session_id == session_id)
            .order_by(AuditReportRecord.created_at.desc())
            .limit(limit)
            .all()
        )
