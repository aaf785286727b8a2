"""Assessed transactions of a session and the reviewer workflow"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from audit_gateway.api.v1.schemas import (
    ReviewRequest,
    SessionTransactionsResponse,
    SessionTransactionSchema,
    StoredAssessmentSchema,
)
from audit_gateway.api.dependencies import get_caller_id
from audit_gateway.domain.models import RiskLevel
from audit_gateway.infrastructure.database.session import get_db
from audit_gateway.infrastructure.database.repositories import (
    AnalysisSessionRepository,
    AssessmentRepository,
    TransactionRepository,
)

router = APIRouter()


@router.get("/sessions/{session_id}/transactions", response_model=SessionTransactionsResponse)
def list_session_transactions(
    session_id: str,
    risk_level: Optional[RiskLevel] = None,
    caller_id: str = Depends(get_caller_id),
    db: Session = Depends(get_db),
):
    """Stored transactions in upload order, each with its assessment (if analyzed)"""
    if not AnalysisSessionRepository(db).get_owned_session(session_id, caller_id):
        raise HTTPException(status_code=404, detail="Session not found or access denied")

    records = TransactionRepository(db).get_with_assessments(
        session_id, risk_level.value if risk_level else None
    )

    return SessionTransactionsResponse(
        session_id=session_id,
        transactions=[SessionTransactionSchema.from_record(r) for r in records],
    )


@router.patch("/transactions/{transaction_id}/review", response_model=StoredAssessmentSchema)
def review_transaction(
    transaction_id: str,
    request_body: ReviewRequest,
    caller_id: str = Depends(get_caller_id),
    db: Session = Depends(get_db),
):
    """
    Mark an assessed transaction as reviewed (or not) and save reviewer notes.

    Only the rule engine writes risk fields; this endpoint touches the
    reviewer fields alone.
    """
    txn = TransactionRepository(db).get_owned_transaction(transaction_id, caller_id)
    if not txn:
        raise HTTPException(status_code=404, detail="Transaction not found or access denied")
    if txn.assessment is None:
        raise HTTPException(status_code=409, detail="Transaction has not been analyzed yet")

    record = AssessmentRepository(db).update_review(
        txn.assessment,
        reviewer_id=caller_id,
        reviewed=request_body.reviewed,
        review_notes=request_body.review_notes,
    )
    db.commit()
    db.refresh(record)

    return StoredAssessmentSchema.from_record(record)
