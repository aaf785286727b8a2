"""/v1/sessions - register, inspect and delete uploaded batches"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from audit_gateway.api.v1.schemas import (
    CreateSessionRequest,
    CreateSessionResponse,
    SessionResponse,
    StoredTransaction,
)
from audit_gateway.api.dependencies import get_caller_id
from audit_gateway.infrastructure.database.session import get_db
from audit_gateway.infrastructure.database.repositories import AnalysisSessionRepository, TransactionRepository

router = APIRouter()


@router.post("/sessions", response_model=CreateSessionResponse, status_code=201)
def create_session(
    request_body: CreateSessionRequest,
    caller_id: str = Depends(get_caller_id),
    db: Session = Depends(get_db),
):
    """
    Store an ingested batch so it can be analyzed and reported on.

    Returns:
        Session id plus the stored transactions with the ids /v1/analyze expects
    """
    if not request_body.transactions:
        raise HTTPException(status_code=400, detail="No transactions provided")

    db_session = AnalysisSessionRepository(db).create_session(
        user_id=caller_id,
        file_name=request_body.file_name,
        total_transactions=len(request_body.transactions),
    )
    records = TransactionRepository(db).add_transactions(
        db_session.id, [t.model_dump() for t in request_body.transactions]
    )
    db.commit()

    return CreateSessionResponse(
        session_id=db_session.id,
        status=db_session.status,
        transactions=[
            StoredTransaction(
                id=r.id,
                transaction_id=r.transaction_id,
                transaction_date=r.transaction_date,
                amount=r.amount,
                vendor_name=r.vendor_name,
                vendor_country=r.vendor_country,
                payment_method=r.payment_method,
                department=r.department,
                description=r.description or "",
            )
            for r in records
        ],
    )


@router.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(
    session_id: str,
    caller_id: str = Depends(get_caller_id),
    db: Session = Depends(get_db),
):
    """Session status and tier counts"""
    db_session = AnalysisSessionRepository(db).get_owned_session(session_id, caller_id)
    if not db_session:
        raise HTTPException(status_code=404, detail="Session not found or access denied")

    return SessionResponse(
        session_id=db_session.id,
        file_name=db_session.file_name,
        status=db_session.status,
        total_transactions=db_session.total_transactions,
        high_risk_count=db_session.high_risk_count,
        medium_risk_count=db_session.medium_risk_count,
        low_risk_count=db_session.low_risk_count,
        created_at=db_session.created_at.isoformat(),
        completed_at=db_session.completed_at.isoformat() if db_session.completed_at else None,
    )


@router.delete("/sessions/{session_id}", status_code=204)
def delete_session(
    session_id: str,
    caller_id: str = Depends(get_caller_id),
    db: Session = Depends(get_db),
):
    """Delete a session together with its transactions, assessments and reports"""
    repo = AnalysisSessionRepository(db)
    db_session = repo.get_owned_session(session_id, caller_id)
    if not db_session:
        raise HTTPException(status_code=404, detail="Session not found or access denied")

    repo.delete_session(db_session)
    db.commit()
