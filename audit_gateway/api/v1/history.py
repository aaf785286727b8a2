"""GET /v1/sessions/{session_id}/reports - Fetch a session's report history"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from audit_gateway.api.v1.schemas import ReportHistoryResponse, ReportSchema
from audit_gateway.api.dependencies import get_caller_id
from audit_gateway.infrastructure.database.session import get_db
from audit_gateway.infrastructure.database.repositories import AnalysisSessionRepository, ReportRepository

router = APIRouter()


@router.get("/sessions/{session_id}/reports", response_model=ReportHistoryResponse)
def get_report_history(
    session_id: str,
    caller_id: str = Depends(get_caller_id),
    db: Session = Depends(get_db),
):
    """
    Retrieve reports generated for a session, newest first.

    Reports are immutable; each regeneration adds an entry.
    """
    if not AnalysisSessionRepository(db).get_owned_session(session_id, caller_id):
        raise HTTPException(status_code=404, detail="Session not found or access denied")

    reports = ReportRepository(db).get_reports_by_session(session_id, limit=20)

    return ReportHistoryResponse(
        session_id=session_id,
        reports=[ReportSchema.from_record(r) for r in reports],
    )
