"""POST /v1/generate-report - audit report generation endpoint"""

import time
import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from audit_gateway.api.v1.schemas import ReportRequest, ReportResponse, ReportSchema
from audit_gateway.api.dependencies import (
    enforce_rate_limit,
    get_caller_id,
    get_narrative_generator,
    get_report_limiter,
    get_request_id,
    rate_limit_exception,
)
from audit_gateway.config import settings
from audit_gateway.infrastructure.database.session import get_db
from audit_gateway.infrastructure.database.repositories import (
    AnalysisSessionRepository,
    AssessmentRepository,
    ReportRepository,
    TransactionRepository,
    to_domain_assessment,
    to_domain_session,
    to_domain_transaction,
)
from audit_gateway.domain.exceptions import (
    NarrativeQuotaError,
    NarrativeRateLimitError,
    RateLimitError,
    SessionNotFoundError,
    UpstreamNarrativeError,
    ValidationError,
)
from audit_gateway.domain.narrative import NarrativeGenerator
from audit_gateway.domain.rate_limit import FixedWindowRateLimiter
from audit_gateway.domain.reporting import aggregate, compose_report, statistics_snapshot
from audit_gateway.infrastructure.observability.metrics import report_counter
from audit_gateway.infrastructure.observability.logging import log_report

router = APIRouter()


@router.post("/generate-report", response_model=ReportResponse)
async def generate_report(
    request_body: ReportRequest,
    request: Request,
    caller_id: str = Depends(get_caller_id),
    db: Session = Depends(get_db),
    generator: NarrativeGenerator = Depends(get_narrative_generator),
    limiter: FixedWindowRateLimiter = Depends(get_report_limiter),
):
    """
    Aggregate a completed session and persist an AI-written audit report.

    No narrative, no report: any generator failure aborts without writing.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        enforce_rate_limit(limiter, caller_id, "generate_report")

        if not request_body.session_id:
            raise ValidationError("Session ID is required")

        db_session = AnalysisSessionRepository(db).get_owned_session(request_body.session_id, caller_id)
        if db_session is None:
            raise SessionNotFoundError()

        # 1. Load the classified batch
        txn_records = TransactionRepository(db).get_by_session(db_session.id)
        assessment_records = AssessmentRepository(db).get_for_transactions([r.id for r in txn_records])

        # 2. Statistics
        session = to_domain_session(db_session)
        stats = aggregate(
            session,
            [to_domain_transaction(r) for r in txn_records],
            [to_domain_assessment(r) for r in assessment_records],
        )

        # 3. Narrative
        narrative = await compose_report(stats, generator, settings.report_temperature)

        # 4. Persist
        db_report = ReportRepository(db).create_report(session, narrative, statistics_snapshot(stats))
        db.commit()

        report_counter.inc()
        duration_ms = (time.time() - start_time) * 1000
        log_report(request_id, caller_id, session.id, str(db_report.id), duration_ms)

        return ReportResponse(report=ReportSchema.from_record(db_report), success=True)

    except RateLimitError as e:
        raise rate_limit_exception(e)

    except NarrativeRateLimitError as e:
        db.rollback()
        logging.warning(f"Narrative rate limited: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=429, detail="Narrative rate limit exceeded. Please try again in a moment.")

    except NarrativeQuotaError as e:
        db.rollback()
        logging.warning(f"Narrative quota exhausted: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=402, detail="Narrative credits exhausted. Please add credits to continue.")

    except UpstreamNarrativeError as e:
        db.rollback()
        logging.error(f"Narrative generation failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Narrative service unavailable. Please try again.")

    except SessionNotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    except ValidationError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Report generation failed. Please try again.")
