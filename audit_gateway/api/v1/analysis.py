"""POST /v1/analyze - transaction risk classification endpoint"""

import time
import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from audit_gateway.api.v1.schemas import AnalyzeRequest, AnalyzeResponse, AssessmentSchema
from audit_gateway.api.dependencies import (
    enforce_rate_limit,
    get_analysis_limiter,
    get_caller_id,
    get_narrative_generator,
    get_request_id,
    rate_limit_exception,
)
from audit_gateway.config import settings
from audit_gateway.infrastructure.database.session import get_db
from audit_gateway.infrastructure.database.repositories import (
    AnalysisSessionRepository,
    AssessmentRepository,
    TransactionRepository,
    to_domain_transaction,
)
from audit_gateway.domain.exceptions import (
    NarrativeQuotaError,
    NarrativeRateLimitError,
    RateLimitError,
    SessionNotFoundError,
    ValidationError,
)
from audit_gateway.domain.narrative import NarrativeGenerator, augment_assessments
from audit_gateway.domain.rate_limit import FixedWindowRateLimiter
from audit_gateway.domain.scoring import assess_batch
from audit_gateway.infrastructure.observability.metrics import record_assessments
from audit_gateway.infrastructure.observability.logging import log_analysis

router = APIRouter()


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_transactions(
    request_body: AnalyzeRequest,
    request: Request,
    caller_id: str = Depends(get_caller_id),
    db: Session = Depends(get_db),
    generator: NarrativeGenerator = Depends(get_narrative_generator),
    limiter: FixedWindowRateLimiter = Depends(get_analysis_limiter),
):
    """
    Classify a batch of transactions and attach advisory narrative.

    Flow:
    1. Throttle per caller
    2. Group duplicates over the whole batch (the stored batch when a session is named),
       then run the rule chain per transaction
    3. Ask the narrative generator to explain flagged transactions (best effort)
    4. Persist assessments and counts when the batch belongs to a stored session
    5. Return assessments; upstream rate-limit/quota errors still carry them
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        enforce_rate_limit(limiter, caller_id, "analyze")

        if not request_body.transactions:
            raise ValidationError("No transactions provided")

        transactions = [t.to_domain() for t in request_body.transactions]
        db_session = None
        if request_body.session_id:
            db_session = AnalysisSessionRepository(db).get_owned_session(request_body.session_id, caller_id)
            if db_session is None:
                raise SessionNotFoundError()

            # Rules always see the whole stored batch, even for a partial body
            stored = [to_domain_transaction(r) for r in TransactionRepository(db).get_by_session(db_session.id)]
            stored_ids = {t.id for t in stored}
            if any(t.id not in stored_ids for t in transactions):
                raise ValidationError("Transactions do not belong to this session")
            transactions = stored

        # 1. Deterministic classification
        assessments = assess_batch(transactions)
        record_assessments(a.risk_level.value for a in assessments)

        # 2. Advisory narrative for flagged transactions
        flagged = sum(1 for a in assessments if a.is_flagged)
        narrative_error = None
        try:
            await augment_assessments(assessments, transactions, generator, settings.explanation_temperature)
        except (NarrativeRateLimitError, NarrativeQuotaError) as e:
            narrative_error = e

        # 3. Persist against the stored session
        if db_session is not None:
            AssessmentRepository(db).replace_assessments(assessments)
            AnalysisSessionRepository(db).mark_completed(db_session, (a.risk_level.value for a in assessments))

        db.commit()

        duration_ms = (time.time() - start_time) * 1000
        if narrative_error is None:
            narrative_status = "ok" if flagged else "skipped"
        else:
            narrative_status = type(narrative_error).__name__
        log_analysis(
            request_id, caller_id, request_body.session_id, len(assessments), flagged, narrative_status, duration_ms
        )

        response = AnalyzeResponse(assessments=[AssessmentSchema.from_domain(a) for a in assessments])

        if isinstance(narrative_error, NarrativeRateLimitError):
            return JSONResponse(
                status_code=429,
                content={
                    "detail": "Narrative rate limit exceeded. Please try again in a moment.",
                    **jsonable_encoder(response),
                },
            )
        if isinstance(narrative_error, NarrativeQuotaError):
            return JSONResponse(
                status_code=402,
                content={
                    "detail": "Narrative credits exhausted. Please add credits to continue.",
                    **jsonable_encoder(response),
                },
            )

        return response

    except RateLimitError as e:
        raise rate_limit_exception(e)

    except SessionNotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    except ValidationError as e:
        db.rollback()
        logging.warning(f"Invalid analysis request: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=400, detail=str(e))

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Analysis failed. Please try again.")
