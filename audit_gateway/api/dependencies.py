"""Dependency injection for FastAPI endpoints"""

import jwt
from fastapi import Header, HTTPException, Request
from audit_gateway.config import settings
from audit_gateway.domain.exceptions import AuthError, RateLimitError
from audit_gateway.domain.narrative import NarrativeGenerator
from audit_gateway.domain.rate_limit import FixedWindowRateLimiter
from audit_gateway.infrastructure.clients.narrative import NarrativeClient
from audit_gateway.infrastructure.observability.metrics import rate_limited_counter

# One limiter per entry point, independent windows. Process-local: counters
# reset on restart and are not shared between workers.
analysis_limiter = FixedWindowRateLimiter(
    max_requests=settings.analysis_rate_limit,
    window_seconds=settings.analysis_rate_window_seconds,
)
report_limiter = FixedWindowRateLimiter(
    max_requests=settings.report_rate_limit,
    window_seconds=settings.report_rate_window_seconds,
)


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def resolve_caller_id(authorization: str | None) -> str:
    """
    Caller id (JWT `sub` claim) from a bearer credential.

    The signature is verified against the configured secret. Only the
    subject is returned, never the token.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("Unauthorized: Missing or invalid authorization header")
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise AuthError("Unauthorized: Invalid token")

    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options={"require": ["sub"], "verify_aud": settings.jwt_audience is not None},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Unauthorized: Token expired")
    except jwt.InvalidTokenError:
        raise AuthError("Unauthorized: Invalid token")

    caller_id = str(claims["sub"]).strip()
    if not caller_id:
        raise AuthError("Unauthorized: Invalid token")
    return caller_id


def get_caller_id(authorization: str | None = Header(default=None)) -> str:
    try:
        return resolve_caller_id(authorization)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=str(e))


def get_analysis_limiter() -> FixedWindowRateLimiter:
    return analysis_limiter


def get_report_limiter() -> FixedWindowRateLimiter:
    return report_limiter


def get_narrative_generator() -> NarrativeGenerator:
    """Provide narrative generator client instance"""
    return NarrativeClient()


def enforce_rate_limit(limiter: FixedWindowRateLimiter, caller_id: str, endpoint: str) -> None:
    """Raises RateLimitError when the caller's window is exhausted"""
    decision = limiter.check(caller_id)
    if not decision.allowed:
        rate_limited_counter.labels(endpoint=endpoint).inc()
        raise RateLimitError(decision.retry_after)


def rate_limit_exception(error: RateLimitError) -> HTTPException:
    return HTTPException(
        status_code=429,
        detail="Rate limit exceeded. Please try again later.",
        headers={"Retry-After": str(error.retry_after)},
    )
