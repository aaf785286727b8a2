"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class AuthError(DomainException):
    """Caller identity is missing or invalid"""

    pass


class RateLimitError(DomainException):
    """Caller exceeded the request ceiling for the current window"""

    def __init__(self, retry_after: int):
        super().__init__(f"Rate limit exceeded, retry after {retry_after}s")
        self.retry_after = retry_after


class ValidationError(DomainException):
    """Request is incomplete; the message is safe to return to the caller"""

    pass


class SessionNotFoundError(ValidationError):
    """Session does not exist or belongs to another caller"""

    def __init__(self, message: str = "Session not found or access denied"):
        super().__init__(message)


class UpstreamNarrativeError(DomainException):
    """Narrative generator failed, timed out, or returned unusable content"""

    pass


class NarrativeRateLimitError(UpstreamNarrativeError):
    """Narrative generator rejected the call with a rate-limit response"""

    pass


class NarrativeQuotaError(UpstreamNarrativeError):
    """Narrative generator credits/quota are exhausted"""

    pass
