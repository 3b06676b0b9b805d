"""Turn pipeline outcomes into HTTP responses without leaking internal detail."""

from typing import Optional

from fastapi.responses import JSONResponse

from api.utils.debug import print__api_debug
from viz_agent.utils.errors import AdmissionDenied, ErrorCategory, Outcome, PipelineError

# Only messages containing one of these phrases are echoed back verbatim
SAFE_ERROR_PHRASES = (
    "Authentication required",
    "Rate limit exceeded",
    "Visualization not found",
    "Invalid input",
    "Permission denied",
    "Insufficient tokens",
    "Node not found",
)

GENERIC_ERROR_MESSAGE = "The operation could not be completed. Please try again."

CATEGORY_STATUS = {
    ErrorCategory.UNAUTHENTICATED: 401,
    ErrorCategory.ADMISSION_DENIED: 429,
    ErrorCategory.GENERATION_CONTRACT_VIOLATION: 422,
    ErrorCategory.NODE_NOT_FOUND: 409,
    ErrorCategory.UPSTREAM_UNAVAILABLE: 503,
    ErrorCategory.VALIDATION_ERROR: 400,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.NOT_VISUALIZABLE: 422,
}

ADMISSION_REASON_STATUS = {
    "insufficient_tokens": 402,
    "document_limit": 402,
    "rate_limited": 429,
    "accounting_unavailable": 503,
    "rate_limit_unavailable": 503,
}

# Categories whose own user message is written for the caller
SELF_DESCRIBING_CATEGORIES = (
    ErrorCategory.GENERATION_CONTRACT_VIOLATION,
    ErrorCategory.UPSTREAM_UNAVAILABLE,
    ErrorCategory.NOT_VISUALIZABLE,
)


def sanitize_error(message: Optional[str], fallback: str = GENERIC_ERROR_MESSAGE) -> str:
    """Echo ``message`` only when it contains an allow-listed phrase."""
    if message and any(phrase in message for phrase in SAFE_ERROR_PHRASES):
        return message
    return fallback


def category_to_status(error: PipelineError) -> int:
    if isinstance(error, AdmissionDenied):
        return ADMISSION_REASON_STATUS.get(error.reason, 429)
    return CATEGORY_STATUS.get(error.category, 500)


def public_message(error: PipelineError) -> str:
    if error.category in SELF_DESCRIBING_CATEGORIES:
        return error.user_message
    return sanitize_error(error.user_message)


def error_body(error: PipelineError) -> dict:
    body = {
        "detail": public_message(error),
        "category": error.category.value,
        "retryable": error.retryable,
    }
    if isinstance(error, AdmissionDenied):
        body["reason"] = error.reason
        body["remaining"] = error.remaining
        body["reset_at"] = error.reset_at.isoformat() if error.reset_at else None
    return body


def outcome_error_response(outcome: Outcome, visualization: Optional[dict] = None) -> JSONResponse:
    """JSON error response for a failed outcome; the internal detail is only logged."""
    error = outcome.error
    status_code = category_to_status(error)
    print__api_debug(f"🚨 HTTP {status_code}: {error.category.value}: {error.detail}")
    body = error_body(error)
    if visualization is not None:
        body["visualization"] = visualization
    return JSONResponse(status_code=status_code, content=body)
