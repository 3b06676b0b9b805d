"""Error taxonomy and tagged outcomes for the visualization pipeline.

Components raise ``PipelineError`` subclasses internally. Every public operation
catches them at its boundary and hands back an ``Outcome`` instead, so callers
branch on ``outcome.ok`` / ``outcome.error.category`` and never on exceptions.
"""

from __future__ import annotations

import functools
import traceback
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from api.utils.debug import print__pipeline_debug


class ErrorCategory(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    ADMISSION_DENIED = "admission_denied"
    GENERATION_CONTRACT_VIOLATION = "generation_contract_violation"
    NODE_NOT_FOUND = "node_not_found"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    NOT_VISUALIZABLE = "not_visualizable"


# ==============================================================================
# EXCEPTIONS
# ==============================================================================
class PipelineError(Exception):
    """Base class for every failure the pipeline knows how to report."""

    category: ErrorCategory = ErrorCategory.UPSTREAM_UNAVAILABLE
    user_message: str = "The operation could not be completed. Please try again."

    def __init__(self, detail: str = "", user_message: Optional[str] = None):
        super().__init__(detail or self.user_message)
        self.detail = detail or self.user_message
        if user_message is not None:
            self.user_message = user_message

    @property
    def retryable(self) -> bool:
        return self.category in (
            ErrorCategory.GENERATION_CONTRACT_VIOLATION,
            ErrorCategory.UPSTREAM_UNAVAILABLE,
        )

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "message": self.user_message,
            "retryable": self.retryable,
        }


class Unauthenticated(PipelineError):
    category = ErrorCategory.UNAUTHENTICATED
    user_message = "Authentication required"


class AdmissionDenied(PipelineError):
    """Insufficient token balance, rate limit hit, or accounting unavailable."""

    category = ErrorCategory.ADMISSION_DENIED
    user_message = "Rate limit exceeded"

    def __init__(
        self,
        detail: str = "",
        reason: str = "rate_limited",
        remaining: int = 0,
        reset_at: Optional[datetime] = None,
        user_message: Optional[str] = None,
    ):
        super().__init__(detail, user_message)
        self.reason = reason
        self.remaining = remaining
        self.reset_at = reset_at

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(
            {
                "reason": self.reason,
                "remaining": self.remaining,
                "reset_at": self.reset_at.isoformat() if self.reset_at else None,
            }
        )
        return data


class GenerationContractViolation(PipelineError):
    category = ErrorCategory.GENERATION_CONTRACT_VIOLATION
    user_message = (
        "The visualization could not be generated. It is safe to try again."
    )


class SchemaViolation(GenerationContractViolation):
    """Raised by the response schema validator; a contract violation by definition."""


class NodeNotFound(PipelineError):
    category = ErrorCategory.NODE_NOT_FOUND
    user_message = (
        "Node not found. It no longer exists in this visualization; "
        "reload the document and try again."
    )

    def __init__(self, node_id: str):
        super().__init__(f"node '{node_id}' not present in payload")
        self.node_id = node_id


class UpstreamUnavailable(PipelineError):
    category = ErrorCategory.UPSTREAM_UNAVAILABLE
    user_message = (
        "A required service is temporarily unavailable. Please try again later."
    )


class InputValidationError(PipelineError):
    category = ErrorCategory.VALIDATION_ERROR
    user_message = "Invalid input"

    def __init__(self, detail: str):
        # Input errors describe the caller's own data, so the detail is safe to echo.
        super().__init__(detail, user_message=f"Invalid input: {detail}")


class DocumentNotFound(PipelineError):
    category = ErrorCategory.NOT_FOUND
    user_message = "Visualization not found"


class NotVisualizable(PipelineError):
    category = ErrorCategory.NOT_VISUALIZABLE
    user_message = "This content is not suitable for visualization"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["reason"] = self.reason
        return data


# ==============================================================================
# OUTCOME
# ==============================================================================
@dataclass
class Outcome:
    """Tagged success/failure result returned across every component boundary.

    ``value`` may also be set on a failure when the caller needs the untouched
    input back (e.g. the original payload after ``NodeNotFound``).
    """

    ok: bool
    value: Any = None
    error: Optional[PipelineError] = None

    @classmethod
    def success(cls, value: Any = None) -> "Outcome":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: PipelineError, value: Any = None) -> "Outcome":
        return cls(ok=False, value=value, error=error)

    @property
    def category(self) -> Optional[ErrorCategory]:
        return self.error.category if self.error else None


def returns_outcome(func):
    """Wrap an async function that raises PipelineError so it returns an Outcome.

    A function that already returns an Outcome has it passed through unchanged.
    Anything unexpected is logged with its traceback and reported as
    ``UpstreamUnavailable``; nothing escapes the wrapped boundary.
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            result = await func(*args, **kwargs)
            if isinstance(result, Outcome):
                return result
            return Outcome.success(result)
        except PipelineError as exc:
            print__pipeline_debug(
                f"🚫 {func.__name__}: {exc.category.value}: {exc.detail}"
            )
            return Outcome.failure(exc)
        except Exception as exc:  # pylint: disable=broad-except
            print__pipeline_debug(
                f"💥 {func.__name__}: unexpected {type(exc).__name__}: {exc}\n"
                f"{traceback.format_exc()}"
            )
            return Outcome.failure(
                UpstreamUnavailable(f"unexpected {type(exc).__name__} in {func.__name__}")
            )

    return wrapper
