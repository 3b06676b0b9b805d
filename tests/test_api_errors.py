"""
Outcome-to-HTTP mapping: status codes, sanitized messages and error bodies.
"""

import os
import sys

if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

try:
    from pathlib import Path

    BASE_DIR = Path(__file__).resolve().parents[1]
except NameError:
    BASE_DIR = Path(os.getcwd()).parents[0]

sys.path.insert(0, str(BASE_DIR))

import json
from datetime import datetime, timezone

import pytest

from api.utils.errors import (
    GENERIC_ERROR_MESSAGE,
    category_to_status,
    error_body,
    outcome_error_response,
    sanitize_error,
)
from viz_agent.utils.errors import (
    AdmissionDenied,
    DocumentNotFound,
    GenerationContractViolation,
    InputValidationError,
    NodeNotFound,
    NotVisualizable,
    Outcome,
    Unauthenticated,
    UpstreamUnavailable,
)


def test_sanitize_error_echoes_only_allow_listed_messages():
    assert sanitize_error("Rate limit exceeded. Try later.") == "Rate limit exceeded. Try later."
    assert sanitize_error("psycopg.OperationalError: host db-01") == GENERIC_ERROR_MESSAGE
    assert sanitize_error(None, fallback="Invalid input") == "Invalid input"


@pytest.mark.parametrize(
    "error,status",
    [
        (Unauthenticated(), 401),
        (AdmissionDenied(reason="insufficient_tokens"), 402),
        (AdmissionDenied(reason="document_limit"), 402),
        (AdmissionDenied(reason="rate_limited"), 429),
        (AdmissionDenied(reason="accounting_unavailable"), 503),
        (AdmissionDenied(reason="rate_limit_unavailable"), 503),
        (GenerationContractViolation("bad json"), 422),
        (NodeNotFound("n9"), 409),
        (UpstreamUnavailable("timeout"), 503),
        (InputValidationError("input must be a non-empty string"), 400),
        (DocumentNotFound("doc1"), 404),
        (NotVisualizable("a greeting"), 422),
    ],
)
def test_category_to_status(error, status):
    assert category_to_status(error) == status


def test_internal_detail_never_reaches_the_body():
    body = error_body(UpstreamUnavailable("redis at 10.0.0.5:6379 refused connection"))

    assert "10.0.0.5" not in json.dumps(body)
    assert body["category"] == "upstream_unavailable"
    assert body["retryable"] is True


def test_input_validation_message_is_echoed():
    body = error_body(InputValidationError("title exceeds 200 characters"))

    assert body["detail"] == "Invalid input: title exceeds 200 characters"
    assert body["retryable"] is False


def test_admission_body_carries_reason_remaining_and_reset():
    reset = datetime(2026, 2, 1, tzinfo=timezone.utc)
    error = AdmissionDenied(
        "insufficient token balance",
        reason="insufficient_tokens",
        remaining=5,
        reset_at=reset,
        user_message="Insufficient tokens. You need 10 tokens but only have 5 remaining.",
    )

    body = error_body(error)

    assert body["reason"] == "insufficient_tokens"
    assert body["remaining"] == 5
    assert body["reset_at"] == reset.isoformat()
    assert body["detail"].startswith("Insufficient tokens")


def test_accounting_unavailable_uses_generic_message():
    body = error_body(
        AdmissionDenied(
            "account store unconfigured",
            reason="accounting_unavailable",
            user_message="Usage accounting is temporarily unavailable. Please try again later.",
        )
    )

    assert body["detail"] == GENERIC_ERROR_MESSAGE
    assert body["reset_at"] is None


def test_outcome_error_response_includes_visualization():
    response = outcome_error_response(
        Outcome.failure(NodeNotFound("n9")), visualization={"id": "doc1"}
    )

    body = json.loads(response.body)
    assert response.status_code == 409
    assert body["visualization"] == {"id": "doc1"}
    assert body["detail"].startswith("Node not found")
