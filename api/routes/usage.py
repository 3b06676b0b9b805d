"""Token usage for the authenticated caller."""

from typing import Optional

from fastapi import APIRouter, Depends

from api.dependencies.auth import get_optional_user_id
from api.dependencies.pipeline import get_pipeline
from api.models.responses import ErrorResponse, UsageResponse
from api.utils.errors import outcome_error_response

router = APIRouter()


@router.get(
    "/usage",
    summary="Current token balance",
    description="Tokens used and remaining this period, the tier, and the next reset date.",
    response_model=UsageResponse,
    responses={401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def get_usage(
    user_id: Optional[str] = Depends(get_optional_user_id),
    pipeline=Depends(get_pipeline),
):
    outcome = await pipeline.get_usage(user_id)
    if not outcome.ok:
        return outcome_error_response(outcome)
    return UsageResponse(**outcome.value)
