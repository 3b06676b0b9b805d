"""
MODULE_DESCRIPTION: Visualization Endpoints - Generate, Edit, Expand and Manage Documents

===================================================================================
PURPOSE AND OVERVIEW
===================================================================================

Thin HTTP adapter over ``VisualizationPipeline``. Every handler:

    1. resolves the caller's user id from the bearer token (None when missing),
    2. calls exactly one pipeline operation, which returns an Outcome,
    3. renders the success value with a response model, or turns the failure
       into a sanitized JSON error through api.utils.errors.

Authentication is enforced by the pipeline itself (a None user id becomes an
``unauthenticated`` outcome -> 401), so the ordering of input validation,
authentication and admission is the same for HTTP callers and direct callers.

Endpoints:
    POST   /visualize                        generate a draft from free text
    POST   /visualize/recommendations        rank the formats that fit the input
    POST   /visualizations/edit              chat edit (stored or inline draft)
    POST   /visualizations/expand            expand one node
    POST   /visualizations                   save (create, or overwrite by id)
    GET    /visualizations                   list the caller's documents
    GET    /visualizations/{id}              fetch one document
    DELETE /visualizations/{id}              delete
    POST   /visualizations/{id}/export       JSON or CSV export
    POST   /visualizations/{id}/share        make public, returns share id
    GET    /shared/{share_id}                public read, no authentication
===================================================================================
"""

# CRITICAL: Set Windows event loop policy FIRST, before any other imports
# This must be the very first thing that happens to fix psycopg compatibility
import os
import sys

if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Load environment variables early
from dotenv import load_dotenv

load_dotenv()

# Constants
try:
    from pathlib import Path

    BASE_DIR = Path(__file__).resolve().parents[2]
except NameError:
    BASE_DIR = Path(os.getcwd()).parents[0]

# Standard imports
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from api.dependencies.auth import get_optional_user_id
from api.dependencies.pipeline import get_pipeline
from api.models.requests import (
    EditRequest,
    ExpandRequest,
    ExportRequest,
    RecommendRequest,
    SaveRequest,
    VisualizeRequest,
)
from api.models.responses import (
    DeleteResponse,
    EditResponseBody,
    ErrorResponse,
    ExportResponse,
    FormatRecommendationOut,
    RecommendationsResponse,
    ShareResponse,
    VisualizationListResponse,
    VisualizationResponse,
)
from api.utils.debug import print__api_debug
from api.utils.errors import outcome_error_response

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    401: {"model": ErrorResponse, "description": "Authentication required"},
    402: {"model": ErrorResponse, "description": "Insufficient tokens or document limit"},
    429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    503: {"model": ErrorResponse, "description": "Upstream or accounting unavailable"},
}


def _history_dicts(history):
    if history is None:
        return None
    return [entry.model_dump() for entry in history]


def _visualization(document) -> dict:
    return VisualizationResponse.from_document(document).model_dump(mode="json")


# ==============================================================================
# GENERATION AND MUTATION
# ==============================================================================
@router.post(
    "/visualize",
    summary="Generate a visualization draft",
    description="""
    **Turn free text into a visualization draft.**

    The format selector picks one of network_graph, mind_map, tree_diagram,
    timeline or gantt_chart (skipped when `preferred_kind` is set), then the
    generator produces a schema-valid payload. The draft is not saved.

    Costs 10 tokens, charged only on success.
    """,
    response_model=VisualizationResponse,
    responses={
        **ERROR_RESPONSES,
        422: {"model": ErrorResponse, "description": "Not visualizable or invalid model output"},
    },
)
async def visualize(
    request: VisualizeRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    pipeline=Depends(get_pipeline),
):
    print__api_debug(f"📥 POST /visualize ({len(request.input)} chars)")
    outcome = await pipeline.generate_visualization(
        user_id, request.input, request.preferred_kind
    )
    if not outcome.ok:
        return outcome_error_response(outcome)
    return VisualizationResponse.from_document(outcome.value)


@router.post(
    "/visualize/recommendations",
    summary="Rank the visualization formats that fit the input",
    description="""
    **Score the supported formats against free text and return the best three.**

    Nothing is generated; use the chosen kind as `preferred_kind` on `/visualize`.

    Costs 1 token, charged only on success.
    """,
    response_model=RecommendationsResponse,
    responses={
        **ERROR_RESPONSES,
        422: {"model": ErrorResponse, "description": "Invalid model output"},
    },
)
async def recommend_formats(
    request: RecommendRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    pipeline=Depends(get_pipeline),
):
    outcome = await pipeline.recommend_formats(user_id, request.input)
    if not outcome.ok:
        return outcome_error_response(outcome)
    return RecommendationsResponse(
        recommendations=[
            FormatRecommendationOut(kind=item.kind.value, score=item.score, reason=item.reason)
            for item in outcome.value
        ]
    )


@router.post(
    "/visualizations/edit",
    summary="Apply a chat instruction to a visualization",
    description="""
    **Edit a stored document (`document_id`) or an inline draft (`kind` + `payload`).**

    The reply is always appended to the conversation history. When the model
    only answers a question, `changed` is false and the payload is untouched.
    A failed edit still returns the document with the appended history under
    `visualization` in the error body.

    Costs 8 tokens, charged only on success.
    """,
    response_model=EditResponseBody,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def edit_visualization(
    request: EditRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    pipeline=Depends(get_pipeline),
):
    outcome = await pipeline.edit_visualization(
        user_id,
        request.instruction,
        document_id=request.document_id,
        kind=request.kind,
        payload=request.payload,
        history=_history_dicts(request.history),
    )
    if not outcome.ok:
        failed = outcome.value
        return outcome_error_response(
            outcome, _visualization(failed.document) if failed is not None else None
        )
    result = outcome.value
    return EditResponseBody(
        visualization=VisualizationResponse.from_document(result.document),
        changed=result.changed,
        reply=result.reply,
    )


@router.post(
    "/visualizations/expand",
    summary="Expand one node with generated children",
    description="""
    **Add children under `node_id` of a network graph, mind map or tree diagram.**

    If the node no longer exists the response is 409 and nothing changes;
    reload the document and retry. Each node can be expanded once: expanded ids
    are kept in `metadata.expanded_nodes` (drafts send them back in
    `expanded_nodes`) and a repeat is a 400. Costs 5 tokens, charged only on success.
    """,
    response_model=VisualizationResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def expand_visualization_node(
    request: ExpandRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    pipeline=Depends(get_pipeline),
):
    outcome = await pipeline.expand_visualization_node(
        user_id,
        request.node_id,
        document_id=request.document_id,
        kind=request.kind,
        payload=request.payload,
        original_input=request.original_input,
        expanded_nodes=request.expanded_nodes,
    )
    if not outcome.ok:
        return outcome_error_response(outcome)
    return VisualizationResponse.from_document(outcome.value)


# ==============================================================================
# PERSISTENCE
# ==============================================================================
@router.post(
    "/visualizations",
    summary="Save a visualization",
    status_code=201,
    response_model=VisualizationResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}},
)
async def save_visualization(
    request: SaveRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    pipeline=Depends(get_pipeline),
):
    """Create a document, or overwrite the caller's document when ``document_id`` is set."""
    outcome = await pipeline.save_visualization(
        user_id,
        request.title,
        request.kind,
        request.payload,
        metadata=request.metadata,
        history=_history_dicts(request.history),
        is_public=request.is_public,
        document_id=request.document_id,
    )
    if not outcome.ok:
        return outcome_error_response(outcome)
    return VisualizationResponse.from_document(outcome.value)


@router.get(
    "/visualizations",
    summary="List the caller's visualizations, most recently updated first",
    response_model=VisualizationListResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def list_visualizations(
    limit: int = Query(20, description="Maximum number of documents (1-100)"),
    user_id: Optional[str] = Depends(get_optional_user_id),
    pipeline=Depends(get_pipeline),
):
    outcome = await pipeline.list_visualizations(user_id, limit)
    if not outcome.ok:
        return outcome_error_response(outcome)
    documents = [VisualizationResponse.from_document(doc) for doc in outcome.value]
    return VisualizationListResponse(visualizations=documents, count=len(documents))


@router.get(
    "/visualizations/{document_id}",
    response_model=VisualizationResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_visualization(
    document_id: str,
    user_id: Optional[str] = Depends(get_optional_user_id),
    pipeline=Depends(get_pipeline),
):
    outcome = await pipeline.get_visualization(user_id, document_id)
    if not outcome.ok:
        return outcome_error_response(outcome)
    return VisualizationResponse.from_document(outcome.value)


@router.delete(
    "/visualizations/{document_id}",
    response_model=DeleteResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}},
)
async def delete_visualization(
    document_id: str,
    user_id: Optional[str] = Depends(get_optional_user_id),
    pipeline=Depends(get_pipeline),
):
    outcome = await pipeline.delete_visualization(user_id, document_id)
    if not outcome.ok:
        return outcome_error_response(outcome)
    return DeleteResponse(**outcome.value)


@router.post(
    "/visualizations/{document_id}/export",
    summary="Export as JSON or CSV",
    response_model=ExportResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}},
)
async def export_visualization(
    document_id: str,
    request: ExportRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    pipeline=Depends(get_pipeline),
):
    outcome = await pipeline.export_visualization(
        user_id, document_id, request.format, request.include_metadata
    )
    if not outcome.ok:
        return outcome_error_response(outcome)
    return ExportResponse(**outcome.value)


@router.post(
    "/visualizations/{document_id}/share",
    summary="Make a visualization public",
    response_model=ShareResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}},
)
async def share_visualization(
    document_id: str,
    user_id: Optional[str] = Depends(get_optional_user_id),
    pipeline=Depends(get_pipeline),
):
    """Idempotent: sharing an already public document returns its existing share id."""
    outcome = await pipeline.share_visualization(user_id, document_id)
    if not outcome.ok:
        return outcome_error_response(outcome)
    return ShareResponse(share_id=outcome.value.share_id, is_public=outcome.value.is_public)


@router.get(
    "/shared/{share_id}",
    summary="Read a public visualization",
    response_model=VisualizationResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_shared_visualization(share_id: str, pipeline=Depends(get_pipeline)):
    outcome = await pipeline.get_shared_visualization(share_id)
    if not outcome.ok:
        return outcome_error_response(outcome)
    shared = VisualizationResponse.from_document(outcome.value).model_dump(mode="json")
    # Public readers see the diagram, not the owner's conversation
    shared["history"] = []
    return JSONResponse(content=shared)
