"""Response models for the visualization pipeline API."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class HistoryEntryOut(BaseModel):
    role: str
    text: str
    timestamp: datetime


class VisualizationResponse(BaseModel):
    """A visualization document; ``id`` is None for an unsaved draft."""

    id: Optional[str] = None
    kind: str
    title: str
    payload: Dict[str, Any]
    history: List[HistoryEntryOut] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_public: bool = False
    share_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, document) -> "VisualizationResponse":
        data = document.model_dump(mode="json")
        data.pop("owner_id", None)
        return cls.model_validate(data)


class EditResponseBody(BaseModel):
    visualization: VisualizationResponse
    changed: bool
    reply: str


class VisualizationListResponse(BaseModel):
    visualizations: List[VisualizationResponse]
    count: int


class FormatRecommendationOut(BaseModel):
    kind: str
    score: float
    reason: str


class RecommendationsResponse(BaseModel):
    """Best-fitting kinds for the input, highest score first (at most three)."""

    recommendations: List[FormatRecommendationOut]


class ExportResponse(BaseModel):
    format: str
    content: str
    mime_type: str
    filename: str


class ShareResponse(BaseModel):
    share_id: str
    is_public: bool


class DeleteResponse(BaseModel):
    id: str
    deleted: bool


class UsageResponse(BaseModel):
    tokens_used: int
    tokens_limit: int
    tokens_remaining: int
    reset_date: datetime
    tier: str
    percentage_used: float


class ErrorResponse(BaseModel):
    """Body of every non-2xx pipeline response."""

    detail: str
    category: str
    retryable: bool = False
    reason: Optional[str] = None
    remaining: Optional[int] = None
    reset_at: Optional[datetime] = None
    visualization: Optional[VisualizationResponse] = None
