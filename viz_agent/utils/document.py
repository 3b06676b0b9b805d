"""Visualization document model: kinds, conversation history, metadata."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class VisualizationKind(str, Enum):
    NETWORK_GRAPH = "network_graph"
    MIND_MAP = "mind_map"
    TREE_DIAGRAM = "tree_diagram"
    TIMELINE = "timeline"
    GANTT_CHART = "gantt_chart"


HIERARCHICAL_KINDS = frozenset({VisualizationKind.MIND_MAP, VisualizationKind.TREE_DIAGRAM})
EXPANDABLE_KINDS = frozenset({VisualizationKind.NETWORK_GRAPH, *HIERARCHICAL_KINDS})

# Per-kind base used for the displayed cost estimate (not the token cost)
KIND_COST_ESTIMATE = {
    VisualizationKind.NETWORK_GRAPH: 0.02,
    VisualizationKind.MIND_MAP: 0.02,
    VisualizationKind.TREE_DIAGRAM: 0.015,
    VisualizationKind.TIMELINE: 0.015,
    VisualizationKind.GANTT_CHART: 0.015,
}

SUCCESSFUL_EDIT_REPLY = "Visualization updated successfully."


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def calculate_cost(input_length: int, kind: VisualizationKind) -> float:
    """Base cost for the kind plus a length-dependent part capped at 0.05."""
    variable_cost = min(input_length / 1000, 0.05)
    return round(KIND_COST_ESTIMATE[kind] + variable_cost, 3)


class HistoryEntry(BaseModel):
    role: Literal["user", "assistant"]
    text: str
    timestamp: datetime = Field(default_factory=utc_now)

    def as_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.text}


class DocumentMetadata(BaseModel):
    created_at: datetime = Field(default_factory=utc_now)
    model: Optional[str] = None
    original_input: str = ""
    cost_estimate: float = 0.0
    processing_ms: Optional[int] = None
    reason: Optional[str] = None
    # Node ids already expanded once; a repeat expansion is rejected
    expanded_nodes: List[str] = Field(default_factory=list)


class VisualizationDocument(BaseModel):
    """The persisted artifact. ``payload`` always satisfies the schema of ``kind``."""

    model_config = ConfigDict(use_enum_values=False)

    id: Optional[str] = None
    owner_id: str
    kind: VisualizationKind
    title: str = "Untitled visualization"
    payload: Dict[str, Any]
    history: List[HistoryEntry] = Field(default_factory=list)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    is_public: bool = False
    share_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def to_public_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


def append_exchange(
    history: List[HistoryEntry], user_text: str, assistant_text: str
) -> List[HistoryEntry]:
    """Return a new history with the user turn followed by the assistant turn."""
    now = utc_now()
    return [
        *history,
        HistoryEntry(role="user", text=user_text, timestamp=now),
        HistoryEntry(role="assistant", text=assistant_text, timestamp=now),
    ]
