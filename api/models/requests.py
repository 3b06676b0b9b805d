"""Request models for the visualization pipeline API."""

import os
import sys

if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from dotenv import load_dotenv

load_dotenv()

try:
    from pathlib import Path

    BASE_DIR = Path(__file__).resolve().parents[2]
except NameError:
    BASE_DIR = Path(os.getcwd()).parents[0]

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from api.config.settings import (
    MAX_EXPANDED_NODES,
    MAX_HISTORY_ENTRIES,
    MAX_INPUT_LENGTH,
    MAX_NODE_ID_LENGTH,
    MAX_TITLE_LENGTH,
)

VisualizationKindName = Literal[
    "network_graph", "mind_map", "tree_diagram", "timeline", "gantt_chart"
]


def _not_blank(value: Optional[str], field: str) -> Optional[str]:
    if value is None:
        return value
    if not value.strip():
        raise ValueError(f"{field} cannot be empty or only whitespace")
    return value.strip()


class HistoryEntryIn(BaseModel):
    role: Literal["user", "assistant"]
    text: str = Field(..., max_length=MAX_INPUT_LENGTH)


class VisualizeRequest(BaseModel):
    """Free text to turn into a visualization draft."""

    input: str = Field(
        ...,
        min_length=1,
        max_length=MAX_INPUT_LENGTH,
        description="Free-text content to visualize",
        examples=["Project phases: research in January, design in February, build in March"],
    )
    preferred_kind: Optional[VisualizationKindName] = Field(
        None, description="Skip format selection and generate this kind"
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"input": "How photosynthesis relates light, water and carbon dioxide"}
            ]
        }
    }

    @field_validator("input")
    @classmethod
    def validate_input(cls, v):
        return _not_blank(v, "Input")


class RecommendRequest(BaseModel):
    """Free text to rank the supported visualization kinds for."""

    input: str = Field(..., min_length=1, max_length=MAX_INPUT_LENGTH)

    @field_validator("input")
    @classmethod
    def validate_input(cls, v):
        return _not_blank(v, "Input")


class EditRequest(BaseModel):
    """Chat edit against a stored document or an inline draft."""

    instruction: str = Field(..., min_length=1, max_length=MAX_INPUT_LENGTH)
    document_id: Optional[str] = Field(None, max_length=MAX_NODE_ID_LENGTH)
    kind: Optional[VisualizationKindName] = None
    payload: Optional[Dict[str, Any]] = None
    history: List[HistoryEntryIn] = Field(default_factory=list, max_length=MAX_HISTORY_ENTRIES)

    @field_validator("instruction")
    @classmethod
    def validate_instruction(cls, v):
        return _not_blank(v, "Instruction")


class ExpandRequest(BaseModel):
    """Expand one node of a network graph, mind map or tree diagram."""

    node_id: str = Field(..., min_length=1, max_length=MAX_NODE_ID_LENGTH)
    expanded_nodes: List[str] = Field(default_factory=list, max_length=MAX_EXPANDED_NODES)
    document_id: Optional[str] = Field(None, max_length=MAX_NODE_ID_LENGTH)
    kind: Optional[VisualizationKindName] = None
    payload: Optional[Dict[str, Any]] = None
    original_input: str = Field("", max_length=MAX_INPUT_LENGTH)

    @field_validator("node_id")
    @classmethod
    def validate_node_id(cls, v):
        return _not_blank(v, "Node ID")


class SaveRequest(BaseModel):
    """Persist a draft (or overwrite a stored document when document_id is given)."""

    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    kind: VisualizationKindName
    payload: Dict[str, Any]
    metadata: Optional[Dict[str, Any]] = None
    history: Optional[List[HistoryEntryIn]] = Field(None, max_length=MAX_HISTORY_ENTRIES)
    is_public: bool = False
    document_id: Optional[str] = Field(None, max_length=MAX_NODE_ID_LENGTH)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _not_blank(v, "Title")


class ExportRequest(BaseModel):
    format: Literal["json", "csv"] = "json"
    include_metadata: bool = False
