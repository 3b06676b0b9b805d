"""Response Schema Validator.

Every model response is untyped wire data until it passes through this module.
There is one pydantic schema per (kind x operation); all of them forbid unknown
keys and treat identifiers as strict strings. ``validate`` returns a plain
``dict`` payload, so nothing downstream ever holds a half-validated structure.

Structural invariants (unique ids, edge endpoints, tree ids, date ordering,
dependency references) live in the payload schemas and hold for every stored
document. Cardinality bounds are a property of a single generation response and
are checked separately with ``check_bounds``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Annotated, Any, Dict, Iterable, Iterator, List, Literal, Optional, Tuple, Type

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictStr,
    ValidationError,
    field_validator,
    model_validator,
)

from viz_agent.utils.document import VisualizationKind
from viz_agent.utils.errors import GenerationContractViolation, SchemaViolation

Identifier = Annotated[StrictStr, Field(min_length=1, max_length=200)]
Label = Annotated[StrictStr, Field(min_length=1, max_length=500)]
NodeCategory = Literal["primary", "secondary", "tertiary", "quaternary", "default"]
FORMAT_CHOICES = tuple(kind.value for kind in VisualizationKind) + ("none",)


class _StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


def _first_duplicate(values: Iterable[str]) -> Optional[str]:
    seen = set()
    for value in values:
        if value in seen:
            return value
        seen.add(value)
    return None


def _parse_iso(value: str) -> datetime:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


# ==============================================================================
# NETWORK GRAPH
# ==============================================================================
class NetworkNode(_StrictModel):
    id: Identifier
    label: Label
    description: Optional[StrictStr] = None
    category: Optional[NodeCategory] = None


class NetworkEdge(_StrictModel):
    id: Identifier
    source: Identifier
    target: Identifier
    label: Optional[StrictStr] = None


class NetworkGraphPayload(_StrictModel):
    nodes: List[NetworkNode]
    edges: List[NetworkEdge]

    @model_validator(mode="after")
    def check_references(self):
        duplicate = _first_duplicate(node.id for node in self.nodes)
        if duplicate is not None:
            raise ValueError(f"duplicate node id '{duplicate}'")
        duplicate = _first_duplicate(edge.id for edge in self.edges)
        if duplicate is not None:
            raise ValueError(f"duplicate edge id '{duplicate}'")
        node_ids = {node.id for node in self.nodes}
        for edge in self.edges:
            if edge.source not in node_ids or edge.target not in node_ids:
                raise ValueError(f"edge '{edge.id}' references a missing node")
        return self


class NetworkDelta(_StrictModel):
    """New nodes and edges only; references are checked against the document at merge."""

    nodes: List[NetworkNode]
    edges: List[NetworkEdge]

    @model_validator(mode="after")
    def check_unique(self):
        duplicate = _first_duplicate(node.id for node in self.nodes)
        if duplicate is not None:
            raise ValueError(f"duplicate node id '{duplicate}'")
        duplicate = _first_duplicate(edge.id for edge in self.edges)
        if duplicate is not None:
            raise ValueError(f"duplicate edge id '{duplicate}'")
        return self


# ==============================================================================
# HIERARCHICAL (MIND MAP / TREE DIAGRAM)
# ==============================================================================
class TreeNode(_StrictModel):
    id: Identifier
    content: Label
    description: Optional[StrictStr] = None
    value: Optional[float] = None
    children: List["TreeNode"] = Field(default_factory=list)


TreeNode.model_rebuild()


class HierarchicalPayload(_StrictModel):
    root: TreeNode

    @model_validator(mode="after")
    def check_unique_ids(self):
        ids = []
        stack = [self.root]
        while stack:
            node = stack.pop()
            ids.append(node.id)
            stack.extend(node.children)
        duplicate = _first_duplicate(ids)
        if duplicate is not None:
            raise ValueError(f"duplicate node id '{duplicate}' in tree")
        return self


class ExpansionChild(_StrictModel):
    """A new leaf; expansions never carry grandchildren."""

    id: Identifier
    content: Label
    description: Optional[StrictStr] = None
    value: Optional[float] = None


class ChildrenDelta(_StrictModel):
    children: List[ExpansionChild]

    @model_validator(mode="after")
    def check_unique(self):
        duplicate = _first_duplicate(child.id for child in self.children)
        if duplicate is not None:
            raise ValueError(f"duplicate child id '{duplicate}'")
        return self


class TargetedChildrenDelta(ChildrenDelta):
    target_id: Identifier


# ==============================================================================
# TIMELINE
# ==============================================================================
class TimelineGroup(_StrictModel):
    id: Identifier
    content: Label


class TimelineItem(_StrictModel):
    id: Identifier
    content: Label
    start: StrictStr
    end: Optional[StrictStr] = None
    group: Optional[Identifier] = None
    type: Literal["point", "range"]

    @field_validator("start", "end")
    @classmethod
    def check_iso(cls, value):
        if value is None:
            return value
        try:
            _parse_iso(value)
        except ValueError as exc:
            raise ValueError(f"'{value}' is not an ISO-8601 date") from exc
        return value

    @model_validator(mode="after")
    def check_range(self):
        if self.type == "range" and self.end is None:
            raise ValueError(f"range item '{self.id}' has no end")
        if self.end is not None and _parse_iso(self.end) < _parse_iso(self.start):
            raise ValueError(f"item '{self.id}' ends before it starts")
        return self


class TimelinePayload(_StrictModel):
    items: List[TimelineItem]
    groups: List[TimelineGroup] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_references(self):
        duplicate = _first_duplicate(item.id for item in self.items)
        if duplicate is not None:
            raise ValueError(f"duplicate item id '{duplicate}'")
        duplicate = _first_duplicate(group.id for group in self.groups)
        if duplicate is not None:
            raise ValueError(f"duplicate group id '{duplicate}'")
        group_ids = {group.id for group in self.groups}
        for item in self.items:
            if item.group is not None and item.group not in group_ids:
                raise ValueError(f"item '{item.id}' references unknown group")
        return self


# ==============================================================================
# GANTT CHART
# ==============================================================================
class GanttTask(_StrictModel):
    id: Identifier
    name: Label
    start: Annotated[StrictStr, Field(pattern=r"^\d{4}-\d{2}-\d{2}$")]
    end: Annotated[StrictStr, Field(pattern=r"^\d{4}-\d{2}-\d{2}$")]
    progress: float = Field(ge=0, le=100)
    dependencies: List[Identifier] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_dates(self):
        try:
            start, end = date.fromisoformat(self.start), date.fromisoformat(self.end)
        except ValueError as exc:
            raise ValueError(f"task '{self.id}' has an invalid date") from exc
        if end < start:
            raise ValueError(f"task '{self.id}' ends before it starts")
        if self.id in self.dependencies:
            raise ValueError(f"task '{self.id}' depends on itself")
        return self


class GanttPayload(_StrictModel):
    tasks: List[GanttTask]

    @model_validator(mode="after")
    def check_dependencies(self):
        duplicate = _first_duplicate(task.id for task in self.tasks)
        if duplicate is not None:
            raise ValueError(f"duplicate task id '{duplicate}'")
        graph = {task.id: task.dependencies for task in self.tasks}
        for task in self.tasks:
            for dependency in task.dependencies:
                if dependency not in graph:
                    raise ValueError(
                        f"task '{task.id}' depends on unknown task '{dependency}'"
                    )
        # Iterative three-colour DFS
        state: Dict[str, int] = {}
        for start in graph:
            if state.get(start):
                continue
            stack: List[Tuple[str, Iterator[str]]] = [(start, iter(graph[start]))]
            state[start] = 1
            while stack:
                current, pending = stack[-1]
                advanced = False
                for dependency in pending:
                    if state.get(dependency) == 1:
                        raise ValueError(f"dependency cycle through task '{dependency}'")
                    if not state.get(dependency):
                        state[dependency] = 1
                        stack.append((dependency, iter(graph[dependency])))
                        advanced = True
                        break
                if not advanced:
                    state[current] = 2
                    stack.pop()
        return self


# ==============================================================================
# FORMAT SELECTION AND EDIT ENVELOPES
# ==============================================================================
class FormatSelection(_StrictModel):
    visualizable: StrictBool
    kind: Literal[
        "network_graph",
        "mind_map",
        "tree_diagram",
        "timeline",
        "gantt_chart",
        "none",
    ]
    reason: StrictStr


class FormatRecommendation(_StrictModel):
    kind: Literal[
        "network_graph",
        "mind_map",
        "tree_diagram",
        "timeline",
        "gantt_chart",
    ]
    score: Annotated[float, Field(ge=0, le=100, strict=True)]
    reason: StrictStr


class FormatRecommendations(_StrictModel):
    recommendations: Annotated[List[FormatRecommendation], Field(min_length=1, max_length=3)]

    @model_validator(mode="after")
    def check_unique(self):
        duplicate = _first_duplicate(item.kind for item in self.recommendations)
        if duplicate is not None:
            raise ValueError(f"'{duplicate}' recommended more than once")
        return self


class EditResponse(_StrictModel):
    action: Literal["replace", "extend", "reply"]
    reply: Optional[StrictStr] = None
    payload: Optional[Dict[str, Any]] = None
    delta: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def check_action_fields(self):
        if self.action == "replace":
            if self.payload is None or self.delta is not None:
                raise ValueError("'replace' requires 'payload' and no 'delta'")
        elif self.action == "extend":
            if self.delta is None or self.payload is not None:
                raise ValueError("'extend' requires 'delta' and no 'payload'")
        else:
            if self.payload is not None or self.delta is not None:
                raise ValueError("'reply' must not carry structure")
            if not (self.reply or "").strip():
                raise ValueError("'reply' requires a non-empty reply text")
        return self


PAYLOAD_SCHEMAS: Dict[VisualizationKind, Type[BaseModel]] = {
    VisualizationKind.NETWORK_GRAPH: NetworkGraphPayload,
    VisualizationKind.MIND_MAP: HierarchicalPayload,
    VisualizationKind.TREE_DIAGRAM: HierarchicalPayload,
    VisualizationKind.TIMELINE: TimelinePayload,
    VisualizationKind.GANTT_CHART: GanttPayload,
}

EXPANSION_SCHEMAS: Dict[VisualizationKind, Type[BaseModel]] = {
    VisualizationKind.NETWORK_GRAPH: NetworkDelta,
    VisualizationKind.MIND_MAP: ChildrenDelta,
    VisualizationKind.TREE_DIAGRAM: ChildrenDelta,
}

EXTENSION_SCHEMAS: Dict[VisualizationKind, Type[BaseModel]] = {
    VisualizationKind.NETWORK_GRAPH: NetworkDelta,
    VisualizationKind.MIND_MAP: TargetedChildrenDelta,
    VisualizationKind.TREE_DIAGRAM: TargetedChildrenDelta,
}


# ==============================================================================
# VALIDATION ENTRY POINTS
# ==============================================================================
def parse_json_object(raw: Any) -> Dict[str, Any]:
    """Decode a raw model response into a JSON object without trusting its shape."""
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise SchemaViolation(f"response is not valid JSON: {exc}") from exc
        except RecursionError as exc:
            raise SchemaViolation("response is nested too deeply to decode") from exc
    if not isinstance(raw, dict):
        raise SchemaViolation("response must be a JSON object")
    return raw


def _summarize(exc: ValidationError, limit: int = 3) -> str:
    parts = []
    for error in exc.errors()[:limit]:
        location = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
        parts.append(f"{location}: {error.get('msg')}")
    if exc.error_count() > limit:
        parts.append(f"... {exc.error_count() - limit} more")
    return "; ".join(parts)


def _validate_with(model: Type[BaseModel], raw: Any, label: str) -> BaseModel:
    data = parse_json_object(raw)
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise SchemaViolation(f"{label} failed validation: {_summarize(exc)}") from exc
    except RecursionError as exc:
        raise SchemaViolation(f"{label} is nested too deeply to validate") from exc


def coerce_kind(kind: Any) -> VisualizationKind:
    try:
        return VisualizationKind(kind)
    except ValueError as exc:
        raise SchemaViolation(f"unsupported visualization kind '{kind}'") from exc


def validate(kind: Any, raw: Any) -> Dict[str, Any]:
    """Validate a full payload for ``kind``; returns the normalised payload dict."""
    kind = coerce_kind(kind)
    model = _validate_with(PAYLOAD_SCHEMAS[kind], raw, f"{kind.value} payload")
    return model.model_dump(mode="json", exclude_none=True)


def validate_format_selection(raw: Any) -> FormatSelection:
    return _validate_with(FormatSelection, raw, "format selection")


def validate_format_recommendations(raw: Any) -> FormatRecommendations:
    return _validate_with(FormatRecommendations, raw, "format recommendations")


def validate_edit_response(raw: Any) -> EditResponse:
    return _validate_with(EditResponse, raw, "edit response")


def validate_expansion(kind: Any, raw: Any) -> Dict[str, Any]:
    kind = coerce_kind(kind)
    if kind not in EXPANSION_SCHEMAS:
        raise SchemaViolation(f"{kind.value} does not support node expansion")
    model = _validate_with(EXPANSION_SCHEMAS[kind], raw, f"{kind.value} expansion")
    return model.model_dump(mode="json", exclude_none=True)


def validate_extension(kind: Any, raw: Any) -> Dict[str, Any]:
    kind = coerce_kind(kind)
    if kind not in EXTENSION_SCHEMAS:
        raise SchemaViolation(f"{kind.value} does not support incremental edits")
    model = _validate_with(EXTENSION_SCHEMAS[kind], raw, f"{kind.value} edit delta")
    return model.model_dump(mode="json", exclude_none=True)


# ==============================================================================
# TREE HELPERS AND CARDINALITY BOUNDS
# ==============================================================================
def iter_tree(root: Dict[str, Any]) -> Iterator[Tuple[Dict[str, Any], int, Optional[str]]]:
    """Depth-first, pre-order walk yielding ``(node, depth, parent_id)``; root depth is 1."""
    stack = [(root, 1, None)]
    while stack:
        node, depth, parent_id = stack.pop()
        yield node, depth, parent_id
        for child in reversed(node.get("children", [])):
            stack.append((child, depth + 1, node["id"]))


@dataclass(frozen=True)
class GenerationBounds:
    min_items: int
    max_items: int
    min_edges: int = 0
    max_edges: int = 0
    max_depth: int = 0
    max_groups: int = 0


GENERATION_BOUNDS: Dict[VisualizationKind, GenerationBounds] = {
    VisualizationKind.NETWORK_GRAPH: GenerationBounds(5, 30, min_edges=4, max_edges=60),
    VisualizationKind.MIND_MAP: GenerationBounds(6, 80, max_depth=6),
    VisualizationKind.TREE_DIAGRAM: GenerationBounds(3, 60, max_depth=5),
    VisualizationKind.TIMELINE: GenerationBounds(2, 50, max_groups=12),
    VisualizationKind.GANTT_CHART: GenerationBounds(1, 50),
}

# (min, max) new nodes/children and (min, max) new edges for an expansion
EXPANSION_NODE_BOUNDS = (1, 8)
EXPANSION_EDGE_BOUNDS = (1, 16)


def _check_range(label: str, count: int, low: int, high: int) -> None:
    if count < low or count > high:
        raise GenerationContractViolation(
            f"{label} count {count} outside declared bounds [{low}, {high}]"
        )


def measure(kind: VisualizationKind, payload: Dict[str, Any]) -> Dict[str, int]:
    """Counts the bounds are expressed in: items, edges, depth, groups."""
    if kind == VisualizationKind.NETWORK_GRAPH:
        return {"items": len(payload["nodes"]), "edges": len(payload["edges"]), "depth": 0, "groups": 0}
    if kind in (VisualizationKind.MIND_MAP, VisualizationKind.TREE_DIAGRAM):
        depths = [depth for _, depth, _ in iter_tree(payload["root"])]
        return {"items": len(depths), "edges": 0, "depth": max(depths), "groups": 0}
    if kind == VisualizationKind.TIMELINE:
        return {
            "items": len(payload["items"]),
            "edges": 0,
            "depth": 0,
            "groups": len(payload.get("groups", [])),
        }
    return {"items": len(payload["tasks"]), "edges": 0, "depth": 0, "groups": 0}


def check_bounds(kind: VisualizationKind, payload: Dict[str, Any]) -> None:
    """Reject a generated payload whose cardinality is outside the declared contract.

    Applies to fresh generations and full-replacement edits alike; a replacement
    for a document that expansions grew past the table has to come back within it.
    """
    bounds = GENERATION_BOUNDS[kind]
    counts = measure(kind, payload)
    label = {
        VisualizationKind.NETWORK_GRAPH: "node",
        VisualizationKind.TIMELINE: "item",
        VisualizationKind.GANTT_CHART: "task",
    }.get(kind, "node")
    _check_range(label, counts["items"], bounds.min_items, bounds.max_items)
    if kind == VisualizationKind.NETWORK_GRAPH:
        _check_range("edge", counts["edges"], bounds.min_edges, bounds.max_edges)
    if kind in (VisualizationKind.MIND_MAP, VisualizationKind.TREE_DIAGRAM):
        if counts["depth"] > bounds.max_depth:
            raise GenerationContractViolation(
                f"tree depth {counts['depth']} exceeds declared maximum {bounds.max_depth}"
            )
    if kind == VisualizationKind.TIMELINE:
        _check_range("group", counts["groups"], 0, bounds.max_groups)


def check_expansion_bounds(kind: VisualizationKind, delta: Dict[str, Any]) -> None:
    if kind == VisualizationKind.NETWORK_GRAPH:
        _check_range("new node", len(delta["nodes"]), *EXPANSION_NODE_BOUNDS)
        _check_range("new edge", len(delta["edges"]), *EXPANSION_EDGE_BOUNDS)
    else:
        _check_range("new child", len(delta["children"]), *EXPANSION_NODE_BOUNDS)
