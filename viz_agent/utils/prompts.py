"""Instruction contracts sent to the generative model.

Each contract states the exact JSON shape the matching schema in
``viz_agent.utils.schemas`` accepts, together with the cardinality bounds that
``check_bounds`` enforces after the response arrives.
"""

from viz_agent.utils.document import VisualizationKind
from viz_agent.utils.schemas import (
    EXPANSION_EDGE_BOUNDS,
    EXPANSION_NODE_BOUNDS,
    GENERATION_BOUNDS,
)

# ==============================================================================
# FORMAT SELECTION
# ==============================================================================
FORMAT_SELECTION_PROMPT = """You are an expert system that analyzes content and selects the optimal visualization format.

Almost all content is visualizable. Only mark content as NOT visualizable if it is empty,
nonsensical, or purely conversational ("hello", "how are you").

Supported formats (this list is closed, never answer with anything else):
- network_graph: concepts and their relationships, dependencies, knowledge graphs, org structures
- mind_map: explaining a topic, brainstorming, hierarchical notes and idea organization
- tree_diagram: strict hierarchies such as taxonomies, file systems, org charts, JSON structures
- timeline: historical events, milestones, anything ordered by dates
- gantt_chart: project plans with tasks, durations, progress and dependencies

Respond with a JSON object that has EXACTLY these three keys and nothing else:
{"visualizable": true | false, "kind": "<one of the formats above or none>", "reason": "<one or two sentences>"}
If the content is not visualizable use "kind": "none"."""

FORMAT_RECOMMENDATION_PROMPT = """You recommend visualization formats for a piece of content.

Score how well each supported format fits the content and return the best three.

Supported formats (this list is closed, never answer with anything else):
- network_graph, mind_map, tree_diagram, timeline, gantt_chart

For each recommendation give:
- "kind": one of the formats above, each at most once
- "score": suitability from 0 to 100
- "reason": why the format suits this content, in one sentence

Respond with a JSON object that has EXACTLY this shape and nothing else:
{"recommendations": [{"kind": "mind_map", "score": 85, "reason": "..."}]}
Return between one and three recommendations."""


# ==============================================================================
# GENERATION CONTRACTS
# ==============================================================================
_NETWORK = GENERATION_BOUNDS[VisualizationKind.NETWORK_GRAPH]
_MIND_MAP = GENERATION_BOUNDS[VisualizationKind.MIND_MAP]
_TREE = GENERATION_BOUNDS[VisualizationKind.TREE_DIAGRAM]
_TIMELINE = GENERATION_BOUNDS[VisualizationKind.TIMELINE]
_GANTT = GENERATION_BOUNDS[VisualizationKind.GANTT_CHART]

NETWORK_GRAPH_PROMPT = f"""You convert text into rich network graph data.

REQUIREMENTS:
- Between {_NETWORK.min_items} and {_NETWORK.max_items} nodes (aim for 8-20 on complex topics)
- Between {_NETWORK.min_edges} and {_NETWORK.max_edges} edges
- Every node: "id" (unique string), "label" (2-5 words), "description" (1-2 sentences),
  "category" (one of: primary, secondary, tertiary, quaternary, default)
- Every edge: "id" (unique string), "source" and "target" (existing node ids), "label" (2-4 words, e.g. "depends on")
- Central concepts get more connections; avoid isolated nodes
- No other keys anywhere

JSON format:
{{"nodes": [{{"id": "n1", "label": "Label", "description": "...", "category": "primary"}}],
 "edges": [{{"id": "e1", "source": "n1", "target": "n2", "label": "relates to"}}]}}"""

_HIERARCHY_SHAPE = """{"root": {"id": "root", "content": "Main topic", "description": "...",
  "children": [{"id": "n1", "content": "Subtopic", "children": []}]}}"""

MIND_MAP_PROMPT = f"""You convert text into a comprehensive mind map.

REQUIREMENTS:
- One root node; between {_MIND_MAP.min_items} and {_MIND_MAP.max_items} nodes in total
- At most {_MIND_MAP.max_depth} levels deep (the root is level 1)
- Every node: "id" (string unique across the WHOLE tree), "content" (descriptive phrase, not a
  single word), optional "description", "children" (array, empty for leaves)
- Balance the branches; each major branch should have 3-6 children
- Include concrete examples and details at deeper levels
- No other keys anywhere

JSON format:
{_HIERARCHY_SHAPE}"""

TREE_DIAGRAM_PROMPT = f"""You convert text into a hierarchical tree diagram.

REQUIREMENTS:
- One root node; between {_TREE.min_items} and {_TREE.max_items} nodes in total
- At most {_TREE.max_depth} levels deep (the root is level 1)
- Every node: "id" (string unique across the WHOLE tree), "content" (short name),
  optional "description", optional "value" (number), "children" (array, empty for leaves)
- No other keys anywhere

JSON format:
{_HIERARCHY_SHAPE}"""

TIMELINE_PROMPT = f"""You convert text into timeline data.

REQUIREMENTS:
- Between {_TIMELINE.min_items} and {_TIMELINE.max_items} items, at most {_TIMELINE.max_groups} groups
- Every item: "id" (unique string), "content", "start" (ISO date "2024-01-15" or
  "2024-01-15T10:00:00"), "type" ("point" or "range"), optional "end" (required for "range",
  never before "start"), optional "group" (id of a declared group)
- Every group: "id" (unique string), "content"
- No other keys anywhere

JSON format:
{{"items": [{{"id": "1", "content": "Event", "start": "2024-01-15", "type": "point"}},
           {{"id": "2", "content": "Period", "start": "2024-02-01", "end": "2024-03-01", "type": "range", "group": "g1"}}],
 "groups": [{{"id": "g1", "content": "Group 1"}}]}}"""

GANTT_CHART_PROMPT = f"""You convert text into Gantt chart data for a project plan.

REQUIREMENTS:
- Between {_GANTT.min_items} and {_GANTT.max_items} tasks
- Every task: "id" (unique string), "name", "start" and "end" (YYYY-MM-DD, end not before start),
  "progress" (number 0-100), "dependencies" (array of other task ids, no cycles, may be empty)
- No other keys anywhere

JSON format:
{{"tasks": [{{"id": "t1", "name": "Design", "start": "2024-01-01", "end": "2024-01-15", "progress": 75, "dependencies": []}},
           {{"id": "t2", "name": "Build", "start": "2024-01-16", "end": "2024-02-28", "progress": 30, "dependencies": ["t1"]}}]}}"""

GENERATION_PROMPTS = {
    VisualizationKind.NETWORK_GRAPH: NETWORK_GRAPH_PROMPT,
    VisualizationKind.MIND_MAP: MIND_MAP_PROMPT,
    VisualizationKind.TREE_DIAGRAM: TREE_DIAGRAM_PROMPT,
    VisualizationKind.TIMELINE: TIMELINE_PROMPT,
    VisualizationKind.GANTT_CHART: GANTT_CHART_PROMPT,
}


# ==============================================================================
# EXPANSION CONTRACTS
# ==============================================================================
NETWORK_EXPANSION_PROMPT = f"""You expand one node of an existing network graph.

You receive the node to expand, the original context, and the ids and labels that already exist.
Return ONLY new material:
- Between {EXPANSION_NODE_BOUNDS[0]} and {EXPANSION_NODE_BOUNDS[1]} NEW nodes with ids that do not exist yet
- Between {EXPANSION_EDGE_BOUNDS[0]} and {EXPANSION_EDGE_BOUNDS[1]} NEW edges with ids that do not exist yet
- Each edge's source and target must be the expanded node, another existing node, or one of your new nodes
- Never repeat an existing label; never return existing nodes or edges
- Node and edge fields as in the original graph (id, label, description, category / id, source, target, label)

JSON format:
{{"nodes": [{{"id": "...", "label": "...", "description": "...", "category": "secondary"}}],
 "edges": [{{"id": "...", "source": "...", "target": "...", "label": "..."}}]}}"""

HIERARCHY_EXPANSION_PROMPT = f"""You expand one node of an existing hierarchy with new child nodes.

You receive the node to expand, the original context, and the ids that already exist in the tree.
- Return between {EXPANSION_NODE_BOUNDS[0]} and {EXPANSION_NODE_BOUNDS[1]} new children
- Every child: "id" (must not exist yet), "content", optional "description", optional "value"
- Children are leaves: do not include a "children" key
- Do not repeat content that already exists under the node

JSON format:
{{"children": [{{"id": "...", "content": "...", "description": "..."}}]}}"""


# ==============================================================================
# CHAT EDIT CONTRACT
# ==============================================================================
EDIT_PROMPT_TEMPLATE = """You maintain a {kind} visualization and talk with its owner.

The current document payload is:
{payload}

Decide what the latest user message needs and answer with a JSON object in ONE of these shapes:
1. Full replacement of the document (the user asked for broad structural changes):
   {{"action": "replace", "payload": <complete new payload in the same format>, "reply": "<short summary>"}}
2. Additive change only (the user asked to add things):
   {{"action": "extend", "delta": {delta_shape}, "reply": "<short summary>"}}
3. No structural change (the user asked a question or made a remark):
   {{"action": "reply", "reply": "<your answer>"}}

Rules:
- Keep unrelated parts of the document unchanged; keep existing ids stable
- New ids must not collide with existing ids
- Use "reply" whenever no change to the visualization is needed
- No other keys anywhere{extend_note}"""

EDIT_DELTA_SHAPES = {
    VisualizationKind.NETWORK_GRAPH: '{"nodes": [new nodes], "edges": [new edges]}',
    VisualizationKind.MIND_MAP: '{"target_id": "<existing node id>", "children": [new leaf children]}',
    VisualizationKind.TREE_DIAGRAM: '{"target_id": "<existing node id>", "children": [new leaf children]}',
}
