"""Document Mutator: chat edits and node expansion against an existing payload.

MODULE_DESCRIPTION
==================
Two operations, both driven by one model call each:

1. Chat edit (``propose_edit`` / ``edit_document``)
   The model receives the full current payload and the replayed conversation
   history plus the new instruction, and answers with one of three envelopes:

   - ``replace``: a complete new payload, re-validated like a fresh generation
   - ``extend``:  an additive delta (new nodes/edges, or new children under a
                  target node) that is merged, never regenerating anything else
   - ``reply``:   a conversational answer with no structural change

   The three cases come back as distinct ``EditOutcome`` types so callers can
   never mistake a reply for a structural change.

2. Expand node (``expand_node_payload`` / ``expand_node``)
   The target node must exist before the model is called. The returned delta
   holds only new material and is merged by ``viz_agent.merge``; a network edge
   with an unknown endpoint is rejected, a missing tree target raises
   ``NodeNotFound`` and the caller's payload is returned untouched.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from api.utils.debug import print__pipeline_debug
from viz_agent.merge import (
    find_network_node,
    find_tree_node,
    merge_delta,
    network_node_ids,
    tree_node_ids,
)
from viz_agent.utils.document import (
    EXPANDABLE_KINDS,
    SUCCESSFUL_EDIT_REPLY,
    HistoryEntry,
    VisualizationKind,
)
from viz_agent.utils.errors import (
    GenerationContractViolation,
    InputValidationError,
    NodeNotFound,
    Outcome,
    returns_outcome,
)
from viz_agent.utils.prompts import (
    EDIT_DELTA_SHAPES,
    EDIT_PROMPT_TEMPLATE,
    HIERARCHY_EXPANSION_PROMPT,
    NETWORK_EXPANSION_PROMPT,
)
from viz_agent.utils.schemas import (
    EXTENSION_SCHEMAS,
    check_bounds,
    check_expansion_bounds,
    coerce_kind,
    validate,
    validate_edit_response,
    validate_expansion,
    validate_extension,
)

# Most recent turns replayed to the model as context
MAX_HISTORY_CONTEXT = 50


# ==============================================================================
# EDIT OUTCOMES
# ==============================================================================
@dataclass
class Replaced:
    payload: Dict[str, Any]
    reply: str = SUCCESSFUL_EDIT_REPLY


@dataclass
class Delta:
    delta: Dict[str, Any]
    reply: str = SUCCESSFUL_EDIT_REPLY


@dataclass
class NoStructuralChange:
    assistant_reply: str


EditOutcome = Union[Replaced, Delta, NoStructuralChange]


@dataclass
class ExpansionContext:
    original_input: str = ""


def _history_messages(history: Sequence[HistoryEntry]) -> List[Dict[str, str]]:
    return [entry.as_message() for entry in list(history)[-MAX_HISTORY_CONTEXT:]]


# ==============================================================================
# CHAT EDIT
# ==============================================================================
async def propose_edit(
    kind: Any,
    payload: Dict[str, Any],
    instruction: str,
    history: Sequence[HistoryEntry],
    model,
) -> EditOutcome:
    kind = coerce_kind(kind)
    supports_extend = kind in EXTENSION_SCHEMAS
    system_instruction = EDIT_PROMPT_TEMPLATE.format(
        kind=kind.value,
        payload=json.dumps(payload, ensure_ascii=False),
        delta_shape=EDIT_DELTA_SHAPES.get(kind, "{}"),
        extend_note=(
            "" if supports_extend
            else "\n- This kind does not support \"extend\"; use \"replace\" or \"reply\""
        ),
    )
    messages = _history_messages(history) + [{"role": "user", "content": instruction}]

    raw = await model.complete(system_instruction, messages, structured_output=True)
    response = validate_edit_response(raw)
    reply = (response.reply or "").strip() or SUCCESSFUL_EDIT_REPLY

    if response.action == "replace":
        new_payload = validate(kind, response.payload)
        check_bounds(kind, new_payload)
        print__pipeline_debug(f"✏️ EDIT: full replacement of {kind.value}")
        return Replaced(new_payload, reply)

    if response.action == "extend":
        if not supports_extend:
            raise GenerationContractViolation(
                f"{kind.value} does not accept incremental edits"
            )
        delta = validate_extension(kind, response.delta)
        check_expansion_bounds(kind, delta)
        if "target_id" in delta:
            find_tree_node(payload["root"], delta["target_id"])
        print__pipeline_debug(f"✏️ EDIT: additive delta for {kind.value}")
        return Delta(delta, reply)

    print__pipeline_debug("💬 EDIT: reply only, no structural change")
    return NoStructuralChange(reply)


def apply_edit(
    kind: Any, payload: Dict[str, Any], outcome: EditOutcome
) -> Dict[str, Any]:
    """Resulting payload for an edit outcome; a reply leaves ``payload`` as is."""
    kind = coerce_kind(kind)
    if isinstance(outcome, Replaced):
        return outcome.payload
    if isinstance(outcome, Delta):
        return merge_delta(kind, payload, outcome.delta)
    return payload


edit_document = returns_outcome(propose_edit)


# ==============================================================================
# EXPAND NODE
# ==============================================================================
def _expansion_request(
    kind: VisualizationKind,
    payload: Dict[str, Any],
    node_id: str,
    context: ExpansionContext,
) -> Dict[str, str]:
    """Build the user message; raises NodeNotFound before any model call."""
    if kind == VisualizationKind.NETWORK_GRAPH:
        node = find_network_node(payload, node_id)
        existing = [f"{n['id']}: {n['label']}" for n in payload["nodes"]]
        lines = [
            f"Node to expand: id={node['id']} label={node['label']}",
            f"Existing nodes (id: label): {'; '.join(existing)}",
            f"Existing edge ids: {', '.join(edge['id'] for edge in payload['edges'])}",
        ]
    else:
        node = find_tree_node(payload["root"], node_id)
        lines = [
            f"Node to expand: id={node['id']} content={node['content']}",
            f"Existing children: {'; '.join(c['content'] for c in node.get('children', []))}",
            f"Existing node ids: {', '.join(tree_node_ids(payload))}",
        ]
    if context.original_input:
        lines.append(f"Original context: {context.original_input}")
    return {"role": "user", "content": "\n".join(lines)}


async def expand_node_payload(
    kind: Any,
    payload: Dict[str, Any],
    node_id: str,
    context: Optional[ExpansionContext],
    model,
) -> Dict[str, Any]:
    """Return a new payload with the node expanded; ``payload`` is never modified."""
    kind = coerce_kind(kind)
    if kind not in EXPANDABLE_KINDS:
        raise InputValidationError(f"{kind.value} does not support node expansion")
    context = context or ExpansionContext()

    message = _expansion_request(kind, payload, node_id, context)
    prompt = (
        NETWORK_EXPANSION_PROMPT
        if kind == VisualizationKind.NETWORK_GRAPH
        else HIERARCHY_EXPANSION_PROMPT
    )
    raw = await model.complete(prompt, [message], structured_output=True)
    delta = validate_expansion(kind, raw)
    check_expansion_bounds(kind, delta)

    merged = merge_delta(kind, payload, delta, target_id=node_id)
    if kind == VisualizationKind.NETWORK_GRAPH:
        print__pipeline_debug(
            f"🌱 EXPAND: {node_id} +{len(delta['nodes'])} nodes "
            f"(now {len(network_node_ids(merged))})"
        )
    else:
        print__pipeline_debug(f"🌱 EXPAND: {node_id} +{len(delta['children'])} children")
    return merged


async def _expand_node_or_report(
    kind: Any,
    payload: Dict[str, Any],
    node_id: str,
    context: Optional[ExpansionContext],
    model,
):
    """On NodeNotFound the untouched payload rides along with the failure."""
    try:
        return await expand_node_payload(kind, payload, node_id, context, model)
    except NodeNotFound as exc:
        return Outcome.failure(exc, value=payload)


expand_node = returns_outcome(_expand_node_or_report)
