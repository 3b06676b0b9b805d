"""
Document mutator: chat edits (replace / extend / reply) and node expansion.
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

import pytest

from tests.helpers import (
    ScriptedModel,
    frozen,
    gantt_payload,
    mind_map_payload,
    network_payload,
    timeline_payload,
    tree_payload,
)
from viz_agent.merge import find_tree_node, network_node_ids, tree_node_ids
from viz_agent.mutator import (
    MAX_HISTORY_CONTEXT,
    Delta,
    ExpansionContext,
    NoStructuralChange,
    Replaced,
    apply_edit,
    edit_document,
    expand_node,
)
from viz_agent.utils.document import HistoryEntry, VisualizationKind
from viz_agent.utils.errors import ErrorCategory


# ==============================================================================
# CHAT EDIT
# ==============================================================================
@pytest.mark.asyncio
async def test_reply_is_no_structural_change():
    model = ScriptedModel({"action": "reply", "reply": "It has five nodes."})
    payload = network_payload()

    outcome = await edit_document(
        VisualizationKind.NETWORK_GRAPH, payload, "How many nodes?", [], model
    )

    assert outcome.ok
    assert isinstance(outcome.value, NoStructuralChange)
    assert outcome.value.assistant_reply == "It has five nodes."
    assert apply_edit(VisualizationKind.NETWORK_GRAPH, payload, outcome.value) is payload


@pytest.mark.asyncio
async def test_replace_is_revalidated_like_a_generation():
    new_payload = gantt_payload()
    new_payload["tasks"][1]["progress"] = 80
    model = ScriptedModel({"action": "replace", "payload": new_payload})

    outcome = await edit_document(
        VisualizationKind.GANTT_CHART, gantt_payload(), "Build is 80% done", [], model
    )

    assert isinstance(outcome.value, Replaced)
    assert outcome.value.payload["tasks"][1]["progress"] == 80


@pytest.mark.asyncio
async def test_replace_with_invalid_payload_is_contract_violation():
    broken = gantt_payload()
    broken["tasks"][1]["dependencies"] = ["t7"]
    model = ScriptedModel({"action": "replace", "payload": broken})

    outcome = await edit_document(
        VisualizationKind.GANTT_CHART, gantt_payload(), "Add a dependency", [], model
    )

    assert outcome.category == ErrorCategory.GENERATION_CONTRACT_VIOLATION


@pytest.mark.asyncio
async def test_replace_beyond_generation_bounds_is_rejected_for_grown_documents():
    nodes = [{"id": f"n{i}", "label": f"Node {i}"} for i in range(34)]
    edges = [{"id": f"e{i}", "source": "n0", "target": f"n{i}"} for i in range(1, 34)]
    grown = {"nodes": nodes, "edges": edges}
    model = ScriptedModel({"action": "replace", "payload": grown})

    outcome = await edit_document(
        VisualizationKind.NETWORK_GRAPH, grown, "Rename node 3", [], model
    )

    assert outcome.category == ErrorCategory.GENERATION_CONTRACT_VIOLATION
    assert "outside declared bounds" in outcome.error.detail


@pytest.mark.asyncio
async def test_extend_network_merges_delta():
    delta = {
        "nodes": [{"id": "n6", "label": "East region"}],
        "edges": [{"id": "e5", "source": "n1", "target": "n6"}],
    }
    model = ScriptedModel({"action": "extend", "delta": delta, "reply": "Added East."})
    payload = network_payload()

    outcome = await edit_document(
        VisualizationKind.NETWORK_GRAPH, payload, "Add the East region", [], model
    )
    merged = apply_edit(VisualizationKind.NETWORK_GRAPH, payload, outcome.value)

    assert isinstance(outcome.value, Delta)
    assert outcome.value.reply == "Added East."
    assert network_node_ids(merged) == network_node_ids(payload) + ["n6"]


@pytest.mark.asyncio
async def test_extend_tree_with_unknown_target_is_node_not_found():
    delta = {"target_id": "marketing", "children": [{"id": "seo", "content": "SEO"}]}
    model = ScriptedModel({"action": "extend", "delta": delta})

    outcome = await edit_document(
        VisualizationKind.TREE_DIAGRAM, tree_payload(), "Add SEO under marketing", [], model
    )

    assert outcome.category == ErrorCategory.NODE_NOT_FOUND


@pytest.mark.asyncio
async def test_extend_not_accepted_for_timeline():
    model = ScriptedModel({"action": "extend", "delta": {"items": []}})

    outcome = await edit_document(
        VisualizationKind.TIMELINE, timeline_payload(), "Add an item", [], model
    )

    assert outcome.category == ErrorCategory.GENERATION_CONTRACT_VIOLATION


@pytest.mark.asyncio
async def test_history_is_replayed_up_to_the_context_limit():
    history = [
        HistoryEntry(role="user" if i % 2 == 0 else "assistant", text=f"turn {i}")
        for i in range(MAX_HISTORY_CONTEXT + 10)
    ]
    model = ScriptedModel({"action": "reply", "reply": "ok"})

    await edit_document(VisualizationKind.TREE_DIAGRAM, tree_payload(), "Hi", history, model)

    messages = model.calls[0]["messages"]
    assert len(messages) == MAX_HISTORY_CONTEXT + 1
    assert messages[0]["content"] == "turn 10"
    assert messages[-1] == {"role": "user", "content": "Hi"}
    assert '"org"' in model.calls[0]["system_instruction"]


# ==============================================================================
# EXPAND NODE
# ==============================================================================
@pytest.mark.asyncio
async def test_expand_missing_hierarchical_node_returns_untouched_payload():
    payload = mind_map_payload()
    before = frozen(payload)
    model = ScriptedModel()

    outcome = await expand_node(
        VisualizationKind.MIND_MAP, payload, "does-not-exist", ExpansionContext(), model
    )

    assert not outcome.ok
    assert outcome.category == ErrorCategory.NODE_NOT_FOUND
    assert outcome.value is payload
    assert frozen(outcome.value) == before
    assert model.calls == []


@pytest.mark.asyncio
async def test_expand_hierarchical_node_adds_exactly_the_returned_children():
    payload = mind_map_payload()
    model = ScriptedModel(
        {"children": [{"id": "co2", "content": "Carbon dioxide"}, {"id": "chl", "content": "Chlorophyll"}]}
    )

    outcome = await expand_node(
        VisualizationKind.MIND_MAP,
        payload,
        "inputs",
        ExpansionContext(original_input="How plants make food"),
        model,
    )

    assert outcome.ok
    assert len(tree_node_ids(outcome.value)) == len(tree_node_ids(payload)) + 2
    assert [c["id"] for c in find_tree_node(outcome.value["root"], "inputs")["children"]] == [
        "light",
        "water",
        "co2",
        "chl",
    ]
    assert "Original context: How plants make food" in model.calls[0]["messages"][0]["content"]


@pytest.mark.asyncio
async def test_expand_network_node_keeps_ids_and_has_no_dangling_edges():
    payload = network_payload()
    model = ScriptedModel(
        {
            "nodes": [{"id": "n6", "label": "Q3"}, {"id": "n7", "label": "Q4"}],
            "edges": [
                {"id": "e5", "source": "n2", "target": "n6"},
                {"id": "e6", "source": "n6", "target": "n7"},
            ],
        }
    )

    outcome = await expand_node(
        VisualizationKind.NETWORK_GRAPH, payload, "n2", None, model
    )

    merged = outcome.value
    assert network_node_ids(merged)[:5] == network_node_ids(payload)
    ids = set(network_node_ids(merged))
    assert all(e["source"] in ids and e["target"] in ids for e in merged["edges"])


@pytest.mark.asyncio
async def test_expand_network_dangling_edge_is_rejected():
    model = ScriptedModel(
        {
            "nodes": [{"id": "n6", "label": "Q3"}],
            "edges": [{"id": "e5", "source": "n6", "target": "n99"}],
        }
    )

    outcome = await expand_node(
        VisualizationKind.NETWORK_GRAPH, network_payload(), "n2", None, model
    )

    assert outcome.category == ErrorCategory.GENERATION_CONTRACT_VIOLATION


@pytest.mark.asyncio
async def test_expand_unsupported_kind_is_validation_error():
    outcome = await expand_node(
        VisualizationKind.GANTT_CHART, gantt_payload(), "t1", None, ScriptedModel()
    )

    assert outcome.category == ErrorCategory.VALIDATION_ERROR
