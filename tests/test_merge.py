"""
Delta merging: id stability, no dangling edges, tree growth, and untouched inputs.
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

from tests.helpers import frozen, mind_map_payload, network_payload, tree_payload
from viz_agent.merge import (
    find_tree_node,
    merge_delta,
    merge_network_delta,
    merge_tree_children,
    network_node_ids,
    tree_node_ids,
)
from viz_agent.utils.document import VisualizationKind
from viz_agent.utils.errors import GenerationContractViolation, NodeNotFound
from viz_agent.utils.schemas import iter_tree


def test_network_merge_keeps_existing_ids_and_adds_new():
    payload = network_payload()
    before = frozen(payload)
    delta = {
        "nodes": [{"id": "n6", "label": "West region"}],
        "edges": [{"id": "e5", "source": "n1", "target": "n6"}],
    }

    merged = merge_network_delta(payload, delta)

    assert frozen(payload) == before
    assert network_node_ids(merged)[:5] == network_node_ids(payload)
    assert "n6" in network_node_ids(merged)
    node_ids = set(network_node_ids(merged))
    for edge in merged["edges"]:
        assert edge["source"] in node_ids and edge["target"] in node_ids


def test_network_merge_rejects_dangling_edge():
    delta = {
        "nodes": [{"id": "n6", "label": "West region"}],
        "edges": [{"id": "e5", "source": "n6", "target": "nowhere"}],
    }
    with pytest.raises(GenerationContractViolation, match="dangling"):
        merge_network_delta(network_payload(), delta)


def test_network_merge_rejects_colliding_node_id():
    delta = {
        "nodes": [{"id": "n2", "label": "Renamed"}],
        "edges": [{"id": "e5", "source": "n1", "target": "n2"}],
    }
    with pytest.raises(GenerationContractViolation, match="collides"):
        merge_network_delta(network_payload(), delta)


def test_network_merge_rejects_colliding_edge_id():
    delta = {
        "nodes": [{"id": "n6", "label": "West"}],
        "edges": [{"id": "e1", "source": "n1", "target": "n6"}],
    }
    with pytest.raises(GenerationContractViolation, match="collides"):
        merge_network_delta(network_payload(), delta)


def test_tree_merge_grows_by_number_of_children():
    payload = mind_map_payload()
    before_count = len(tree_node_ids(payload))
    children = [
        {"id": "co2", "content": "Carbon dioxide"},
        {"id": "chl", "content": "Chlorophyll"},
    ]

    merged = merge_tree_children(VisualizationKind.MIND_MAP, payload, "inputs", children)

    assert len(tree_node_ids(merged)) == before_count + 2
    target = find_tree_node(merged["root"], "inputs")
    assert [c["id"] for c in target["children"]][-2:] == ["co2", "chl"]
    ids = tree_node_ids(merged)
    assert len(ids) == len(set(ids))
    roots = [node for node, _, parent in iter_tree(merged["root"]) if parent is None]
    assert len(roots) == 1


def test_tree_merge_missing_target_leaves_payload_untouched():
    payload = tree_payload()
    before = frozen(payload)
    with pytest.raises(NodeNotFound) as exc_info:
        merge_tree_children(
            VisualizationKind.TREE_DIAGRAM, payload, "missing", [{"id": "x", "content": "X"}]
        )
    assert exc_info.value.node_id == "missing"
    assert frozen(payload) == before


def test_tree_merge_rejects_existing_child_id():
    with pytest.raises(GenerationContractViolation):
        merge_tree_children(
            VisualizationKind.TREE_DIAGRAM, tree_payload(), "eng", [{"id": "ops", "content": "Ops"}]
        )


def test_merge_delta_uses_target_from_delta_when_not_given():
    delta = {"target_id": "eng", "children": [{"id": "be", "content": "Backend"}]}
    merged = merge_delta(VisualizationKind.TREE_DIAGRAM, tree_payload(), delta)
    assert find_tree_node(merged["root"], "eng")["children"][0]["id"] == "be"
