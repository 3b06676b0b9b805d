"""Merging AI-produced deltas into an existing payload.

Merges are additive and never touch the caller's payload: each function works
on a deep copy and returns a new payload, or raises before anything is built.
"""

import copy
from typing import Any, Dict, List, Optional

from viz_agent.utils.document import VisualizationKind
from viz_agent.utils.errors import GenerationContractViolation, NodeNotFound
from viz_agent.utils.schemas import iter_tree, validate


def network_node_ids(payload: Dict[str, Any]) -> List[str]:
    return [node["id"] for node in payload["nodes"]]


def tree_node_ids(payload: Dict[str, Any]) -> List[str]:
    return [node["id"] for node, _, _ in iter_tree(payload["root"])]


def find_tree_node(root: Dict[str, Any], node_id: str) -> Dict[str, Any]:
    """Depth-first search by id; raises NodeNotFound."""
    for node, _, _ in iter_tree(root):
        if node["id"] == node_id:
            return node
    raise NodeNotFound(node_id)


def find_network_node(payload: Dict[str, Any], node_id: str) -> Dict[str, Any]:
    for node in payload["nodes"]:
        if node["id"] == node_id:
            return node
    raise NodeNotFound(node_id)


# ==============================================================================
# NETWORK GRAPH
# ==============================================================================
def merge_network_delta(
    payload: Dict[str, Any], delta: Dict[str, Any]
) -> Dict[str, Any]:
    """Append new nodes/edges. Existing ids are left exactly as they were.

    Rejects (never drops) a new id that collides with an existing one and any
    edge whose endpoint is neither an existing node nor one of the new nodes.
    """
    existing_node_ids = set(network_node_ids(payload))
    existing_edge_ids = {edge["id"] for edge in payload["edges"]}

    for node in delta["nodes"]:
        if node["id"] in existing_node_ids:
            raise GenerationContractViolation(
                f"new node id '{node['id']}' collides with an existing node"
            )
    known_ids = existing_node_ids | {node["id"] for node in delta["nodes"]}
    for edge in delta["edges"]:
        if edge["id"] in existing_edge_ids:
            raise GenerationContractViolation(
                f"new edge id '{edge['id']}' collides with an existing edge"
            )
        if edge["source"] not in known_ids or edge["target"] not in known_ids:
            raise GenerationContractViolation(
                f"new edge '{edge['id']}' has a dangling endpoint"
            )

    merged = copy.deepcopy(payload)
    merged["nodes"].extend(copy.deepcopy(delta["nodes"]))
    merged["edges"].extend(copy.deepcopy(delta["edges"]))
    return validate(VisualizationKind.NETWORK_GRAPH, merged)


# ==============================================================================
# HIERARCHICAL
# ==============================================================================
def merge_tree_children(
    kind: VisualizationKind,
    payload: Dict[str, Any],
    target_id: str,
    children: List[Dict[str, Any]],
) -> Dict[str, Any]:
    """Append ``children`` under ``target_id`` in a fresh copy of the tree.

    Raises NodeNotFound when the target is absent; the input payload is never
    mutated, so a failed merge leaves it byte-for-byte unchanged.
    """
    existing_ids = set(tree_node_ids(payload))
    if target_id not in existing_ids:
        raise NodeNotFound(target_id)
    for child in children:
        if child["id"] in existing_ids:
            raise GenerationContractViolation(
                f"new child id '{child['id']}' collides with an existing node"
            )

    merged = copy.deepcopy(payload)
    target = find_tree_node(merged["root"], target_id)
    for child in children:
        new_child = copy.deepcopy(child)
        new_child["children"] = []
        target.setdefault("children", []).append(new_child)
    return validate(kind, merged)


def merge_delta(
    kind: VisualizationKind,
    payload: Dict[str, Any],
    delta: Dict[str, Any],
    target_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Dispatch a validated delta to the merge for its kind."""
    if kind == VisualizationKind.NETWORK_GRAPH:
        return merge_network_delta(payload, delta)
    return merge_tree_children(
        kind, payload, target_id or delta["target_id"], delta["children"]
    )
