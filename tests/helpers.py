"""Test helpers and fakes for the test suite."""

import copy
import json
import time
from typing import Any, Dict, List, Optional, Sequence

import jwt

from admission.controller import AdmissionController
from admission.kv_store import InMemoryKeyValueStore, KeyValueStoreError
from storage.documents import InMemoryDocumentStore
from viz_agent.pipeline import VisualizationPipeline

TEST_AUDIENCE = "viz-pipeline-tests"


class ScriptedModel:
    """Model client fake: returns queued responses in order and records every call.

    A queued ``Exception`` instance is raised instead of returned; a ``dict`` is
    serialised to JSON first.
    """

    model_name = "scripted-model"

    def __init__(self, *responses: Any):
        self.responses: List[Any] = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def queue(self, *responses: Any) -> "ScriptedModel":
        self.responses.extend(responses)
        return self

    async def complete(
        self,
        system_instruction: str,
        messages: Sequence[Dict[str, str]],
        structured_output: bool = False,
    ) -> str:
        self.calls.append(
            {
                "system_instruction": system_instruction,
                "messages": list(messages),
                "structured_output": structured_output,
            }
        )
        if not self.responses:
            raise AssertionError("ScriptedModel ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, (dict, list)):
            return json.dumps(response)
        return response


class FailingKeyValueStore:
    """Every command fails the way an unreachable Redis does."""

    def __init__(self):
        self.attempts = 0

    async def _fail(self, *args, **kwargs):
        self.attempts += 1
        raise KeyValueStoreError("connection refused")

    get = set = incr = expire = ttl = delete = _fail

    async def ping(self) -> bool:
        return False

    async def close(self) -> None:
        return None


class ManualClock:
    """Monotonic clock for InMemoryKeyValueStore that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ==============================================================================
# SAMPLE PAYLOADS
# ==============================================================================
def network_payload() -> Dict[str, Any]:
    return {
        "nodes": [
            {"id": "n1", "label": "Sales", "category": "primary"},
            {"id": "n2", "label": "North region", "category": "secondary"},
            {"id": "n3", "label": "South region", "category": "secondary"},
            {"id": "n4", "label": "Q1", "category": "tertiary"},
            {"id": "n5", "label": "Q2", "category": "tertiary"},
        ],
        "edges": [
            {"id": "e1", "source": "n1", "target": "n2"},
            {"id": "e2", "source": "n1", "target": "n3"},
            {"id": "e3", "source": "n2", "target": "n4"},
            {"id": "e4", "source": "n3", "target": "n5", "label": "grows in"},
        ],
    }


def mind_map_payload() -> Dict[str, Any]:
    return {
        "root": {
            "id": "root",
            "content": "Photosynthesis",
            "children": [
                {
                    "id": "inputs",
                    "content": "Inputs",
                    "children": [
                        {"id": "light", "content": "Light", "children": []},
                        {"id": "water", "content": "Water", "children": []},
                    ],
                },
                {"id": "outputs", "content": "Outputs", "children": []},
                {"id": "site", "content": "Chloroplast", "children": []},
            ],
        }
    }


def tree_payload() -> Dict[str, Any]:
    return {
        "root": {
            "id": "org",
            "content": "Company",
            "children": [
                {"id": "eng", "content": "Engineering", "children": []},
                {"id": "ops", "content": "Operations", "children": []},
            ],
        }
    }


def timeline_payload() -> Dict[str, Any]:
    return {
        "items": [
            {"id": "i1", "content": "Kickoff", "start": "2024-01-01", "type": "point"},
            {
                "id": "i2",
                "content": "Design",
                "start": "2024-02-01",
                "end": "2024-03-01",
                "type": "range",
                "group": "g1",
            },
        ],
        "groups": [{"id": "g1", "content": "Product"}],
    }


def gantt_payload() -> Dict[str, Any]:
    return {
        "tasks": [
            {
                "id": "t1",
                "name": "Research",
                "start": "2024-01-01",
                "end": "2024-01-31",
                "progress": 100,
                "dependencies": [],
            },
            {
                "id": "t2",
                "name": "Build",
                "start": "2024-02-01",
                "end": "2024-03-15",
                "progress": 40,
                "dependencies": ["t1"],
            },
        ]
    }


def selection(kind: str, visualizable: bool = True, reason: str = "fits the content") -> dict:
    return {"visualizable": visualizable, "kind": kind, "reason": reason}


def frozen(payload: Dict[str, Any]) -> str:
    """Canonical bytes of a payload for identity comparisons."""
    return json.dumps(copy.deepcopy(payload), sort_keys=True)


def deeply_nested_tree_json(depth: int) -> str:
    """Hierarchy response nested ``depth`` nodes deep, past what the JSON decoder recurses into."""
    opening = '{"id": "n", "content": "x", "children": [' * depth
    return '{"root": ' + opening + "]}" * depth + "}"


# ==============================================================================
# WIRING
# ==============================================================================
def make_pipeline(model=None, kv_store="memory", documents=None) -> VisualizationPipeline:
    """Pipeline over in-memory stores; pass ``kv_store=None`` for the unconfigured path."""
    if kv_store == "memory":
        kv_store = InMemoryKeyValueStore()
    return VisualizationPipeline(
        model=model if model is not None else ScriptedModel(),
        admission=AdmissionController(kv_store),
        documents=documents if documents is not None else InMemoryDocumentStore(),
    )


def make_test_token(sub: Optional[str] = "user-1", expires_in: int = 3600, **claims) -> str:
    """Unsigned-issuer test token accepted when USE_TEST_TOKENS=1."""
    payload = {
        "iss": "test_issuer",
        "aud": TEST_AUDIENCE,
        "exp": int(time.time()) + expires_in,
        **claims,
    }
    if sub is not None:
        payload["sub"] = sub
    return jwt.encode(payload, "test-signing-secret-that-is-not-verified-000", algorithm="HS256")
