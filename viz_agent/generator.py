"""Structured Generator: one generation strategy per visualization kind.

A strategy is the pair (instruction contract, schema + bounds). The generator
performs exactly one model call per invocation and never loops on failure;
retrying means calling ``generate`` again.
"""

from typing import Any, Dict

from api.utils.debug import print__pipeline_debug
from viz_agent.utils.document import VisualizationKind
from viz_agent.utils.errors import returns_outcome
from viz_agent.utils.prompts import GENERATION_PROMPTS
from viz_agent.utils.schemas import check_bounds, coerce_kind, validate


async def generate_payload(kind: Any, input_text: str, model) -> Dict[str, Any]:
    """Return a payload that satisfies both the schema and the bounds for ``kind``."""
    kind: VisualizationKind = coerce_kind(kind)
    print__pipeline_debug(f"🏗️ GENERATE: kind={kind.value}, input={len(input_text)} chars")

    raw = await model.complete(
        GENERATION_PROMPTS[kind],
        [{"role": "user", "content": input_text}],
        structured_output=True,
    )
    payload = validate(kind, raw)
    check_bounds(kind, payload)

    print__pipeline_debug(f"✅ GENERATE: {kind.value} payload accepted")
    return payload


generate = returns_outcome(generate_payload)
