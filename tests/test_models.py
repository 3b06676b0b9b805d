"""
Model collaborator over a mocked LangChain chat model.
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

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from viz_agent.utils.errors import GenerationContractViolation, UpstreamUnavailable
from viz_agent.utils.models import ModelClient, build_messages


def _llm(response="{}"):
    llm = MagicMock()
    llm.ainvoke = AsyncMock(return_value=AIMessage(content=response))
    bound = MagicMock()
    bound.ainvoke = AsyncMock(return_value=AIMessage(content=response))
    llm.bind.return_value = bound
    return llm, bound


def test_build_messages_replays_roles():
    built = build_messages(
        "system text",
        [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
    )

    assert [type(m) for m in built] == [SystemMessage, HumanMessage, AIMessage]
    assert built[2].content == "hello"


@pytest.mark.asyncio
async def test_structured_output_binds_json_response_format():
    llm, bound = _llm('{"kind": "timeline"}')
    client = ModelClient(llm=llm)

    text = await client.complete("pick", [{"role": "user", "content": "x"}], structured_output=True)

    assert text == '{"kind": "timeline"}'
    llm.bind.assert_called_once_with(response_format={"type": "json_object"})
    bound.ainvoke.assert_awaited_once()
    llm.ainvoke.assert_not_awaited()


@pytest.mark.asyncio
async def test_plain_output_uses_unbound_model():
    llm, _ = _llm("plain")

    assert await ModelClient(llm=llm).complete("s", []) == "plain"
    llm.bind.assert_not_called()


@pytest.mark.asyncio
async def test_provider_error_is_upstream_unavailable():
    llm, _ = _llm()
    llm.ainvoke.side_effect = ConnectionError("reset by peer")

    with pytest.raises(UpstreamUnavailable):
        await ModelClient(llm=llm).complete("s", [])


@pytest.mark.asyncio
async def test_timeout_is_upstream_unavailable():
    llm = MagicMock()

    async def _slow(_messages):
        await asyncio.sleep(1)

    llm.ainvoke = _slow

    with pytest.raises(UpstreamUnavailable, match="timed out"):
        await ModelClient(llm=llm, timeout=0.01).complete("s", [])


@pytest.mark.asyncio
async def test_empty_completion_is_contract_violation():
    llm, _ = _llm("   ")

    with pytest.raises(GenerationContractViolation):
        await ModelClient(llm=llm).complete("s", [])
