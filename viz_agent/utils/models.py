import asyncio
import os
from typing import Dict, List, Optional, Sequence

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import AzureChatOpenAI, ChatOpenAI

from api.utils.debug import print__model_debug
from viz_agent.utils.errors import GenerationContractViolation, UpstreamUnavailable

DEFAULT_MODEL_NAME = os.environ.get("VIZ_MODEL_NAME", "gpt-4o-mini")
DEFAULT_TEMPERATURE = float(os.environ.get("VIZ_MODEL_TEMPERATURE", "0.7"))
MODEL_TIMEOUT_SECONDS = float(os.environ.get("MODEL_TIMEOUT_SECONDS", "60"))


# ===============================================================================
# OpenAI Chat Models
# ===============================================================================
def get_openai_chat_llm(
    model_name: str = DEFAULT_MODEL_NAME,
    temperature: Optional[float] = DEFAULT_TEMPERATURE,
) -> ChatOpenAI:
    """Get an instance of OpenAI Chat LLM with configurable parameters.

    The returned model instance supports both sync (invoke) and async (ainvoke)
    operations for flexibility in different execution contexts.

    Args:
        model_name (str): OpenAI model name (e.g., "gpt-4o-mini", "gpt-4o")
        temperature (float): Temperature setting for generation randomness

    Returns:
        ChatOpenAI: Configured LLM instance with async support
    """
    return ChatOpenAI(
        model=model_name,
        temperature=temperature,
        api_key=os.getenv("OPENAI_API_KEY"),
    )


# ===============================================================================
# Azure Chat Models
# ===============================================================================
def get_azure_openai_chat_llm(
    deployment_name: str,
    model_name: str,
    openai_api_version: str,
    temperature: Optional[float] = DEFAULT_TEMPERATURE,
) -> AzureChatOpenAI:
    """Get an instance of Azure OpenAI Chat LLM with configurable parameters.

    Args:
        deployment_name (str): Azure deployment name (e.g., "gpt-4o-mini__viz")
        model_name (str): Model name (e.g., "gpt-4o-mini")
        openai_api_version (str): Azure OpenAI API version (e.g., "2024-05-01-preview")
        temperature (float): Temperature setting for generation randomness

    Returns:
        AzureChatOpenAI: Configured LLM instance with async support
    """
    return AzureChatOpenAI(
        deployment_name=deployment_name,
        model_name=model_name,
        openai_api_version=openai_api_version,
        temperature=temperature,
        azure_endpoint=os.getenv("AZURE_OPENAI_ENDPOINT"),
        api_key=os.getenv("AZURE_OPENAI_API_KEY"),
    )


def get_default_llm():
    """Pick the chat model from VIZ_LLM_PROVIDER ("openai" or "azure")."""
    provider = os.environ.get("VIZ_LLM_PROVIDER", "openai").lower()
    if provider == "azure":
        return get_azure_openai_chat_llm(
            deployment_name=os.environ.get("AZURE_OPENAI_DEPLOYMENT", DEFAULT_MODEL_NAME),
            model_name=DEFAULT_MODEL_NAME,
            openai_api_version=os.environ.get(
                "AZURE_OPENAI_API_VERSION", "2024-05-01-preview"
            ),
        )
    return get_openai_chat_llm()


# ===============================================================================
# Model collaborator
# ===============================================================================
def build_messages(
    system_instruction: str, messages: Sequence[Dict[str, str]]
) -> List[BaseMessage]:
    """Turn ``[{"role": ..., "content": ...}]`` dicts into LangChain messages."""
    built: List[BaseMessage] = [SystemMessage(content=system_instruction)]
    for message in messages:
        if message["role"] == "assistant":
            built.append(AIMessage(content=message["content"]))
        else:
            built.append(HumanMessage(content=message["content"]))
    return built


class ModelClient:
    """complete(system_instruction, messages, structured_output) -> raw text.

    The text is untrusted; callers validate it before use.
    """

    def __init__(self, llm=None, timeout: float = MODEL_TIMEOUT_SECONDS, model_name: str = DEFAULT_MODEL_NAME):
        self.llm = llm if llm is not None else get_default_llm()
        self.timeout = timeout
        self.model_name = model_name

    async def complete(
        self,
        system_instruction: str,
        messages: Sequence[Dict[str, str]],
        structured_output: bool = False,
    ) -> str:
        llm = self.llm
        if structured_output:
            llm = llm.bind(response_format={"type": "json_object"})

        print__model_debug(
            f"🤖 MODEL CALL: {len(messages)} message(s), structured={structured_output}"
        )
        try:
            result = await asyncio.wait_for(
                llm.ainvoke(build_messages(system_instruction, messages)),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            print__model_debug(f"⏰ MODEL TIMEOUT after {self.timeout}s")
            raise UpstreamUnavailable(f"model call timed out after {self.timeout}s") from exc
        except Exception as exc:  # pylint: disable=broad-except
            print__model_debug(f"❌ MODEL ERROR: {type(exc).__name__}: {exc}")
            raise UpstreamUnavailable(f"model call failed: {type(exc).__name__}") from exc

        content = getattr(result, "content", result)
        if not isinstance(content, str) or not content.strip():
            raise GenerationContractViolation("model returned an empty completion")
        print__model_debug(f"✅ MODEL RESPONSE: {len(content)} chars")
        return content
