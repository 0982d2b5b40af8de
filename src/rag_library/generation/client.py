"""
LangChain-backed implementation of the text-generation capability.

The answer generator hands over role/content messages; this client picks
a chat model (per-user ModelSettings when present, LLMConfig otherwise),
converts the messages, and calls it.

Usage:
    from rag_library.generation.client import ChatModelClient

    client = ChatModelClient(LLMConfig(provider="openai", model_name="gpt-4o-mini"))
    output = await client.generate(GenerationRequest(messages=[...]))
"""

import logging
from typing import Any, Callable, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from pydantic import SecretStr

from rag_library.base.generator import BaseGenerationClient
from rag_library.config import LLMConfig, LLMProvider
from rag_library.models.generation import (
    GenerationMessage,
    GenerationOutput,
    GenerationRequest,
    ModelSettings,
)
from rag_library.utils.helpers import get_llm

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_MODEL = "llama3.1"


def llm_config_from_settings(settings: ModelSettings, base: LLMConfig) -> LLMConfig:
    """
    Overlay a user's ModelSettings on the process-wide LLMConfig.

    model_key names a provider ('openai', 'anthropic', 'deepseek', 'ollama').
    Any other non-empty key is taken as an OpenAI model name.
    """
    key = (settings.model_key or "").strip().lower()
    update: dict[str, Any] = {}

    providers = {provider.value: provider for provider in LLMProvider}
    if key in providers:
        update["provider"] = providers[key]
        if settings.model_name:
            update["model_name"] = settings.model_name
    elif key:
        update["provider"] = LLMProvider.OPENAI
        update["model_name"] = settings.model_name or settings.model_key

    if settings.api_key:
        update["api_key"] = SecretStr(settings.api_key)

    if update.get("provider") == LLMProvider.OLLAMA:
        update["model_name"] = settings.ollama_model or settings.model_name or DEFAULT_OLLAMA_MODEL
        if settings.ollama_host:
            host = settings.ollama_host.rstrip("/")
            if "://" not in host:
                host = f"http://{host}"
            port = f":{settings.ollama_port}" if settings.ollama_port else ""
            update["base_url"] = f"{host}{port}/v1"

    return base.model_copy(update=update)


def to_langchain_messages(messages: list[GenerationMessage]) -> list[BaseMessage]:
    converted: list[BaseMessage] = []
    for message in messages:
        if message.role == "system":
            converted.append(SystemMessage(content=message.content))
        elif message.role == "assistant":
            converted.append(AIMessage(content=message.content))
        else:
            converted.append(HumanMessage(content=message.content))
    return converted


def message_text(response: Any) -> str:
    """Text of a chat model reply; block lists (Anthropic) are joined."""
    content = response.content if hasattr(response, "content") else response
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return str(content)


class ChatModelClient(BaseGenerationClient):
    """
    BaseGenerationClient over LangChain chat models.

    Args:
        config: Default provider/model when a request carries no settings.
        llm_factory: LLMConfig -> BaseChatModel. Defaults to get_llm.
    """

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        llm_factory: Callable[[LLMConfig], BaseChatModel] = get_llm,
    ):
        self._config = config or LLMConfig()
        self._llm_factory = llm_factory

    def resolve_config(self, request: GenerationRequest) -> LLMConfig:
        config = self._config
        if request.settings is not None:
            config = llm_config_from_settings(request.settings, config)

        update: dict[str, Any] = {}
        if request.temperature is not None:
            update["temperature"] = request.temperature
        if request.max_tokens is not None:
            update["max_tokens"] = request.max_tokens
        return config.model_copy(update=update) if update else config

    async def generate(self, request: GenerationRequest) -> GenerationOutput:
        config = self.resolve_config(request)
        llm = self._llm_factory(config)

        logger.debug(
            "Generating with %s/%s (%d messages)",
            config.provider.value, config.model_name, len(request.messages),
        )
        response = await llm.ainvoke(to_langchain_messages(request.messages))

        return GenerationOutput(
            text=message_text(response),
            provider=config.provider.value,
            model=config.model_name,
        )
