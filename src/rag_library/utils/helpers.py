"""
Shared utility functions.

Helpers used across the library: the chat model factory and small
numeric helpers shared by search and reranking.
"""

import math
from typing import Optional

from langchain_core.language_models.chat_models import BaseChatModel

from rag_library.config import LLMConfig, LLMProvider

DEEPSEEK_BASE_URL = "https://api.deepseek.com"
OLLAMA_BASE_URL = "http://127.0.0.1:11434/v1"


def get_llm(config: LLMConfig) -> BaseChatModel:
    """
    Factory that returns a LangChain chat model based on config.

    Lazy imports so you only need the package for the provider you
    actually use. DeepSeek and Ollama speak the OpenAI wire protocol, so
    they get ChatOpenAI pointed at their own base URL.

    Args:
        config: LLMConfig with provider, model_name, temperature, max_tokens.

    Returns:
        A LangChain BaseChatModel instance.
    """
    api_key = config.api_key.get_secret_value() if config.api_key else None

    if config.provider == LLMProvider.OPENAI:
        from langchain_openai import ChatOpenAI

        kwargs = {}
        if api_key:
            kwargs["api_key"] = api_key
        if config.base_url:
            kwargs["base_url"] = config.base_url
        return ChatOpenAI(
            model=config.model_name,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            **kwargs,
        )

    elif config.provider == LLMProvider.ANTHROPIC:
        from langchain_anthropic import ChatAnthropic

        kwargs = {"api_key": api_key} if api_key else {}
        return ChatAnthropic(
            model=config.model_name,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            **kwargs,
        )

    elif config.provider == LLMProvider.DEEPSEEK:
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=config.model_name,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            api_key=api_key,
            base_url=config.base_url or DEEPSEEK_BASE_URL,
        )

    elif config.provider == LLMProvider.OLLAMA:
        from langchain_openai import ChatOpenAI

        # Ollama ignores the key, but the OpenAI client refuses to start without one
        return ChatOpenAI(
            model=config.model_name,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            api_key=api_key or "ollama",
            base_url=config.base_url or OLLAMA_BASE_URL,
        )

    else:
        raise ValueError(
            f"Unknown LLM provider: '{config.provider}'. "
            f"Supported: 'openai', 'anthropic', 'deepseek', 'ollama'."
        )


def clamp_limit(requested: Optional[float], default: int, low: int, high: int) -> int:
    """
    Turn a caller-supplied limit into an int within [low, high].

    None, NaN and infinities fall back to default; fractions are floored.
    """
    if requested is None or isinstance(requested, bool):
        return default
    try:
        value = float(requested)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(value):
        return default
    return min(max(math.floor(value), low), high)
