"""
Answer generation: prompt assembly and the chat model client.

Usage:
    from rag_library.generation import AnswerGenerator, ChatModelClient
"""

from .client import ChatModelClient, llm_config_from_settings
from .generate import (
    AnswerGenerator,
    build_chat_messages,
    build_messages,
    filter_relevant_chunks,
)

__all__ = [
    "AnswerGenerator",
    "ChatModelClient",
    "llm_config_from_settings",
    "build_messages",
    "build_chat_messages",
    "filter_relevant_chunks",
]
