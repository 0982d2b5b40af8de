"""
Models for the text-generation capability.

The answer generator speaks in role/content messages and doesn't know
which backend serves them. ModelSettings is the per-user choice of
backend; it is consumed here, never stored.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

MessageRole = Literal["system", "user", "assistant"]


class GenerationMessage(BaseModel):
    role: MessageRole
    content: str


class ConversationTurn(BaseModel):
    """One turn of a chat history. System turns are never accepted from callers."""

    role: Literal["user", "assistant"]
    content: str


class ModelSettings(BaseModel):
    """
    A user's chat model selection.

    model_key picks the backend ('openai', 'anthropic', 'deepseek',
    'ollama'); the ollama_* fields are only read for Ollama.
    """

    model_key: Optional[str] = None
    api_key: Optional[str] = None
    model_name: Optional[str] = None
    chunk_size: Optional[int] = None
    ollama_host: Optional[str] = None
    ollama_port: Optional[str] = None
    ollama_model: Optional[str] = None


class GenerationRequest(BaseModel):
    messages: list[GenerationMessage]
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    settings: Optional[ModelSettings] = None


class GenerationOutput(BaseModel):
    """What a backend returns: the text plus who produced it."""

    text: str
    provider: str
    model: str
