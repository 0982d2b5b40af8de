"""
Abstract base class for the text-generation capability.

The answer generator builds prompts; something else turns messages into
text. That something is this contract. It is provider-agnostic:
the generator never learns whether OpenAI, Anthropic or a local
Ollama server answered, except through the provider/model fields of the
output.
"""

from abc import ABC, abstractmethod

from rag_library.models.generation import GenerationOutput, GenerationRequest


class BaseGenerationClient(ABC):
    """Contract for "generate text from a message list"."""

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> GenerationOutput:
        """
        Produce a completion for the request's messages.

        Args:
            request: Messages plus temperature/max_tokens and optional
                per-user ModelSettings.

        Returns:
            GenerationOutput with the text, provider and model.
        """
        ...
