"""
Answer generation from reranked library chunks.

The last stage of the pipeline: number the chunks as sources, tell the
model to answer only from them, and return the text with whoever
produced it.

Three modes:
    - Grounded: question + chunks → "Source 1 ... Source N" prompt,
      answers cite [S1], [S2] and say "I don't know" when the sources
      don't cover the question.
    - Direct: question only. Used when nothing cleared the relevance gate.
    - Chat: the last few turns of a conversation + chunks. Sources are
      folded into the latest user turn, not the system prompt, so the
      grounding stays attached to the question being asked now.

Source block format:

    Source 1: refund-policy.pdf
    Chunk ID: 6f0c...
    Refunds are issued within 14 days of ...

Usage:
    from rag_library.generation.generate import AnswerGenerator

    generator = AnswerGenerator(ChatModelClient(LLMConfig()))
    relevant = filter_relevant_chunks(reranked, min_score=0.35)
    answer = await generator.generate_answer_from_chunks(question, relevant)
"""

import logging
from typing import Optional, Sequence

from rag_library.base.generator import BaseGenerationClient
from rag_library.config import AnswerConfig
from rag_library.errors import InvalidConversation, InvalidQuery, NoSources
from rag_library.models.document import RetrievedChunk
from rag_library.models.generation import (
    ConversationTurn,
    GenerationMessage,
    GenerationRequest,
    ModelSettings,
)
from rag_library.models.result import AnswerPayload

logger = logging.getLogger(__name__)

GROUNDED_SYSTEM_PROMPT = (
    "You are a retrieval-augmented assistant. Use ONLY the provided sources to answer "
    "the user's question. Cite sources using [S1], [S2], etc. If the answer is not in "
    "the sources, say \"I don't know\"."
)

CHAT_SYSTEM_PROMPT = (
    "You are a retrieval-augmented assistant in an ongoing conversation. The latest user "
    "message includes numbered sources. Use ONLY those sources to answer it, cite them "
    "using [S1], [S2], etc., and say \"I don't know\" if the sources do not contain the answer."
)

DIRECT_SYSTEM_PROMPT = (
    "You are a helpful assistant. Answer the user's question clearly and concisely. "
    "If you are not sure of the answer, say so."
)

NO_CONTENT = "No content available."


# ---------------------------------------------------------------------------
# Prompt assembly
# ---------------------------------------------------------------------------

def build_source_block(chunk: RetrievedChunk, index: int) -> str:
    """One numbered source; index is zero-based, labels start at 1."""
    label = index + 1
    title = chunk.document_name or f"Source {label}"
    content = (chunk.content or "").strip() or NO_CONTENT
    return "\n".join([f"Source {label}: {title}", f"Chunk ID: {chunk.id}", content])


def build_sources(chunks: Sequence[RetrievedChunk]) -> str:
    return "\n\n".join(build_source_block(chunk, i) for i, chunk in enumerate(chunks))


def build_messages(question: str, chunks: Sequence[RetrievedChunk]) -> list[GenerationMessage]:
    user = "\n".join([
        f"Question: {question.strip()}",
        "",
        "Sources:",
        build_sources(chunks),
        "",
        "Answer:",
    ])
    return [
        GenerationMessage(role="system", content=GROUNDED_SYSTEM_PROMPT),
        GenerationMessage(role="user", content=user),
    ]


def build_direct_messages(question: str) -> list[GenerationMessage]:
    return [
        GenerationMessage(role="system", content=DIRECT_SYSTEM_PROMPT),
        GenerationMessage(role="user", content=question.strip()),
    ]


def recent_turns(turns: Sequence[ConversationTurn], max_turns: int) -> list[ConversationTurn]:
    """
    Drop blank turns, trim the rest, keep the last max_turns.

    Raises:
        InvalidConversation: Nothing left, or the latest turn isn't the user's.
    """
    kept = [
        ConversationTurn(role=turn.role, content=turn.content.strip())
        for turn in turns
        if turn.content and turn.content.strip()
    ]
    kept = kept[-max_turns:] if max_turns > 0 else kept

    if not kept or kept[-1].role != "user":
        raise InvalidConversation("A user message is required to start a chat.")
    return kept


def build_chat_messages(
    turns: Sequence[ConversationTurn],
    chunks: Sequence[RetrievedChunk],
    max_turns: int = 8,
) -> list[GenerationMessage]:
    history = recent_turns(turns, max_turns)
    latest = history[-1]

    grounded_latest = "\n".join([
        latest.content,
        "",
        "Sources:",
        build_sources(chunks),
        "",
        "Answer using only the sources above and cite them as [S1], [S2], etc.",
    ])

    messages = [GenerationMessage(role="system", content=CHAT_SYSTEM_PROMPT)]
    messages.extend(GenerationMessage(role=t.role, content=t.content) for t in history[:-1])
    messages.append(GenerationMessage(role="user", content=grounded_latest))
    return messages


def filter_relevant_chunks(
    chunks: Sequence[RetrievedChunk],
    min_score: float = 0.35,
) -> list[RetrievedChunk]:
    """Relevance gate: keep chunks whose cross-encoder score reaches min_score."""
    return [chunk for chunk in chunks if (chunk.cross_score or 0.0) >= min_score]


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

class AnswerGenerator:
    """
    Builds prompts for each answer mode and calls the generation client.

    Args:
        client: Any BaseGenerationClient (ChatModelClient in production).
        config: Temperature, max tokens, chat window size.
    """

    def __init__(self, client: BaseGenerationClient, config: Optional[AnswerConfig] = None):
        self._client = client
        self._config = config or AnswerConfig()

    async def _complete(
        self,
        messages: list[GenerationMessage],
        settings: Optional[ModelSettings],
    ) -> AnswerPayload:
        output = await self._client.generate(
            GenerationRequest(
                messages=messages,
                temperature=self._config.temperature,
                max_tokens=self._config.max_tokens,
                settings=settings,
            )
        )
        return AnswerPayload(text=output.text.strip(), provider=output.provider, model=output.model)

    async def generate_answer_from_chunks(
        self,
        question: str,
        chunks: Sequence[RetrievedChunk],
        settings: Optional[ModelSettings] = None,
    ) -> AnswerPayload:
        """
        Answer a single question from numbered sources.

        Raises:
            NoSources: chunks is empty.
            InvalidQuery: question is blank.
        """
        if not chunks:
            raise NoSources()
        if not (question or "").strip():
            raise InvalidQuery("Question text is required.")

        return await self._complete(build_messages(question, chunks), settings)

    async def generate_direct_answer(
        self,
        question: str,
        settings: Optional[ModelSettings] = None,
    ) -> AnswerPayload:
        """Answer without sources (nothing passed the relevance gate)."""
        if not (question or "").strip():
            raise InvalidQuery("Question text is required.")

        logger.debug("No relevant sources; answering directly")
        return await self._complete(build_direct_messages(question), settings)

    async def generate_chat_answer_from_chunks(
        self,
        turns: Sequence[ConversationTurn],
        chunks: Sequence[RetrievedChunk],
        settings: Optional[ModelSettings] = None,
    ) -> AnswerPayload:
        """
        Answer the latest user turn of a conversation from numbered sources.

        Raises:
            NoSources: chunks is empty.
            InvalidConversation: No usable turns, or the latest isn't from the user.
        """
        if not chunks:
            raise NoSources()

        messages = build_chat_messages(turns, chunks, self._config.max_chat_turns)
        return await self._complete(messages, settings)
