"""Tests for prompt assembly and AnswerGenerator: generation client is mocked."""

import asyncio

import pytest

from rag_library.config import AnswerConfig
from rag_library.errors import InvalidConversation, InvalidQuery, NoSources
from rag_library.generation.generate import (
    CHAT_SYSTEM_PROMPT,
    DIRECT_SYSTEM_PROMPT,
    GROUNDED_SYSTEM_PROMPT,
    AnswerGenerator,
    build_chat_messages,
    build_messages,
    build_source_block,
    filter_relevant_chunks,
    recent_turns,
)
from rag_library.models.document import RetrievedChunk
from rag_library.models.generation import ConversationTurn, ModelSettings


def _turns(*pairs):
    return [ConversationTurn(role=role, content=content) for role, content in pairs]


def _sent_request(client):
    return client.generate.await_args.args[0]


class TestSourceBlocks:

    def test_block_format(self, sample_retrieved_chunks):
        block = build_source_block(sample_retrieved_chunks[0], 0)

        assert block == "Source 1: policy.pdf\nChunk ID: c1\nRefunds are issued within 14 days."

    def test_missing_document_name_uses_label(self, sample_retrieved_chunks):
        block = build_source_block(sample_retrieved_chunks[4], 4)

        assert block.startswith("Source 5: Source 5\n")

    def test_empty_content_placeholder(self):
        chunk = RetrievedChunk(id="x", score=0.5, content="   ", document_name="notes.txt")

        assert build_source_block(chunk, 1).endswith("No content available.")

    def test_grounded_messages(self, sample_retrieved_chunks):
        messages = build_messages("  What is the refund window? ", sample_retrieved_chunks[:2])

        assert [m.role for m in messages] == ["system", "user"]
        assert messages[0].content == GROUNDED_SYSTEM_PROMPT
        user = messages[1].content
        assert user.startswith("Question: What is the refund window?\n\nSources:\nSource 1: policy.pdf")
        assert "Source 2: policy.pdf\nChunk ID: c2" in user
        assert user.endswith("\n\nAnswer:")

    def test_prompt_demands_citations(self):
        assert "[S1]" in GROUNDED_SYSTEM_PROMPT
        assert "I don't know" in GROUNDED_SYSTEM_PROMPT


class TestRecentTurns:

    def test_keeps_last_turns(self):
        turns = _turns(*[("user" if i % 2 == 0 else "assistant", f"turn {i}") for i in range(11)])

        kept = recent_turns(turns, 8)

        assert [t.content for t in kept] == [f"turn {i}" for i in range(3, 11)]

    def test_blank_turns_dropped_and_trimmed(self):
        turns = _turns(("user", "  hi  "), ("assistant", "   "), ("user", " refunds? "))

        kept = recent_turns(turns, 8)

        assert [(t.role, t.content) for t in kept] == [("user", "hi"), ("user", "refunds?")]

    @pytest.mark.parametrize(
        "turns",
        [
            [],
            _turns(("user", "   ")),
            _turns(("user", "hi"), ("assistant", "hello")),
        ],
    )
    def test_requires_latest_user_turn(self, turns):
        with pytest.raises(InvalidConversation):
            recent_turns(turns, 8)


class TestChatMessages:

    def test_sources_folded_into_latest_turn(self, sample_retrieved_chunks):
        turns = _turns(("user", "Hi"), ("assistant", "Hello!"), ("user", "How long do refunds take?"))

        messages = build_chat_messages(turns, sample_retrieved_chunks[:1])

        assert messages[0].role == "system"
        assert messages[0].content == CHAT_SYSTEM_PROMPT
        assert [(m.role, m.content) for m in messages[1:3]] == [("user", "Hi"), ("assistant", "Hello!")]
        latest = messages[-1]
        assert latest.role == "user"
        assert latest.content.startswith("How long do refunds take?\n\nSources:\nSource 1: policy.pdf")
        assert "Source" not in messages[1].content

    def test_window_applies_before_folding(self, sample_retrieved_chunks):
        turns = _turns(*[("user" if i % 2 == 0 else "assistant", f"turn {i}") for i in range(5)])

        messages = build_chat_messages(turns, sample_retrieved_chunks[:1], max_turns=2)

        assert [m.content.split("\n")[0] for m in messages[1:]] == ["turn 3", "turn 4"]


class TestFilterRelevantChunks:

    def test_gate_on_cross_score(self, sample_retrieved_chunks):
        scored = [
            c.model_copy(update={"cross_score": s})
            for c, s in zip(sample_retrieved_chunks, [0.9, 0.35, 0.34, None, 0.0])
        ]

        kept = filter_relevant_chunks(scored)

        assert [c.id for c in kept] == ["c1", "c2"]

    def test_custom_threshold(self, sample_retrieved_chunks):
        scored = [c.model_copy(update={"cross_score": 0.5}) for c in sample_retrieved_chunks]

        assert filter_relevant_chunks(scored, min_score=0.6) == []


class TestAnswerGenerator:

    def test_grounded_answer(self, mock_generation_client, sample_retrieved_chunks):
        generator = AnswerGenerator(mock_generation_client, AnswerConfig(temperature=0.1, max_tokens=300))

        answer = asyncio.run(generator.generate_answer_from_chunks("Refund window?", sample_retrieved_chunks))

        assert answer.text == "Refunds take 14 days [S1]."
        assert answer.provider == "openai"
        assert answer.model == "gpt-4o-mini"
        request = _sent_request(mock_generation_client)
        assert request.temperature == 0.1
        assert request.max_tokens == 300
        assert request.messages[0].content == GROUNDED_SYSTEM_PROMPT

    def test_settings_passed_through(self, mock_generation_client, sample_retrieved_chunks):
        settings = ModelSettings(model_key="anthropic", model_name="claude-3-5-haiku-latest")
        generator = AnswerGenerator(mock_generation_client)

        asyncio.run(generator.generate_answer_from_chunks("Refunds?", sample_retrieved_chunks, settings))

        assert _sent_request(mock_generation_client).settings == settings

    def test_no_sources(self, mock_generation_client):
        generator = AnswerGenerator(mock_generation_client)

        with pytest.raises(NoSources):
            asyncio.run(generator.generate_answer_from_chunks("Refunds?", []))
        mock_generation_client.generate.assert_not_called()

    def test_no_sources_checked_before_question(self, mock_generation_client):
        with pytest.raises(NoSources):
            asyncio.run(AnswerGenerator(mock_generation_client).generate_answer_from_chunks("", []))

    def test_blank_question(self, mock_generation_client, sample_retrieved_chunks):
        with pytest.raises(InvalidQuery):
            asyncio.run(
                AnswerGenerator(mock_generation_client).generate_answer_from_chunks(" ", sample_retrieved_chunks)
            )

    def test_direct_answer(self, mock_generation_client):
        answer = asyncio.run(AnswerGenerator(mock_generation_client).generate_direct_answer(" What is RAG? "))

        messages = _sent_request(mock_generation_client).messages
        assert [m.content for m in messages] == [DIRECT_SYSTEM_PROMPT, "What is RAG?"]
        assert answer.text == "Refunds take 14 days [S1]."

    def test_chat_answer_uses_window(self, mock_generation_client, sample_retrieved_chunks):
        turns = _turns(*[("user" if i % 2 == 0 else "assistant", f"turn {i}") for i in range(11)])
        generator = AnswerGenerator(mock_generation_client, AnswerConfig(max_chat_turns=4))

        asyncio.run(generator.generate_chat_answer_from_chunks(turns, sample_retrieved_chunks[:2]))

        messages = _sent_request(mock_generation_client).messages
        assert len(messages) == 1 + 4
        assert messages[1].content == "turn 7"

    def test_chat_without_sources(self, mock_generation_client):
        with pytest.raises(NoSources):
            asyncio.run(
                AnswerGenerator(mock_generation_client).generate_chat_answer_from_chunks(
                    _turns(("user", "hi")), []
                )
            )

    def test_chat_ending_with_assistant(self, mock_generation_client, sample_retrieved_chunks):
        turns = _turns(("user", "hi"), ("assistant", "hello"))

        with pytest.raises(InvalidConversation):
            asyncio.run(
                AnswerGenerator(mock_generation_client).generate_chat_answer_from_chunks(
                    turns, sample_retrieved_chunks
                )
            )
