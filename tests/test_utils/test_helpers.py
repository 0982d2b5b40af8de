"""Tests for utility helpers."""

from unittest.mock import MagicMock, patch

import pytest

from rag_library.config import LLMConfig, LLMProvider
from rag_library.utils.helpers import DEEPSEEK_BASE_URL, OLLAMA_BASE_URL, clamp_limit, get_llm


class TestGetLLM:

    @patch("langchain_openai.ChatOpenAI")
    def test_openai_provider(self, mock_openai_cls):
        """Should instantiate ChatOpenAI for openai provider."""
        mock_openai_cls.return_value = MagicMock()
        config = LLMConfig(provider="openai", model_name="gpt-4o-mini", temperature=0.0, max_tokens=4000)
        get_llm(config)

        mock_openai_cls.assert_called_once_with(
            model="gpt-4o-mini", temperature=0.0, max_tokens=4000,
        )

    @patch("langchain_openai.ChatOpenAI")
    def test_openai_with_key_and_base_url(self, mock_openai_cls):
        config = LLMConfig(
            provider="openai", model_name="gpt-4o-mini", api_key="sk-test", base_url="http://proxy/v1",
        )
        get_llm(config)

        kwargs = mock_openai_cls.call_args.kwargs
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["base_url"] == "http://proxy/v1"

    @patch("langchain_anthropic.ChatAnthropic")
    def test_anthropic_provider(self, mock_anthropic_cls):
        """Should instantiate ChatAnthropic for anthropic provider."""
        config = LLMConfig(
            provider="anthropic", model_name="claude-sonnet-4-5-20250929", temperature=0.0, max_tokens=4000,
        )
        get_llm(config)

        mock_anthropic_cls.assert_called_once_with(
            model="claude-sonnet-4-5-20250929", temperature=0.0, max_tokens=4000,
        )

    @patch("langchain_openai.ChatOpenAI")
    def test_deepseek_uses_openai_protocol(self, mock_openai_cls):
        get_llm(LLMConfig(provider="deepseek", model_name="deepseek-chat", api_key="ds"))

        assert mock_openai_cls.call_args.kwargs["base_url"] == DEEPSEEK_BASE_URL

    @patch("langchain_openai.ChatOpenAI")
    def test_ollama_gets_placeholder_key(self, mock_openai_cls):
        get_llm(LLMConfig(provider=LLMProvider.OLLAMA, model_name="llama3.1"))

        kwargs = mock_openai_cls.call_args.kwargs
        assert kwargs["api_key"] == "ollama"
        assert kwargs["base_url"] == OLLAMA_BASE_URL

    def test_unknown_provider_raises(self):
        """Unknown provider should raise ValueError."""
        # Create a config with valid enum then override
        config = LLMConfig()
        config.provider = "unsupported"
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            get_llm(config)


class TestClampLimit:

    @pytest.mark.parametrize(
        "requested, expected",
        [
            (None, 10),
            (5, 5),
            (5.9, 5),
            (0, 1),
            (-3, 1),
            (99, 50),
            (float("nan"), 10),
            (float("-inf"), 10),
            ("7", 7),
            ("many", 10),
            (True, 10),
        ],
    )
    def test_clamping(self, requested, expected):
        assert clamp_limit(requested, default=10, low=1, high=50) == expected
