"""Tests for the embedding factory and provider: models mocked or faked."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from rag_library.config import EmbeddingConfig, LibraryConfig
from rag_library.errors import (
    DependencyMissing,
    DimensionMismatch,
    EmbeddingCountMismatch,
    EmptyEmbedding,
    ModelUnavailable,
)
from rag_library.indexing.embeddings import EmbeddingProvider, get_embedding_model, wrap_embedding_error
from rag_library.registry import ModelRegistry


def _registry_with(model):
    return ModelRegistry(LibraryConfig(), embedding_factory=lambda cfg: model)


class TestGetEmbeddingModel:

    @patch("langchain_huggingface.HuggingFaceEmbeddings")
    def test_huggingface_passes_cache_and_offline_flags(self, mock_hf, tmp_path):
        config = EmbeddingConfig(provider="huggingface", model_name="BAAI/bge-m3",
                                 cache_dir=str(tmp_path / "cache"), local_files_only=True)

        get_embedding_model(config)

        kwargs = mock_hf.call_args.kwargs
        assert kwargs["model_name"] == "BAAI/bge-m3"
        assert kwargs["cache_folder"] == str(tmp_path / "cache")
        assert kwargs["model_kwargs"]["local_files_only"] is True
        assert kwargs["encode_kwargs"] == {"normalize_embeddings": True}

    @patch("langchain_openai.OpenAIEmbeddings")
    def test_openai(self, mock_openai):
        get_embedding_model(EmbeddingConfig(provider="openai", model_name="text-embedding-3-small"))
        mock_openai.assert_called_once_with(model="text-embedding-3-small")

    def test_unknown_provider_raises(self):
        with pytest.raises(ValueError, match="Unknown embedding provider"):
            get_embedding_model(EmbeddingConfig(provider="nonexistent"))


class TestWrapEmbeddingError:

    def test_timeout(self):
        error = wrap_embedding_error(TimeoutError("Connect timeout to huggingface.co"), EmbeddingConfig())
        assert isinstance(error, ModelUnavailable)
        assert "connection timeout" in str(error)

    def test_not_cached(self):
        error = wrap_embedding_error(
            OSError("Cannot find the requested files in the disk cache and outgoing traffic has been disabled"),
            EmbeddingConfig(model_name="BAAI/bge-m3"),
        )
        assert isinstance(error, ModelUnavailable)
        assert "huggingface-cli download BAAI/bge-m3" in str(error)

    def test_import_error(self):
        error = wrap_embedding_error(ImportError("No module named 'sentence_transformers'"), EmbeddingConfig())
        assert isinstance(error, DependencyMissing)

    def test_unrelated_error_passes_through(self):
        original = KeyError("x")
        assert wrap_embedding_error(original, EmbeddingConfig()) is original


class TestEmbeddingProvider:

    def test_empty_input_skips_model(self):
        factory = MagicMock()
        registry = ModelRegistry(LibraryConfig(), embedding_factory=factory)
        provider = EmbeddingProvider(registry)

        assert asyncio.run(provider.embed_texts([])) == []
        factory.assert_not_called()

    def test_embeds_in_order(self, fake_embeddings):
        provider = EmbeddingProvider(_registry_with(fake_embeddings))

        vectors = asyncio.run(provider.embed_texts(["alpha", "beta", "gamma"]))

        assert len(vectors) == 3
        assert vectors[0] == fake_embeddings.embed_query("alpha")
        assert len({len(v) for v in vectors}) == 1

    def test_dimension_is_stable_across_calls(self, fake_embeddings):
        provider = EmbeddingProvider(_registry_with(fake_embeddings))

        async def run():
            first = await provider.embed_texts(["one"])
            second = await provider.embed_texts(["two", "three"])
            return first + second

        vectors = asyncio.run(run())
        assert len({len(v) for v in vectors}) == 1

    def test_empty_vector_raises(self):
        model = MagicMock()
        model.aembed_documents = AsyncMock(return_value=[[0.1, 0.2], []])
        provider = EmbeddingProvider(_registry_with(model))

        with pytest.raises(EmptyEmbedding):
            asyncio.run(provider.embed_texts(["a", "b"]))

    def test_ragged_vectors_raise(self):
        model = MagicMock()
        model.aembed_documents = AsyncMock(return_value=[[0.1, 0.2], [0.3]])
        provider = EmbeddingProvider(_registry_with(model))

        with pytest.raises(DimensionMismatch) as info:
            asyncio.run(provider.embed_texts(["a", "b"]))
        assert info.value.chunk_index == 1

    def test_missing_vectors_raise(self):
        model = MagicMock()
        model.aembed_documents = AsyncMock(return_value=[[0.1, 0.2]])
        provider = EmbeddingProvider(_registry_with(model))

        with pytest.raises(EmbeddingCountMismatch) as info:
            asyncio.run(provider.embed_texts(["a", "b"]))
        assert (info.value.expected, info.value.actual) == (2, 1)

    def test_query_without_vector_raises_typed_error(self):
        model = MagicMock()
        model.aembed_documents = AsyncMock(return_value=[])
        provider = EmbeddingProvider(_registry_with(model))

        with pytest.raises(EmbeddingCountMismatch):
            asyncio.run(provider.embed_query("refund policy"))

    def test_model_is_loaded_once(self, fake_embeddings):
        calls = []

        def factory(cfg):
            calls.append(cfg)
            return fake_embeddings

        provider = EmbeddingProvider(ModelRegistry(LibraryConfig(), embedding_factory=factory))

        async def run():
            await asyncio.gather(*(provider.embed_texts([f"text {i}"]) for i in range(5)))

        asyncio.run(run())
        assert len(calls) == 1

    def test_failed_load_is_retried_and_wrapped(self, fake_embeddings):
        attempts = []

        def factory(cfg):
            attempts.append(cfg)
            if len(attempts) == 1:
                raise OSError("We couldn't connect: offline mode is enabled")
            return fake_embeddings

        provider = EmbeddingProvider(ModelRegistry(LibraryConfig(), embedding_factory=factory))

        with pytest.raises(ModelUnavailable):
            asyncio.run(provider.embed_texts(["first"]))

        assert len(asyncio.run(provider.embed_texts(["second"]))) == 1
        assert len(attempts) == 2

    def test_model_name(self):
        registry = ModelRegistry(LibraryConfig(embedding=EmbeddingConfig(model_name="my-model")))
        assert EmbeddingProvider(registry).model_name == "my-model"
