"""
Embedding model factory and provider.

get_embedding_model() is the single place that maps provider strings to
LangChain embedding classes. EmbeddingProvider sits on top of it and is
what the indexer and searcher actually call: it fetches the shared model
handle from the registry, embeds a batch, and checks the output.

Supported providers:
    "huggingface" → HuggingFaceEmbeddings (local sentence-transformers, default)
    "openai"      → OpenAIEmbeddings (API-based)
    "cohere"      → CohereEmbeddings (API-based)

Usage:
    from rag_library.indexing.embeddings import EmbeddingProvider
    from rag_library.registry import ModelRegistry

    provider = EmbeddingProvider(ModelRegistry(config))
    vectors = await provider.embed_texts(["first chunk", "second chunk"])
"""

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Sequence

from langchain_core.embeddings import Embeddings

from rag_library.config import EmbeddingConfig
from rag_library.errors import (
    DependencyMissing,
    DimensionMismatch,
    EmbeddingCountMismatch,
    EmptyEmbedding,
    ModelUnavailable,
    RagLibraryError,
)

if TYPE_CHECKING:
    from rag_library.registry import ModelRegistry

logger = logging.getLogger(__name__)

Vector = list[float]

_TIMEOUT = re.compile(r"connect(ion)? time ?out|timed out", re.IGNORECASE)
_FETCH_FAILED = re.compile(r"failed to fetch|connection error|max retries exceeded", re.IGNORECASE)
_NOT_CACHED = re.compile(
    r"local_files_only|cannot find the requested files|not found in (the )?(local )?cache|offline mode",
    re.IGNORECASE,
)


def get_embedding_model(config: EmbeddingConfig) -> Embeddings:
    """
    Factory that returns a LangChain embedding model based on config.

    Each provider has its own LangChain integration package. We import
    them lazily (inside the if-branch) so you only need the package for
    the provider you actually use.

    Loading a local model is blocking and can take seconds; callers on
    the event loop should go through the registry, which runs this in a
    thread exactly once.

    Args:
        config: EmbeddingConfig with provider, model_name, and options.

    Returns:
        A LangChain Embeddings instance.

    Raises:
        ValueError: If the provider is not recognized.
        ImportError: If the required package for the provider is not installed.
    """
    provider = config.provider.lower()

    if provider == "huggingface":
        try:
            from langchain_huggingface import HuggingFaceEmbeddings
        except ImportError:
            raise ImportError(
                "HuggingFace embeddings require langchain-huggingface and "
                "sentence-transformers. Install with: pip install langchain-huggingface sentence-transformers"
            )

        cache_dir = Path(config.cache_dir)
        cache_dir.mkdir(parents=True, exist_ok=True)

        model_kwargs = {"local_files_only": config.local_files_only, **config.model_kwargs}
        if model_kwargs.get("backend") == "onnx":
            file_name = "model_quantized" if config.quantized else (config.model_file or "model")
            model_kwargs.setdefault("model_kwargs", {"file_name": f"onnx/{file_name}.onnx"})

        return HuggingFaceEmbeddings(
            model_name=config.model_name,
            cache_folder=str(cache_dir),
            model_kwargs=model_kwargs,
            encode_kwargs={"normalize_embeddings": config.normalize},
        )

    elif provider == "openai":
        from langchain_openai import OpenAIEmbeddings

        return OpenAIEmbeddings(
            model=config.model_name,
            **config.model_kwargs,
        )

    elif provider == "cohere":
        try:
            from langchain_cohere import CohereEmbeddings
        except ImportError:
            raise ImportError(
                "Cohere embeddings require langchain-cohere. "
                "Install with: pip install langchain-cohere"
            )

        return CohereEmbeddings(
            model=config.model_name,
            **config.model_kwargs,
        )

    else:
        raise ValueError(
            f"Unknown embedding provider: '{config.provider}'. "
            f"Supported: 'huggingface', 'openai', 'cohere'."
        )


def wrap_embedding_error(error: Exception, config: EmbeddingConfig) -> Exception:
    """
    Translate a model loading/inference failure into an actionable error.

    Errors that don't match a known pattern come back unchanged.
    """
    if isinstance(error, RagLibraryError):
        return error

    if isinstance(error, ImportError):
        return DependencyMissing(str(error))

    message = str(error)

    if _TIMEOUT.search(message):
        return ModelUnavailable(
            f"Unable to load embedding model {config.model_name} (connection timeout). "
            f"Make sure huggingface.co is reachable, or cache the weights in {config.cache_dir} and retry."
        )

    if _NOT_CACHED.search(message):
        return ModelUnavailable(
            f"Embedding model {config.model_name} was not found in {config.cache_dir}. "
            f"Download it with `huggingface-cli download {config.model_name} --local-dir "
            f"{config.cache_dir}/{config.model_name}` or set EMBEDDING_LOCAL_FILES_ONLY=false."
        )

    if _FETCH_FAILED.search(message):
        return ModelUnavailable(
            "Downloading the embedding model failed. Check the network connection "
            "or set HF_TOKEN and retry."
        )

    return error


class EmbeddingProvider:
    """
    Turns batches of text into vectors using the shared embedding model.

    The model handle is created once per process by the registry (and
    re-created on the next call if creation failed). This class only adds
    the output checks: one vector per input, none empty, all the same
    length. That length is what sizes the vector store collection.
    """

    def __init__(self, registry: "ModelRegistry", config: Optional[EmbeddingConfig] = None):
        self._registry = registry
        self._config = config or registry.config.embedding

    @property
    def model_name(self) -> str:
        """Identifier persisted on documents as embedding_model."""
        return self._config.model_name

    async def get_model(self) -> Embeddings:
        try:
            return await self._registry.get_embedding_model()
        except Exception as exc:
            wrapped = wrap_embedding_error(exc, self._config)
            if wrapped is exc:
                raise
            raise wrapped from exc

    async def embed_texts(self, texts: Sequence[str]) -> list[Vector]:
        """
        Embed texts, preserving order.

        Args:
            texts: Strings to embed. Empty input returns [] without
                touching the model.

        Returns:
            One vector per text, all of equal length.

        Raises:
            EmbeddingCountMismatch: The model returned a different number of vectors.
            EmptyEmbedding: The model returned a zero-length vector.
            DimensionMismatch: Vectors in one batch differ in length.
            ModelUnavailable / DependencyMissing: Model couldn't be loaded.
        """
        if not texts:
            return []

        model = await self.get_model()

        try:
            raw_vectors = await model.aembed_documents(list(texts))
        except Exception as exc:
            wrapped = wrap_embedding_error(exc, self._config)
            if wrapped is exc:
                raise
            raise wrapped from exc

        if len(raw_vectors) != len(texts):
            raise EmbeddingCountMismatch(len(texts), len(raw_vectors))

        vectors: list[Vector] = []
        for index, raw in enumerate(raw_vectors):
            vector = [float(value) for value in raw]
            if not vector:
                raise EmptyEmbedding(
                    "Embedding model returned an empty vector. Check that the input text is valid."
                )
            if vectors and len(vector) != len(vectors[0]):
                raise DimensionMismatch(index, len(vectors[0]), len(vector))
            vectors.append(vector)

        logger.debug("Embedded %d texts (dim=%d)", len(vectors), len(vectors[0]) if vectors else 0)
        return vectors

    async def embed_query(self, text: str) -> Vector:
        """Embed a single string as a batch of one."""
        [vector] = await self.embed_texts([text])
        return vector
