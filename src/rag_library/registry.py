"""
Process-wide handles for the expensive shared resources.

The embedding model, the cross-encoder and the Qdrant client are each
created at most once and reused by every request. Each lives in an
AsyncLazy cell: the first caller runs the factory, concurrent callers
wait for that same run, and a failed run is discarded so the next call
tries again (e.g. after the weights have been downloaded).

Nothing here is a module-level singleton. Build one ModelRegistry at
startup and pass it to the components that need it; tests pass their
own factories instead of patching imports.

Usage:
    from rag_library.config import LibraryConfig
    from rag_library.registry import ModelRegistry

    registry = ModelRegistry(LibraryConfig())
    model = await registry.get_embedding_model()

    # Tests:
    registry = ModelRegistry(config, embedding_factory=lambda cfg: FakeEmbeddings())
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from langchain_core.embeddings import Embeddings

from rag_library.base.reranker import BaseCrossEncoder
from rag_library.config import EmbeddingConfig, LibraryConfig, RerankerConfig, VectorStoreConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


_UNSET: Any = object()


class AsyncLazy(Generic[T]):
    """
    Single-flight lazy value.

    The loader runs under a lock, so at most one initialization is in
    progress. Success is memoized; an exception propagates to the caller
    that triggered it and leaves the cell empty.
    """

    def __init__(self, loader: Callable[[], Awaitable[T]], name: str = "resource"):
        self._loader = loader
        self._name = name
        self._value: Any = _UNSET
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._value is not _UNSET

    async def get(self) -> T:
        if self._value is not _UNSET:
            return self._value

        async with self._lock:
            if self._value is not _UNSET:
                return self._value

            logger.info("Initializing %s", self._name)
            try:
                value = await self._loader()
            except Exception:
                logger.warning("Initializing %s failed; will retry on next use", self._name)
                raise
            self._value = value
            return value

    def reset(self) -> None:
        """Forget the memoized value; the next get() runs the loader again."""
        self._value = _UNSET


# ---------------------------------------------------------------------------
# Default factories
# ---------------------------------------------------------------------------

def _default_embedding_factory(config: EmbeddingConfig) -> Embeddings:
    from rag_library.indexing.embeddings import get_embedding_model

    return get_embedding_model(config)


def _default_cross_encoder_factory(config: RerankerConfig) -> BaseCrossEncoder:
    from rag_library.retrieval.cross_encoder import load_cross_encoder

    return load_cross_encoder(config)


def _default_qdrant_factory(config: VectorStoreConfig):
    from rag_library.indexing.vectorstore import create_qdrant_client

    return create_qdrant_client(config)


async def _build(factory: Callable[[Any], Any], config: Any, blocking: bool) -> Any:
    """Run a factory; sync ones that load weights go to a worker thread."""
    if inspect.iscoroutinefunction(factory):
        return await factory(config)
    if blocking:
        result = await asyncio.to_thread(factory, config)
    else:
        result = factory(config)
    if inspect.isawaitable(result):
        result = await result
    return result


class ModelRegistry:
    """
    Holds the lazily created embedding model, cross-encoder and Qdrant client.

    Args:
        config: Full library config; each factory gets its own section.
        embedding_factory: EmbeddingConfig -> LangChain Embeddings.
        cross_encoder_factory: RerankerConfig -> BaseCrossEncoder.
        qdrant_factory: VectorStoreConfig -> AsyncQdrantClient (or a stand-in).
    """

    def __init__(
        self,
        config: Optional[LibraryConfig] = None,
        embedding_factory: Optional[Callable[[EmbeddingConfig], Any]] = None,
        cross_encoder_factory: Optional[Callable[[RerankerConfig], Any]] = None,
        qdrant_factory: Optional[Callable[[VectorStoreConfig], Any]] = None,
    ):
        self.config = config or LibraryConfig()

        embedding_factory = embedding_factory or _default_embedding_factory
        cross_encoder_factory = cross_encoder_factory or _default_cross_encoder_factory
        qdrant_factory = qdrant_factory or _default_qdrant_factory

        self._embeddings: AsyncLazy[Embeddings] = AsyncLazy(
            lambda: _build(embedding_factory, self.config.embedding, blocking=True),
            name=f"embedding model {self.config.embedding.model_name}",
        )
        self._cross_encoder: AsyncLazy[BaseCrossEncoder] = AsyncLazy(
            lambda: _build(cross_encoder_factory, self.config.reranker, blocking=True),
            name=f"cross-encoder {self.config.reranker.model_name}",
        )
        self._qdrant: AsyncLazy[Any] = AsyncLazy(
            lambda: _build(qdrant_factory, self.config.vector_store, blocking=False),
            name=f"Qdrant client {self.config.vector_store.url}",
        )

    async def get_embedding_model(self) -> Embeddings:
        return await self._embeddings.get()

    async def get_cross_encoder(self) -> BaseCrossEncoder:
        return await self._cross_encoder.get()

    async def get_qdrant_client(self):
        return await self._qdrant.get()

    async def aclose(self) -> None:
        """Close the Qdrant client if one was created."""
        if not self._qdrant.loaded:
            return
        client = await self._qdrant.get()
        close = getattr(client, "close", None)
        if close is not None:
            result = close()
            if inspect.isawaitable(result):
                await result
        self._qdrant.reset()
