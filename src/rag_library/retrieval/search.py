"""
Vector search over the library collection.

This is the first, cheap stage of retrieval: embed the question, pull the
nearest chunks from Qdrant, and hand them to the cross-encoder reranker.
Results come back in descending similarity with vector_score set to the
raw similarity, so the reranker can fuse it later.

Usage:
    from rag_library.retrieval.search import LibrarySearcher

    searcher = LibrarySearcher(EmbeddingProvider(registry), QdrantVectorStore(registry))
    candidates = await searcher.search_library_chunks("What is the refund policy?", limit=10)
"""

import logging
from typing import Optional

from rag_library.base.vectorstore import BaseVectorStore
from rag_library.config import RetrieverConfig
from rag_library.errors import InvalidQuery
from rag_library.indexing.embeddings import EmbeddingProvider
from rag_library.models.document import RetrievedChunk
from rag_library.utils.helpers import clamp_limit

logger = logging.getLogger(__name__)

MIN_LIMIT = 1
MAX_LIMIT = 50


class LibrarySearcher:
    """Embeds a question and returns the nearest stored chunks."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        vector_store: BaseVectorStore,
        config: Optional[RetrieverConfig] = None,
    ):
        self._embedder = embedder
        self._store = vector_store
        self._config = config or RetrieverConfig()

    async def search_library_chunks(
        self,
        question: str,
        limit: Optional[float] = None,
    ) -> list[RetrievedChunk]:
        """
        Args:
            question: Free-text question. Trimmed before embedding.
            limit: Max results, clamped to [1, 50]. None/NaN use the configured default.

        Raises:
            InvalidQuery: question is blank. Nothing is embedded or sent.
        """
        trimmed = (question or "").strip()
        if not trimmed:
            raise InvalidQuery("Question text is required.")

        effective_limit = clamp_limit(limit, self._config.limit, MIN_LIMIT, MAX_LIMIT)

        vector = await self._embedder.embed_query(trimmed)
        results = await self._store.search(vector, effective_limit)

        logger.debug("Search returned %d/%d chunks", len(results), effective_limit)
        return results
