"""
Abstract base class for the vector store adapter.

The indexer and the searcher talk to this contract only. The Qdrant
adapter in indexing/vectorstore.py implements it; tests swap in an
in-memory fake. Implementations must raise the normalized
VectorStoreUnavailable / VectorStoreRequestFailed errors, never raw
transport exceptions.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from rag_library.models.document import Chunk, RetrievedChunk

Vector = list[float]


class BaseVectorStore(ABC):
    """Contract for a single named collection of same-dimension vectors."""

    @abstractmethod
    async def ensure_collection(self, dimension: int) -> None:
        """Create the collection, or recreate it if its dimension differs."""
        ...

    @abstractmethod
    async def delete_by_document(self, document_id: str) -> None:
        """Best-effort removal of every point for one document. Never raises."""
        ...

    @abstractmethod
    async def upsert_chunks(
        self,
        document_id: str,
        document_name: str,
        chunks: Sequence[Chunk],
        vectors: Sequence[Optional[Vector]],
        offset: int = 0,
        batch_size: Optional[int] = None,
    ) -> int:
        """Store one point per chunk. Returns the number of points written."""
        ...

    @abstractmethod
    async def search(self, vector: Vector, limit: int) -> list[RetrievedChunk]:
        """Nearest points by descending similarity."""
        ...
