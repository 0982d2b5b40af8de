"""
Qdrant adapter for the shared library collection.

Every indexed document lives in one collection (VectorStoreConfig.collection).
Points carry a payload copy of the chunk so search results can be shown
without a second lookup:

    {documentId, documentName, chunkIndex, content, start, end}

The collection uses cosine distance. Its dimension is whatever the first
indexed document's embeddings had; switching embedding models with a
different dimension recreates the collection (and drops every vector in it).

All raw client/transport exceptions are normalized by normalize_qdrant_error()
before they leave this module.

Usage:
    from rag_library.indexing.vectorstore import QdrantVectorStore

    store = QdrantVectorStore(registry)
    await store.ensure_collection(len(vectors[0]))
    await store.upsert_chunks(doc.id, doc.name, chunks, vectors)
    hits = await store.search(query_vector, limit=10)
"""

import json
import logging
import re
import uuid
from typing import TYPE_CHECKING, Any, Awaitable, Optional, Sequence, TypeVar

import httpx
from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.http.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchValue,
    PointStruct,
    VectorParams,
)

from rag_library.base.vectorstore import BaseVectorStore, Vector
from rag_library.config import VectorStoreConfig
from rag_library.errors import (
    DimensionMismatch,
    MissingVector,
    VectorStoreError,
    VectorStoreRequestFailed,
    VectorStoreUnavailable,
)
from rag_library.models.document import Chunk, RetrievedChunk

if TYPE_CHECKING:
    from rag_library.registry import ModelRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNREACHABLE = re.compile(r"fetch failed|connection refused|failed to establish", re.IGNORECASE)


def create_qdrant_client(config: VectorStoreConfig) -> AsyncQdrantClient:
    """Build the async client. Construction does no I/O."""
    return AsyncQdrantClient(
        url=config.url,
        api_key=config.api_key.get_secret_value() if config.api_key else None,
        timeout=config.timeout,
        prefer_grpc=False,
    )


def _response_detail(error: UnexpectedResponse) -> Optional[str]:
    """Pull status.error out of a Qdrant JSON error body, else the raw text."""
    content = error.content
    if not content:
        return error.reason_phrase or None
    text = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else str(content)
    try:
        body = json.loads(text)
    except ValueError:
        return text.strip() or None
    if isinstance(body, dict):
        status = body.get("status")
        if isinstance(status, dict) and status.get("error"):
            return str(status["error"])
        if isinstance(status, str) and status != "ok":
            return status
    return text.strip() or None


def normalize_qdrant_error(error: BaseException) -> Exception:
    """
    Map a client/transport failure to VectorStoreUnavailable or
    VectorStoreRequestFailed. Anything already normalized passes through.
    """
    if isinstance(error, VectorStoreError):
        return error

    if isinstance(error, UnexpectedResponse):
        return VectorStoreRequestFailed(error.status_code, _response_detail(error))

    if isinstance(error, (ResponseHandlingException, httpx.TransportError, ConnectionError)):
        return VectorStoreUnavailable()

    if _UNREACHABLE.search(str(error)):
        return VectorStoreUnavailable()

    return VectorStoreRequestFailed(None, str(error) or type(error).__name__)


def _payload_str(payload: dict[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    return value if isinstance(value, str) else None


def _payload_int(payload: dict[str, Any], key: str) -> Optional[int]:
    value = payload.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


class QdrantVectorStore(BaseVectorStore):
    """BaseVectorStore over one Qdrant collection, using the registry's shared client."""

    def __init__(self, registry: "ModelRegistry", config: Optional[VectorStoreConfig] = None):
        self._registry = registry
        self.config = config or registry.config.vector_store

    @property
    def collection(self) -> str:
        return self.config.collection

    async def _client(self) -> AsyncQdrantClient:
        return await self._registry.get_qdrant_client()

    async def _call(self, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except Exception as exc:
            raise normalize_qdrant_error(exc) from exc

    # -------------------------------------------------------------------
    # Collection management
    # -------------------------------------------------------------------

    async def ensure_collection(self, dimension: int) -> None:
        """
        Make sure the collection exists with the given dimension.

        Recreated (deleted + created) when the stored dimension differs, or
        when the collection uses named vectors, which this adapter never writes.
        """
        client = await self._client()
        params = VectorParams(size=dimension, distance=Distance.COSINE)

        exists = await self._call(client.collection_exists(self.collection))
        if not exists:
            logger.info("Creating collection '%s' (dim=%d)", self.collection, dimension)
            await self._call(client.create_collection(self.collection, vectors_config=params))
            return

        info = await self._call(client.get_collection(self.collection))
        vectors = info.config.params.vectors

        if isinstance(vectors, dict):
            logger.warning(
                "Collection '%s' uses named vectors; recreating with a single unnamed vector",
                self.collection,
            )
        elif vectors is not None and vectors.size == dimension:
            return
        else:
            logger.warning(
                "Collection '%s' has dim=%s, need %d; recreating (existing vectors are dropped)",
                self.collection,
                getattr(vectors, "size", None),
                dimension,
            )

        await self._call(client.delete_collection(self.collection))
        await self._call(client.create_collection(self.collection, vectors_config=params))

    # -------------------------------------------------------------------
    # Points
    # -------------------------------------------------------------------

    async def delete_by_document(self, document_id: str) -> None:
        """Remove every point whose payload documentId matches. Failures are only logged."""
        selector = FilterSelector(
            filter=Filter(must=[FieldCondition(key="documentId", match=MatchValue(value=document_id))])
        )
        try:
            client = await self._client()
            if not await client.collection_exists(self.collection):
                return
            await client.delete(self.collection, points_selector=selector, wait=True)
        except Exception as exc:
            logger.warning(
                "Failed to delete vectors for document %s: %s",
                document_id,
                normalize_qdrant_error(exc),
            )

    async def upsert_chunks(
        self,
        document_id: str,
        document_name: str,
        chunks: Sequence[Chunk],
        vectors: Sequence[Optional[Vector]],
        offset: int = 0,
        batch_size: Optional[int] = None,
    ) -> int:
        """
        Write one point per chunk, in batches.

        Every (chunk, vector) pair is checked before the first request, so a
        missing or wrongly sized vector never leaves a half-written document.

        Args:
            document_id: Stored as payload documentId (the delete/filter key).
            document_name: Stored as payload documentName.
            chunks: Chunks in document order.
            vectors: vectors[i] belongs to chunks[i].
            offset: Added to i to form payload chunkIndex.
            batch_size: Points per request; defaults to config.upsert_batch_size.

        Returns:
            Number of points written.

        Raises:
            MissingVector: vectors[i] is absent or empty.
            DimensionMismatch: vectors[i] differs in length from vectors[0].
        """
        if not chunks:
            return 0

        points: list[PointStruct] = []
        dimension: Optional[int] = None
        for index, chunk in enumerate(chunks):
            vector = vectors[index] if index < len(vectors) else None
            if not vector:
                raise MissingVector(index)
            if dimension is None:
                dimension = len(vector)
            elif len(vector) != dimension:
                raise DimensionMismatch(index, dimension, len(vector))

            points.append(
                PointStruct(
                    id=str(uuid.uuid4()),
                    vector=list(vector),
                    payload={
                        "documentId": document_id,
                        "documentName": document_name,
                        "chunkIndex": offset + index,
                        "content": chunk.content,
                        "start": chunk.start,
                        "end": chunk.end,
                    },
                )
            )

        size = max(1, batch_size or self.config.upsert_batch_size)
        client = await self._client()
        for begin in range(0, len(points), size):
            batch = points[begin:begin + size]
            await self._call(client.upsert(self.collection, points=batch, wait=True))

        logger.info("Upserted %d points for document %s", len(points), document_id)
        return len(points)

    async def search(self, vector: Vector, limit: int) -> list[RetrievedChunk]:
        client = await self._client()
        response = await self._call(
            client.query_points(
                self.collection,
                query=list(vector),
                limit=limit,
                with_payload=True,
                with_vectors=False,
            )
        )

        results: list[RetrievedChunk] = []
        for point in response.points:
            payload = point.payload or {}
            score = float(point.score) if point.score is not None else 0.0
            results.append(
                RetrievedChunk(
                    id=str(point.id),
                    score=score,
                    content=_payload_str(payload, "content") or "",
                    document_id=_payload_str(payload, "documentId"),
                    document_name=_payload_str(payload, "documentName"),
                    chunk_index=_payload_int(payload, "chunkIndex"),
                    start=_payload_int(payload, "start"),
                    end=_payload_int(payload, "end"),
                    vector_score=score,
                )
            )
        return results
