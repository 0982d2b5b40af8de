"""
Shared test fixtures for the rag-library test suite.

Provides fakes for every external system the pipeline talks to, so tests
run without model weights, a Qdrant server, or API keys:

    FakeEmbeddings      deterministic bag-of-letters vectors (LangChain Embeddings)
    FakeVectorStore     in-memory BaseVectorStore with cosine search
    FakeCrossEncoder    canned logits per passage
    mock_generation_client  AsyncMock returning a fixed GenerationOutput

Async code is driven with asyncio.run() inside plain test functions.
"""

import math
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.embeddings import Embeddings

from rag_library.base.generator import BaseGenerationClient
from rag_library.base.reranker import BaseCrossEncoder, Logits, SingleLogit
from rag_library.base.vectorstore import BaseVectorStore
from rag_library.config import LibraryConfig
from rag_library.models.document import Chunk, RetrievedChunk
from rag_library.models.generation import GenerationOutput
from rag_library.persistence.memory import InMemoryDocumentRepository
from rag_library.registry import ModelRegistry

DIMENSION = 8


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeEmbeddings(Embeddings):
    """Letter-frequency vectors: similar texts get similar vectors, no model needed."""

    def __init__(self, dimension: int = DIMENSION):
        self.dimension = dimension
        self.calls: list[list[str]] = []

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for char in text.lower():
            if char.isalpha():
                vector[(ord(char) - ord("a")) % self.dimension] += 1.0
        norm = math.sqrt(sum(v * v for v in vector)) or 1.0
        return [v / norm for v in vector] if any(vector) else [1.0] + [0.0] * (self.dimension - 1)

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._vector(text) for text in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._vector(text)


class FakeVectorStore(BaseVectorStore):
    """Keeps points in a list; search is brute-force cosine."""

    def __init__(self):
        self.dimension = None
        self.points: list[dict] = []
        self.calls: list[str] = []

    async def ensure_collection(self, dimension: int) -> None:
        self.calls.append("ensure_collection")
        if self.dimension != dimension:
            self.points = []
        self.dimension = dimension

    async def delete_by_document(self, document_id: str) -> None:
        self.calls.append("delete_by_document")
        self.points = [p for p in self.points if p["documentId"] != document_id]

    async def upsert_chunks(self, document_id, document_name, chunks, vectors, offset=0, batch_size=None) -> int:
        self.calls.append("upsert_chunks")
        for index, (chunk, vector) in enumerate(zip(chunks, vectors)):
            self.points.append({
                "id": f"{document_id}-{offset + index}",
                "vector": list(vector),
                "documentId": document_id,
                "documentName": document_name,
                "chunkIndex": offset + index,
                "content": chunk.content,
                "start": chunk.start,
                "end": chunk.end,
            })
        return len(chunks)

    async def search(self, vector, limit: int) -> list[RetrievedChunk]:
        self.calls.append("search")

        def cosine(a, b):
            dot = sum(x * y for x, y in zip(a, b))
            na = math.sqrt(sum(x * x for x in a)) or 1.0
            nb = math.sqrt(sum(y * y for y in b)) or 1.0
            return dot / (na * nb)

        ranked = sorted(self.points, key=lambda p: cosine(vector, p["vector"]), reverse=True)[:limit]
        results = []
        for point in ranked:
            score = cosine(vector, point["vector"])
            results.append(RetrievedChunk(
                id=point["id"],
                score=score,
                content=point["content"],
                document_id=point["documentId"],
                document_name=point["documentName"],
                chunk_index=point["chunkIndex"],
                start=point["start"],
                end=point["end"],
                vector_score=score,
            ))
        return results

    def count(self, document_id: str) -> int:
        return sum(1 for p in self.points if p["documentId"] == document_id)


class FakeCrossEncoder(BaseCrossEncoder):
    """Returns logits looked up by passage text; unknown passages get SingleLogit(0)."""

    def __init__(self, logits_by_passage=None):
        self.logits_by_passage = dict(logits_by_passage or {})
        self.calls: list[tuple[str, str]] = []

    async def score(self, question: str, passage: str) -> Logits:
        self.calls.append((question, passage))
        return self.logits_by_passage.get(passage, SingleLogit(value=0.0))


# ---------------------------------------------------------------------------
# Config and data fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def library_config(tmp_path):
    """Full config with small batches and a throwaway SQLite file."""
    return LibraryConfig(
        indexing={"embedding_batch_size": 2},
        chunking={"chunk_size": 100, "chunk_overlap": 20},
        database={"url": f"sqlite+aiosqlite:///{tmp_path / 'library.db'}"},
    )


@pytest.fixture
def sample_retrieved_chunks():
    """Five search hits in descending vector similarity."""
    return [
        RetrievedChunk(id="c1", score=0.92, vector_score=0.92, content="Refunds are issued within 14 days.",
                       document_id="d1", document_name="policy.pdf", chunk_index=0, start=0, end=34),
        RetrievedChunk(id="c2", score=0.85, vector_score=0.85, content="Shipping takes 3-5 business days.",
                       document_id="d1", document_name="policy.pdf", chunk_index=1, start=30, end=63),
        RetrievedChunk(id="c3", score=0.80, vector_score=0.80, content="Refund requests need a receipt.",
                       document_id="d2", document_name="faq.md", chunk_index=0, start=0, end=31),
        RetrievedChunk(id="c4", score=0.70, vector_score=0.70, content="Our office is in Berlin.",
                       document_id="d2", document_name="faq.md", chunk_index=1, start=28, end=52),
        RetrievedChunk(id="c5", score=0.60, vector_score=0.60, content="Store credit never expires.",
                       document_id="d3", document_name=None, chunk_index=0, start=0, end=27),
    ]


@pytest.fixture
def sample_chunks():
    return [
        Chunk(id="0", content="First window of text.", start=0, end=21),
        Chunk(id="1", content="Second window of text.", start=15, end=37),
        Chunk(id="2", content="Third window.", start=30, end=43),
    ]


@pytest.fixture
def text_file(tmp_path):
    """A plain-text document long enough for several 100-char chunks."""
    path = tmp_path / "handbook.txt"
    paragraph = "Employees receive twenty five vacation days per year. Refunds are handled by finance. "
    path.write_text(paragraph * 6, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_embeddings():
    return FakeEmbeddings()


@pytest.fixture
def fake_vector_store():
    return FakeVectorStore()


@pytest.fixture
def fake_cross_encoder():
    return FakeCrossEncoder()


@pytest.fixture
def mock_qdrant_client():
    """
    An AsyncQdrantClient stand-in. Every coroutine method is an AsyncMock;
    the collection exists and has dimension 8 unless a test says otherwise.
    """
    client = MagicMock()
    client.collection_exists = AsyncMock(return_value=True)
    info = MagicMock()
    info.config.params.vectors = MagicMock(size=DIMENSION)
    client.get_collection = AsyncMock(return_value=info)
    client.create_collection = AsyncMock(return_value=True)
    client.delete_collection = AsyncMock(return_value=True)
    client.delete = AsyncMock()
    client.upsert = AsyncMock()
    client.query_points = AsyncMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def registry(library_config, fake_embeddings, fake_cross_encoder, mock_qdrant_client):
    """ModelRegistry wired to the fakes instead of real models."""
    return ModelRegistry(
        library_config,
        embedding_factory=lambda cfg: fake_embeddings,
        cross_encoder_factory=lambda cfg: fake_cross_encoder,
        qdrant_factory=lambda cfg: mock_qdrant_client,
    )


@pytest.fixture
def repository():
    return InMemoryDocumentRepository()


@pytest.fixture
def mock_generation_client():
    """Generation client that always answers with a cited sentence."""
    client = MagicMock(spec=BaseGenerationClient)
    client.generate = AsyncMock(
        return_value=GenerationOutput(
            text="  Refunds take 14 days [S1].  ",
            provider="openai",
            model="gpt-4o-mini",
        )
    )
    return client
