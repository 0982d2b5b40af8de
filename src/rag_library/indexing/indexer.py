"""
Indexing run for a single library document.

    extracting → chunking → embedding → saving → indexed

Each stage commits its progress checkpoint to the repository before the
next one starts, so the UI can poll progress from storage instead of
holding a connection open:

    0    stage=extracting (run started)
    5    text extracted
    10   stage=chunking, then stage=embedding
    10–90  proportional to chunks embedded (written only when the value grows)
    95   stage=saving
    100  status=indexed, stage cleared

Errors propagate unchanged. Putting the document back to "uploaded" after
a failure is the caller's job (see LibraryService.reset_for_retry).

Usage:
    indexer = DocumentIndexer(repository, EmbeddingProvider(registry), QdrantVectorStore(registry))
    document = await indexer.index_document(document_id)
"""

import logging
import math
from typing import Optional

from rag_library.base.indexer import BaseChunker
from rag_library.base.repository import BaseDocumentRepository
from rag_library.base.vectorstore import BaseVectorStore, Vector
from rag_library.config import IndexingConfig
from rag_library.errors import (
    EmbeddingCountMismatch,
    EmptyDimension,
    EmptyDocument,
    NotFound,
)
from rag_library.indexing.chunking import FixedWindowChunker
from rag_library.indexing.embeddings import EmbeddingProvider
from rag_library.indexing.extraction import extract_text_content, sanitize_content
from rag_library.models.document import (
    DocumentStatus,
    IndexingStage,
    LibraryDocument,
    utcnow,
)

logger = logging.getLogger(__name__)

PROGRESS_STARTED = 0
PROGRESS_EXTRACTED = 5
PROGRESS_CHUNKED = 10
PROGRESS_EMBEDDING_SPAN = 80
PROGRESS_SAVING = 95
PROGRESS_DONE = 100


def embedding_progress(processed: int, total: int) -> int:
    """Progress value after `processed` of `total` chunks have vectors."""
    if total <= 0:
        return PROGRESS_CHUNKED
    return PROGRESS_CHUNKED + math.floor(processed / total * PROGRESS_EMBEDDING_SPAN)


class DocumentIndexer:
    """
    Runs extract → chunk → embed → save for one document and records progress.

    Args:
        repository: Where document rows (status/stage/progress) live.
        embedder: Produces one vector per chunk.
        vector_store: Receives the chunk vectors.
        chunker: Splits sanitized text; defaults to FixedWindowChunker().
        config: Batch size for embedding calls.
    """

    def __init__(
        self,
        repository: BaseDocumentRepository,
        embedder: EmbeddingProvider,
        vector_store: BaseVectorStore,
        chunker: Optional[BaseChunker] = None,
        config: Optional[IndexingConfig] = None,
    ):
        self.repository = repository
        self.embedder = embedder
        self.vector_store = vector_store
        self.chunker = chunker or FixedWindowChunker()
        self.config = config or IndexingConfig()

    async def delete_existing_vectors(self, document_id: str) -> None:
        """Best-effort removal of a document's vectors; failures are logged, not raised."""
        await self.vector_store.delete_by_document(document_id)

    async def index_document(self, document_id: str) -> LibraryDocument:
        """
        Index (or re-index) one document.

        Re-indexing removes the document's previous vectors before the new
        ones are written, so the store ends up holding exactly chunk_count
        points for it.

        Returns:
            The updated document (status=indexed, progress=100).

        Raises:
            NotFound: No document with this id.
            UnsupportedFormat / DependencyMissing: Text extraction failed.
            EmptyDocument: Nothing left after chunking.
            EmbeddingCountMismatch / EmptyDimension / EmptyEmbedding: Bad embedder output.
            VectorStoreUnavailable / VectorStoreRequestFailed: Saving failed.
        """
        document = await self.repository.get(document_id)
        if document is None:
            raise NotFound(f"Document not found: {document_id}")

        logger.info("Indexing document %s (%s)", document.id, document.name)

        # --- extracting ---
        await self.repository.update(
            document.id,
            status=DocumentStatus.INDEXING,
            indexing_stage=IndexingStage.EXTRACTING,
            indexing_progress=PROGRESS_STARTED,
        )
        raw_text = await extract_text_content(document.path)
        await self.repository.update(document.id, indexing_progress=PROGRESS_EXTRACTED)
        text = sanitize_content(raw_text)

        # --- chunking ---
        await self.repository.update(
            document.id,
            indexing_stage=IndexingStage.CHUNKING,
            indexing_progress=PROGRESS_CHUNKED,
        )
        chunks = self.chunker.chunk(text)
        if not chunks:
            raise EmptyDocument("Document content is empty or could not be parsed.")
        logger.debug("Document %s split into %d chunks", document.id, len(chunks))

        # --- embedding ---
        await self.repository.update(document.id, indexing_stage=IndexingStage.EMBEDDING)
        vectors = await self._embed_chunks(document.id, [chunk.content for chunk in chunks])

        if len(vectors) != len(chunks):
            raise EmbeddingCountMismatch(len(chunks), len(vectors))

        dimension = len(vectors[0])
        if not dimension:
            raise EmptyDimension("Unable to determine embedding vector dimension.")

        # --- saving ---
        await self.repository.update(
            document.id,
            indexing_stage=IndexingStage.SAVING,
            indexing_progress=PROGRESS_SAVING,
        )
        await self.vector_store.ensure_collection(dimension)
        await self.delete_existing_vectors(document.id)
        await self.vector_store.upsert_chunks(document.id, document.name, chunks, vectors)

        updated = await self.repository.update(
            document.id,
            status=DocumentStatus.INDEXED,
            indexing_stage=None,
            indexing_progress=PROGRESS_DONE,
            chunk_count=len(chunks),
            last_indexed_at=utcnow(),
            embedding_model=self.embedder.model_name,
        )
        logger.info("Indexed document %s: %d chunks, dim=%d", document.id, len(chunks), dimension)
        return updated

    async def _embed_chunks(self, document_id: str, contents: list[str]) -> list[Vector]:
        """Embed in chunk order, one batch at a time, checkpointing progress."""
        batch_size = self.config.embedding_batch_size
        total = len(contents)
        vectors: list[Vector] = []
        last_progress = PROGRESS_CHUNKED

        for begin in range(0, total, batch_size):
            batch = contents[begin:begin + batch_size]
            batch_vectors = await self.embedder.embed_texts(batch)
            if len(batch_vectors) != len(batch):
                raise EmbeddingCountMismatch(len(batch), len(batch_vectors))
            vectors.extend(batch_vectors)

            progress = embedding_progress(len(vectors), total)
            if progress > last_progress:
                await self.repository.update(document_id, indexing_progress=progress)
                last_progress = progress

        return vectors
