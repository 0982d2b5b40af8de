"""
Library service: the document lifecycle and the question-answering flows.

This is the one object an application talks to. It wires the pipeline
pieces together and owns the parts of the lifecycle the indexer leaves
to its caller:

    register_upload   → document row, status=uploaded
    start_indexing    → entry gate (uploaded|indexed → indexing), then a
                        background run; on failure the document is reset
                        so the user can retry
    delete_document   → vectors, row, and stored file
    ask / chat        → search (10) → rerank (3) → answer

Usage:
    from rag_library import LibraryService, LibraryConfig

    service = LibraryService(LibraryConfig())
    await service.init()
    document = await service.register_upload("handbook.pdf", 52311, "/data/uploads/handbook.pdf")
    await service.start_indexing(document.id)
    ...
    response = await service.ask("How many vacation days do I get?")
    print(response.answer.text if response.answer else response.answer_error)
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from rag_library.base.generator import BaseGenerationClient
from rag_library.base.indexer import BaseChunker
from rag_library.base.repository import BaseDocumentRepository
from rag_library.base.vectorstore import BaseVectorStore
from rag_library.config import LibraryConfig
from rag_library.errors import IndexingConflict, InvalidArgument, InvalidConversation, NotFound, UnsupportedFormat
from rag_library.generation.client import ChatModelClient
from rag_library.generation.generate import AnswerGenerator, filter_relevant_chunks
from rag_library.indexing.chunking import FixedWindowChunker
from rag_library.indexing.embeddings import EmbeddingProvider
from rag_library.indexing.extraction import file_extension, is_supported_extension
from rag_library.indexing.indexer import DocumentIndexer
from rag_library.indexing.vectorstore import QdrantVectorStore
from rag_library.models.document import DocumentStatus, IndexingStage, LibraryDocument
from rag_library.models.generation import ConversationTurn, ModelSettings
from rag_library.models.result import AnswerPayload, QAResponse
from rag_library.registry import ModelRegistry
from rag_library.retrieval.reranking import CrossEncoderReranker
from rag_library.retrieval.search import LibrarySearcher

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 10
RERANK_LIMIT = 3
MAX_INCOMING_TURNS = 12

_STARTABLE = (DocumentStatus.UPLOADED, DocumentStatus.INDEXED)
_ANY_STATUS = tuple(DocumentStatus)

TurnLike = Union[ConversationTurn, dict[str, Any]]


def sanitize_turns(messages: Iterable[TurnLike]) -> list[ConversationTurn]:
    """
    Keep user/assistant turns with non-empty content, trimmed, last 12 only.

    Anything else (system roles, non-string content, blanks) is dropped
    silently, the way an untrusted request body is cleaned.
    """
    turns: list[ConversationTurn] = []
    for message in messages:
        if isinstance(message, ConversationTurn):
            role, content = message.role, message.content
        elif isinstance(message, dict):
            role, content = message.get("role"), message.get("content")
        else:
            continue

        if role not in ("user", "assistant") or not isinstance(content, str):
            continue
        content = content.strip()
        if content:
            turns.append(ConversationTurn(role=role, content=content))

    return turns[-MAX_INCOMING_TURNS:]


class LibraryService:
    """
    Orchestrates indexing and answering over one document library.

    Every collaborator can be injected; anything not given is built from
    config. Tests typically pass an in-memory repository, a registry with
    fake factories, and a mocked generation client.
    """

    def __init__(
        self,
        config: Optional[LibraryConfig] = None,
        repository: Optional[BaseDocumentRepository] = None,
        registry: Optional[ModelRegistry] = None,
        vector_store: Optional[BaseVectorStore] = None,
        generation_client: Optional[BaseGenerationClient] = None,
        chunker: Optional[BaseChunker] = None,
    ):
        self.config = config or (registry.config if registry else LibraryConfig())
        self.registry = registry or ModelRegistry(self.config)

        if repository is None:
            from rag_library.persistence.sql import SqlDocumentRepository

            repository = SqlDocumentRepository(self.config.database)
        self.repository = repository

        self.embedder = EmbeddingProvider(self.registry, self.config.embedding)
        self.vector_store = vector_store or QdrantVectorStore(self.registry, self.config.vector_store)
        self.indexer = DocumentIndexer(
            self.repository,
            self.embedder,
            self.vector_store,
            chunker=chunker or FixedWindowChunker(self.config.chunking),
            config=self.config.indexing,
        )
        self.searcher = LibrarySearcher(self.embedder, self.vector_store, self.config.retriever)
        self.reranker = CrossEncoderReranker(self.registry, self.config.reranker)
        self.generator = AnswerGenerator(
            generation_client or ChatModelClient(self.config.llm),
            self.config.answer,
        )

        self._background: set[asyncio.Task] = set()

    async def init(self) -> None:
        """Create storage tables when the repository needs them."""
        init_db = getattr(self.repository, "init_db", None)
        if init_db is not None:
            await init_db()

    async def close(self) -> None:
        await self.drain()
        await self.registry.aclose()

    # -------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------

    async def register_upload(self, name: str, size: int, path: str) -> LibraryDocument:
        """Record an already-stored file. Rejects formats no handler can read."""
        if not is_supported_extension(file_extension(name)):
            raise UnsupportedFormat(f"Unsupported file type: {file_extension(name) or name}")

        document = await self.repository.create(name=name, size=size, path=path)
        logger.info("Registered upload %s (%s, %d bytes)", document.id, name, size)
        return document

    async def list_documents(self) -> list[LibraryDocument]:
        return await self.repository.list_documents()

    async def get_document(self, document_id: str) -> LibraryDocument:
        document = await self.repository.get(document_id)
        if document is None:
            raise NotFound(f"Document not found: {document_id}")
        return document

    async def set_status(self, document_id: str, status: Union[DocumentStatus, str]) -> LibraryDocument:
        """
        Manually change a document's status.

        A document that is being indexed keeps its status until the run
        ends; reset_for_retry is the only way to release it early.

        Raises:
            InvalidArgument: Unknown status value.
            NotFound: No such document.
            IndexingConflict: The document is being indexed.
        """
        try:
            status = DocumentStatus(status)
        except ValueError:
            raise InvalidArgument(f"Unsupported status: {status}") from None

        expected = _ANY_STATUS if status == DocumentStatus.INDEXING else _STARTABLE
        document = await self.repository.compare_and_set_status(document_id, expected, status=status)
        if document is None:
            raise IndexingConflict(
                f"Document {document_id} is being indexed; wait for the run to finish "
                "or call reset_for_retry."
            )
        return document

    async def reset_for_retry(self, document_id: str) -> LibraryDocument:
        """Put a document back to uploaded/no stage/0% after a failed run."""
        return await self.repository.update(
            document_id,
            status=DocumentStatus.UPLOADED,
            indexing_stage=None,
            indexing_progress=0,
        )

    async def delete_document(self, document_id: str) -> LibraryDocument:
        """
        Delete the document row, its vectors (best effort), then the stored file.

        Safe while a run is in flight: the row goes first, so the run fails
        its next progress update and removes whatever it already saved.
        """
        document = await self.get_document(document_id)
        await self.repository.delete(document_id)
        await self.indexer.delete_existing_vectors(document_id)

        # The file may already be gone (removed by hand); that's fine.
        await asyncio.to_thread(Path(document.path).unlink, missing_ok=True)

        logger.info("Deleted document %s (%s)", document.id, document.name)
        return document

    # -------------------------------------------------------------------
    # Indexing
    # -------------------------------------------------------------------

    async def _enter_indexing(self, document_id: str) -> LibraryDocument:
        document = await self.repository.compare_and_set_status(
            document_id,
            _STARTABLE,
            status=DocumentStatus.INDEXING,
            indexing_stage=IndexingStage.EXTRACTING,
            indexing_progress=0,
        )
        if document is None:
            raise IndexingConflict(f"Document {document_id} is already being indexed.")
        return document

    async def _index_or_reset(self, document_id: str) -> LibraryDocument:
        try:
            return await self.indexer.index_document(document_id)
        except Exception:
            logger.exception("Indexing failed for document %s; resetting for retry", document_id)
            try:
                await self.reset_for_retry(document_id)
            except NotFound:
                logger.warning("Document %s was deleted during indexing; dropping its vectors", document_id)
                await self.indexer.delete_existing_vectors(document_id)
            raise

    async def run_indexing(self, document_id: str) -> LibraryDocument:
        """
        Index a document and wait for the result.

        Raises:
            NotFound: No such document.
            IndexingConflict: A run is already in progress for it.
            Any indexing error, after the document has been reset to uploaded.
        """
        await self._enter_indexing(document_id)
        return await self._index_or_reset(document_id)

    async def start_indexing(self, document_id: str) -> LibraryDocument:
        """
        Claim the document for indexing and run it in the background.

        Returns immediately with status=indexing; poll the document for
        stage/progress. Raises NotFound / IndexingConflict synchronously.
        """
        document = await self._enter_indexing(document_id)

        task = asyncio.create_task(self._background_run(document_id), name=f"index-{document_id}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return document

    async def _background_run(self, document_id: str) -> None:
        # Errors are already logged and the document reset by _index_or_reset.
        try:
            await self._index_or_reset(document_id)
        except Exception as exc:
            logger.debug("Background indexing of %s ended with %s", document_id, type(exc).__name__)

    async def drain(self) -> None:
        """Wait for every background indexing run started by this service."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # -------------------------------------------------------------------
    # Answering
    # -------------------------------------------------------------------

    async def ask(self, question: str, settings: Optional[ModelSettings] = None) -> QAResponse:
        """
        Single-question flow: search → rerank → grounded answer.

        Retrieval errors raise. A generation failure is returned in
        answer_error alongside the ranked results.
        """
        results = await self.searcher.search_library_chunks(question, limit=SEARCH_LIMIT)
        ranked = await self.reranker.rerank_chunks(question, results, limit=RERANK_LIMIT)

        answer: Optional[AnswerPayload] = None
        answer_error: Optional[str] = None
        try:
            answer = await self.generator.generate_answer_from_chunks(question, ranked, settings)
        except Exception as exc:
            logger.error("Failed to generate answer: %s", exc)
            answer_error = str(exc) or "Failed to generate answer using the configured model."

        return QAResponse(results=ranked, answer=answer, answer_error=answer_error)

    async def chat(
        self,
        messages: Iterable[TurnLike],
        settings: Optional[ModelSettings] = None,
    ) -> QAResponse:
        """
        Conversation flow on the latest user turn.

        Chunks below the relevance gate are dropped; if none remain the
        answer is generated directly, without sources.

        Raises:
            InvalidConversation: No usable turns, or the latest isn't the user's.
        """
        turns = sanitize_turns(messages)
        if not turns or turns[-1].role != "user":
            raise InvalidConversation("A user message is required to start a chat.")
        latest = turns[-1].content

        results = await self.searcher.search_library_chunks(latest, limit=SEARCH_LIMIT)
        ranked = await self.reranker.rerank_chunks(latest, results, limit=RERANK_LIMIT)
        relevant = filter_relevant_chunks(ranked, self.config.answer.min_cross_score)

        answer: Optional[AnswerPayload] = None
        answer_error: Optional[str] = None
        try:
            if relevant:
                answer = await self.generator.generate_chat_answer_from_chunks(turns, relevant, settings)
            else:
                answer = await self.generator.generate_direct_answer(latest, settings)
        except Exception as exc:
            logger.error("Failed to generate chat answer: %s", exc)
            answer_error = str(exc) or "Failed to generate answer using the configured model."

        return QAResponse(results=relevant, answer=answer, answer_error=answer_error)
