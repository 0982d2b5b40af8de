"""
rag-library: index a document library and answer questions from it.

Quick start:
    from rag_library import LibraryService, LibraryConfig, configure_logging

    configure_logging()
    service = LibraryService(LibraryConfig())
    await service.init()

    document = await service.register_upload("handbook.pdf", 52311, "/data/uploads/handbook.pdf")
    await service.run_indexing(document.id)

    response = await service.ask("How many vacation days do I get?")
    print(response.answer.text)

The pipeline behind it:
    - Indexing:   extract → chunk → embed → Qdrant, with persisted progress
    - Retrieval:  vector search → cross-encoder rerank with score fusion
    - Answering:  numbered sources → chat model, citations as [S1], [S2]
"""

from rag_library.config import (
    AnswerConfig,
    ChunkingConfig,
    DatabaseConfig,
    EmbeddingConfig,
    IndexingConfig,
    LibraryConfig,
    LLMConfig,
    RerankerConfig,
    RetrieverConfig,
    VectorStoreConfig,
)
from rag_library.library import LibraryService
from rag_library.registry import ModelRegistry
from rag_library.utils.logger import configure_logging

__all__ = [
    # Service (public API)
    "LibraryService",
    "ModelRegistry",
    "configure_logging",
    # Config
    "LibraryConfig",
    "LLMConfig",
    "EmbeddingConfig",
    "ChunkingConfig",
    "VectorStoreConfig",
    "IndexingConfig",
    "RetrieverConfig",
    "RerankerConfig",
    "AnswerConfig",
    "DatabaseConfig",
]

__version__ = "0.1.0"
