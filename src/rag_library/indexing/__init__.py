"""
Indexing pipeline: extract → chunk → embed → store.

Usage:
    from rag_library.indexing import DocumentIndexer, EmbeddingProvider, QdrantVectorStore
"""

from .chunking import chunk_text, FixedWindowChunker
from .embeddings import get_embedding_model, EmbeddingProvider
from .extraction import extract_text_content, sanitize_content, is_supported_extension
from .handlers import get_handler_for_extension, get_registered_handlers, SUPPORTED_EXTENSIONS
from .indexer import DocumentIndexer
from .vectorstore import QdrantVectorStore, create_qdrant_client, normalize_qdrant_error

__all__ = [
    # Chunking
    "chunk_text",
    "FixedWindowChunker",
    # Extraction
    "extract_text_content",
    "sanitize_content",
    "is_supported_extension",
    "get_handler_for_extension",
    "get_registered_handlers",
    "SUPPORTED_EXTENSIONS",
    # Embeddings
    "get_embedding_model",
    "EmbeddingProvider",
    # Vector store
    "QdrantVectorStore",
    "create_qdrant_client",
    "normalize_qdrant_error",
    # Orchestration
    "DocumentIndexer",
]
