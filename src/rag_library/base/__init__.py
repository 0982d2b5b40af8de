"""
Abstract base classes defining the contract for each pipeline stage.

Import from here:
    from rag_library.base import BaseChunker, BaseVectorStore, BaseCrossEncoder
"""

from .generator import BaseGenerationClient
from .indexer import BaseChunker, BaseTextHandler
from .repository import BaseDocumentRepository
from .reranker import BaseCrossEncoder, Logits, MultiLogit, SingleLogit
from .vectorstore import BaseVectorStore, Vector

__all__ = [
    "BaseChunker",
    "BaseTextHandler",
    "BaseDocumentRepository",
    "BaseVectorStore",
    "Vector",
    "BaseCrossEncoder",
    "Logits",
    "SingleLogit",
    "MultiLogit",
    "BaseGenerationClient",
]
