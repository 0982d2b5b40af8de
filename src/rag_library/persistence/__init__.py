"""
Document repositories.

Usage:
    from rag_library.persistence import SqlDocumentRepository, InMemoryDocumentRepository
"""

from .memory import InMemoryDocumentRepository
from .sql import SqlDocumentRepository, DocumentRow

__all__ = [
    "InMemoryDocumentRepository",
    "SqlDocumentRepository",
    "DocumentRow",
]
