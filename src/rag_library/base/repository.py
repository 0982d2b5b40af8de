"""
Abstract base class for document persistence.

The indexer reads and writes LibraryDocument fields by id and nothing
more; it never sees sessions, tables or migrations. Implementations live
in persistence/.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from rag_library.models.document import DocumentStatus, LibraryDocument


class BaseDocumentRepository(ABC):
    """Contract for document storage."""

    @abstractmethod
    async def create(self, name: str, size: int, path: str) -> LibraryDocument:
        """Insert a new document with status=uploaded, stage=None, progress=0."""
        ...

    @abstractmethod
    async def get(self, document_id: str) -> Optional[LibraryDocument]:
        ...

    @abstractmethod
    async def list_documents(self) -> list[LibraryDocument]:
        ...

    @abstractmethod
    async def update(self, document_id: str, **fields: Any) -> LibraryDocument:
        """
        Set the given fields and bump updated_at.

        Raises:
            NotFound: If no document has this id.
        """
        ...

    @abstractmethod
    async def compare_and_set_status(
        self,
        document_id: str,
        expected: Iterable[DocumentStatus],
        **fields: Any,
    ) -> Optional[LibraryDocument]:
        """
        Atomically update fields only if the current status is in expected.

        Returns:
            The updated document, or None if the status didn't match.

        Raises:
            NotFound: If no document has this id.
        """
        ...

    @abstractmethod
    async def delete(self, document_id: str) -> LibraryDocument:
        """
        Remove the document and return its last state.

        Raises:
            NotFound: If no document has this id.
        """
        ...
