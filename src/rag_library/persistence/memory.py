"""
In-process document repository.

Keeps documents in a dict. Every write also appends a snapshot to a
per-document history, which is how tests observe the sequence of
progress values an indexing run persisted.

Nothing awaits between reading and writing a document, so on a single
event loop compare_and_set_status is atomic without a lock.
"""

import uuid
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from rag_library.base.repository import BaseDocumentRepository
from rag_library.errors import InvalidArgument, NotFound
from rag_library.models.document import DocumentStatus, LibraryDocument, utcnow

_IMMUTABLE_FIELDS = {"id", "uploaded_at"}


class InMemoryDocumentRepository(BaseDocumentRepository):
    def __init__(self):
        self._documents: dict[str, LibraryDocument] = {}
        self._history: dict[str, list[LibraryDocument]] = {}

    def history(self, document_id: str) -> list[LibraryDocument]:
        """Every persisted state of a document, oldest first."""
        return list(self._history.get(document_id, []))

    def _store(self, document: LibraryDocument) -> LibraryDocument:
        self._documents[document.id] = document
        self._history.setdefault(document.id, []).append(document)
        return document

    def _require(self, document_id: str) -> LibraryDocument:
        document = self._documents.get(document_id)
        if document is None:
            raise NotFound(f"Document not found: {document_id}")
        return document

    def _apply(self, document: LibraryDocument, fields: dict[str, Any]) -> LibraryDocument:
        unknown = set(fields) - set(LibraryDocument.model_fields)
        if unknown or set(fields) & _IMMUTABLE_FIELDS:
            raise InvalidArgument(f"Cannot update fields: {sorted(unknown | (set(fields) & _IMMUTABLE_FIELDS))}")
        data = document.model_dump()
        data.update(fields)
        data["updated_at"] = utcnow()
        try:
            updated = LibraryDocument.model_validate(data)
        except ValidationError as exc:
            raise InvalidArgument(str(exc)) from exc
        return self._store(updated)

    async def create(self, name: str, size: int, path: str) -> LibraryDocument:
        return self._store(LibraryDocument(id=str(uuid.uuid4()), name=name, size=size, path=path))

    async def get(self, document_id: str) -> Optional[LibraryDocument]:
        return self._documents.get(document_id)

    async def list_documents(self) -> list[LibraryDocument]:
        return sorted(self._documents.values(), key=lambda d: d.uploaded_at, reverse=True)

    async def update(self, document_id: str, **fields: Any) -> LibraryDocument:
        return self._apply(self._require(document_id), fields)

    async def compare_and_set_status(
        self,
        document_id: str,
        expected: Iterable[DocumentStatus],
        **fields: Any,
    ) -> Optional[LibraryDocument]:
        document = self._require(document_id)
        if document.status not in set(expected):
            return None
        return self._apply(document, fields)

    async def delete(self, document_id: str) -> LibraryDocument:
        document = self._require(document_id)
        del self._documents[document_id]
        return document
