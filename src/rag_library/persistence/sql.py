"""
SQLAlchemy (asyncio) document repository.

One table, library_documents, holding the LibraryDocument fields. The
default URL is a local SQLite file through aiosqlite; any async driver
SQLAlchemy supports works (e.g. postgresql+asyncpg://...).

compare_and_set_status is a single UPDATE ... WHERE id = :id AND status IN
(...), so two concurrent "start indexing" requests can't both win, even
across processes sharing the database.

Usage:
    from rag_library.persistence.sql import SqlDocumentRepository

    repository = SqlDocumentRepository(DatabaseConfig(url="sqlite+aiosqlite:///./library.db"))
    await repository.init_db()
    document = await repository.create("handbook.pdf", 52311, "/data/uploads/handbook.pdf")
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import DateTime, Integer, String, Text, select
from sqlalchemy import update as sql_update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from rag_library.base.repository import BaseDocumentRepository
from rag_library.config import DatabaseConfig
from rag_library.errors import InvalidArgument, NotFound
from rag_library.models.document import (
    DocumentStatus,
    IndexingStage,
    LibraryDocument,
    utcnow,
)

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class DocumentRow(Base):
    __tablename__ = "library_documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(512))
    size: Mapped[int] = mapped_column(Integer, default=0)
    path: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(16), default=DocumentStatus.UPLOADED.value, index=True)
    indexing_stage: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    indexing_progress: Mapped[int] = mapped_column(Integer, default=0)
    chunk_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_indexed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    embedding_model: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


_WRITABLE_COLUMNS = {
    "name",
    "size",
    "path",
    "status",
    "indexing_stage",
    "indexing_progress",
    "chunk_count",
    "last_indexed_at",
    "embedding_model",
}


def _to_document(row: DocumentRow) -> LibraryDocument:
    return LibraryDocument(
        id=row.id,
        name=row.name,
        size=row.size,
        path=row.path,
        status=DocumentStatus(row.status),
        indexing_stage=IndexingStage(row.indexing_stage) if row.indexing_stage else None,
        indexing_progress=row.indexing_progress,
        chunk_count=row.chunk_count,
        last_indexed_at=row.last_indexed_at,
        embedding_model=row.embedding_model,
        uploaded_at=row.uploaded_at,
        updated_at=row.updated_at,
    )


def _column_values(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - _WRITABLE_COLUMNS
    if unknown:
        raise InvalidArgument(f"Cannot update fields: {sorted(unknown)}")

    values = {
        key: value.value if isinstance(value, (DocumentStatus, IndexingStage)) else value
        for key, value in fields.items()
    }
    progress = values.get("indexing_progress")
    if progress is not None and not 0 <= progress <= 100:
        raise InvalidArgument(f"indexing_progress must be within 0..100, got {progress}")
    values["updated_at"] = utcnow()
    return values


class SqlDocumentRepository(BaseDocumentRepository):
    """
    BaseDocumentRepository over an async SQLAlchemy engine.

    Args:
        config: Database URL and echo flag. Ignored when engine is given.
        engine: An existing AsyncEngine to share.
    """

    def __init__(self, config: Optional[DatabaseConfig] = None, engine: Optional[AsyncEngine] = None):
        config = config or DatabaseConfig()
        self.engine = engine or create_async_engine(config.url, echo=config.echo, future=True)
        self._sessions = async_sessionmaker(
            self.engine,
            expire_on_commit=False,
            class_=AsyncSession,
            autoflush=False,
        )

    async def init_db(self) -> None:
        """Create the table if it does not exist. Call once at startup."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Document table ready")

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def create(self, name: str, size: int, path: str) -> LibraryDocument:
        now = utcnow()
        row = DocumentRow(
            id=str(uuid.uuid4()),
            name=name,
            size=size,
            path=path,
            status=DocumentStatus.UPLOADED.value,
            indexing_stage=None,
            indexing_progress=0,
            uploaded_at=now,
            updated_at=now,
        )
        async with self._sessions() as session:
            session.add(row)
            await session.commit()
        logger.info("Document created | id=%s | name=%s", row.id, name)
        return _to_document(row)

    async def get(self, document_id: str) -> Optional[LibraryDocument]:
        async with self._sessions() as session:
            row = await session.get(DocumentRow, document_id)
            return _to_document(row) if row else None

    async def list_documents(self) -> list[LibraryDocument]:
        async with self._sessions() as session:
            result = await session.execute(select(DocumentRow).order_by(DocumentRow.uploaded_at.desc()))
            return [_to_document(row) for row in result.scalars().all()]

    async def update(self, document_id: str, **fields: Any) -> LibraryDocument:
        values = _column_values(fields)
        async with self._sessions() as session:
            row = await session.get(DocumentRow, document_id)
            if row is None:
                raise NotFound(f"Document not found: {document_id}")
            for key, value in values.items():
                setattr(row, key, value)
            await session.commit()
            return _to_document(row)

    async def compare_and_set_status(
        self,
        document_id: str,
        expected: Iterable[DocumentStatus],
        **fields: Any,
    ) -> Optional[LibraryDocument]:
        values = _column_values(fields)
        allowed = [DocumentStatus(status).value for status in expected]

        async with self._sessions() as session:
            result = await session.execute(
                sql_update(DocumentRow)
                .where(DocumentRow.id == document_id, DocumentRow.status.in_(allowed))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

            row = await session.get(DocumentRow, document_id, populate_existing=True)
            if row is None:
                raise NotFound(f"Document not found: {document_id}")
            if result.rowcount == 0:
                return None
            return _to_document(row)

    async def delete(self, document_id: str) -> LibraryDocument:
        async with self._sessions() as session:
            row = await session.get(DocumentRow, document_id)
            if row is None:
                raise NotFound(f"Document not found: {document_id}")
            document = _to_document(row)
            await session.delete(row)
            await session.commit()
        logger.info("Document deleted | id=%s", document_id)
        return document
