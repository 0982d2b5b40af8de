"""
Document models for the library pipeline.

These represent data at each stage:
  LibraryDocument (persisted) → Chunk (split, per run) → RetrievedChunk (query time)
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    """Lifecycle of a library document: uploaded → indexing → indexed."""

    UPLOADED = "uploaded"
    INDEXING = "indexing"
    INDEXED = "indexed"


class IndexingStage(str, Enum):
    """Sub-stage of an indexing run, in execution order."""

    EXTRACTING = "extracting"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    SAVING = "saving"


INDEXING_STAGES: tuple[IndexingStage, ...] = tuple(IndexingStage)


class LibraryDocument(BaseModel):
    """
    An uploaded file and its indexing state.

    Created on upload with status=uploaded, stage=None, progress=0. Only
    the indexer mutates it during a run; on failure the orchestrator puts
    it back to uploaded so the user can retry.
    """

    id: str
    name: str
    size: int = Field(default=0, ge=0, description="File size in bytes")
    path: str = Field(description="Absolute path of the stored file")
    status: DocumentStatus = DocumentStatus.UPLOADED
    indexing_stage: Optional[IndexingStage] = None
    indexing_progress: int = Field(default=0, ge=0, le=100)
    chunk_count: Optional[int] = None
    last_indexed_at: Optional[datetime] = None
    embedding_model: Optional[str] = None
    uploaded_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Chunk(BaseModel):
    """
    A window of normalized document text.

    start/end are character offsets into the normalized text. Chunks are
    never persisted as rows; only their vectors (plus a payload copy of
    these fields) live in the vector store.
    """

    id: str = Field(description="Sequential index within the document, as a string")
    content: str = Field(min_length=1, description="Trimmed window text")
    start: int = Field(ge=0)
    end: int = Field(ge=0)


class RetrievedChunk(BaseModel):
    """
    A chunk returned by search, possibly reranked.

    score is overwritten by whichever stage touched the chunk last: raw
    similarity after search, fused score after reranking. vector_score and
    cross_score keep the individual signals so callers can still see them.
    """

    id: str
    score: float = 0.0
    content: str = ""
    document_id: Optional[str] = None
    document_name: Optional[str] = None
    chunk_index: Optional[int] = None
    start: Optional[int] = None
    end: Optional[int] = None
    vector_score: Optional[float] = None
    cross_score: Optional[float] = None
