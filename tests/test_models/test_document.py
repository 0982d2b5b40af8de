"""Tests for document models: pure Pydantic, no I/O."""

import pytest
from pydantic import ValidationError

from rag_library.models import INDEXING_STAGES, Chunk, DocumentStatus, IndexingStage, LibraryDocument, RetrievedChunk


def test_library_document_defaults():
    doc = LibraryDocument(id="d1", name="handbook.pdf", path="/data/handbook.pdf")
    assert doc.status == DocumentStatus.UPLOADED
    assert doc.indexing_stage is None
    assert doc.indexing_progress == 0
    assert doc.chunk_count is None
    assert doc.uploaded_at.tzinfo is not None


@pytest.mark.parametrize("progress", [-1, 101])
def test_progress_bounds(progress):
    with pytest.raises(ValidationError):
        LibraryDocument(id="d1", name="a.txt", path="/a.txt", indexing_progress=progress)


def test_status_values():
    assert [s.value for s in DocumentStatus] == ["uploaded", "indexing", "indexed"]


def test_stages_in_execution_order():
    assert INDEXING_STAGES == (
        IndexingStage.EXTRACTING,
        IndexingStage.CHUNKING,
        IndexingStage.EMBEDDING,
        IndexingStage.SAVING,
    )


def test_chunk_requires_content():
    with pytest.raises(ValidationError):
        Chunk(id="0", content="", start=0, end=0)


def test_retrieved_chunk_defaults():
    chunk = RetrievedChunk(id="p1")
    assert chunk.score == 0.0
    assert chunk.content == ""
    assert chunk.vector_score is None
    assert chunk.cross_score is None
