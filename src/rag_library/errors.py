"""
Error taxonomy for rag-library.

Every failure the pipeline raises itself is a RagLibraryError, so
callers can catch the whole family at once. Each class also inherits the
closest built-in exception, which keeps `except ValueError` and friends
working for code that doesn't know about this module.

Grouped by where they come from:

    Caller input        InvalidArgument, InvalidQuery, InvalidConversation
    Lookups             NotFound
    Extraction/models   UnsupportedFormat, ExtractionFailed, DependencyMissing,
                        ModelUnavailable
    Empty stage output  EmptyDocument, EmptyEmbedding, EmptyDimension
    Consistency checks  EmbeddingCountMismatch, DimensionMismatch, MissingVector
    Vector store        VectorStoreUnavailable, VectorStoreRequestFailed
    Answering           NoSources
    Lifecycle           IndexingConflict

Messages are written for the person who has to fix the problem: they
name the missing package, the config variable to check, or the offending
chunk index.
"""

from typing import Optional


class RagLibraryError(Exception):
    """Base class for every error raised by rag-library."""


# ---------------------------------------------------------------------------
# Caller input
# ---------------------------------------------------------------------------

class InvalidArgument(RagLibraryError, ValueError):
    """Malformed caller input. Always raised before any I/O happens."""


class InvalidQuery(InvalidArgument):
    """The question is blank or whitespace-only."""


class InvalidConversation(InvalidArgument):
    """Chat history is empty or its latest turn is not from the user."""


class NotFound(RagLibraryError, LookupError):
    """A referenced document (or collection) does not exist."""


# ---------------------------------------------------------------------------
# Extraction and model loading
# ---------------------------------------------------------------------------

class UnsupportedFormat(RagLibraryError, ValueError):
    """No text handler is registered for the file's extension."""


class ExtractionFailed(RagLibraryError, ValueError):
    """A handler exists for the file but could not parse it."""

    def __init__(self, file_name: str, detail: str):
        self.file_name = file_name
        self.detail = detail
        super().__init__(f"Could not extract text from {file_name}: {detail}")


class DependencyMissing(RagLibraryError, ImportError):
    """An optional package or binary needed for this step is not installed."""


class ModelUnavailable(RagLibraryError, RuntimeError):
    """Model weights could not be resolved, downloaded or loaded."""


# ---------------------------------------------------------------------------
# Stage boundaries that produced nothing usable
# ---------------------------------------------------------------------------

class PipelineOutputError(RagLibraryError, RuntimeError):
    """A pipeline stage finished without usable output."""


class EmptyDocument(PipelineOutputError):
    """Extraction + chunking yielded zero chunks."""


class EmptyEmbedding(PipelineOutputError):
    """The embedding model returned a zero-length vector."""


class EmptyDimension(PipelineOutputError):
    """The vector dimension could not be determined (first vector is empty)."""


# ---------------------------------------------------------------------------
# Internal consistency checks
# ---------------------------------------------------------------------------

class ConsistencyError(RagLibraryError, RuntimeError):
    """Expected and actual counts or shapes disagree."""


class EmbeddingCountMismatch(ConsistencyError):
    """The embedder returned a different number of vectors than inputs."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding model returned {actual} vectors for {expected} chunks."
        )


class DimensionMismatch(ConsistencyError):
    """A vector's length differs from the collection dimension."""

    def __init__(self, chunk_index: int, expected: int, actual: int):
        self.chunk_index = chunk_index
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Vector for chunk {chunk_index} has dimension {actual}, expected {expected}."
        )


class MissingVector(ConsistencyError):
    """A chunk has no vector to go with it."""

    def __init__(self, chunk_index: int):
        self.chunk_index = chunk_index
        super().__init__(f"Missing embedding vector for chunk {chunk_index}.")


# ---------------------------------------------------------------------------
# Vector store
# ---------------------------------------------------------------------------

class VectorStoreError(RagLibraryError):
    """Base for vector store failures, already normalized by the adapter."""


class VectorStoreUnavailable(VectorStoreError, ConnectionError):
    """Qdrant could not be reached at all."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "Unable to connect to Qdrant. Verify QDRANT_URL and QDRANT_API_KEY "
            "and ensure the service is reachable."
        )


class VectorStoreRequestFailed(VectorStoreError):
    """Qdrant answered, but rejected the request."""

    def __init__(self, status: Optional[int] = None, detail: Optional[str] = None):
        self.status = status
        self.detail = detail or "Request was rejected without details."
        label = f"Qdrant request failed ({status})" if status else "Qdrant request failed"
        super().__init__(f"{label}: {self.detail}")


# ---------------------------------------------------------------------------
# Answering and lifecycle
# ---------------------------------------------------------------------------

class NoSources(RagLibraryError, ValueError):
    """Grounded generation was asked to answer from zero chunks."""

    def __init__(self, message: str = "No sources available to generate an answer."):
        super().__init__(message)


class IndexingConflict(RagLibraryError):
    """An indexing run for this document is already in flight."""
