"""
Pydantic models shared across rag-library.

Import from here rather than reaching into submodules:
    from rag_library.models import Chunk, RetrievedChunk, AnswerPayload
"""

from .document import (
    INDEXING_STAGES,
    Chunk,
    DocumentStatus,
    IndexingStage,
    LibraryDocument,
    RetrievedChunk,
)
from .generation import (
    ConversationTurn,
    GenerationMessage,
    GenerationOutput,
    GenerationRequest,
    ModelSettings,
)
from .result import AnswerPayload, QAResponse

__all__ = [
    # Document
    "INDEXING_STAGES",
    "Chunk",
    "DocumentStatus",
    "IndexingStage",
    "LibraryDocument",
    "RetrievedChunk",
    # Generation
    "ConversationTurn",
    "GenerationMessage",
    "GenerationOutput",
    "GenerationRequest",
    "ModelSettings",
    # Result
    "AnswerPayload",
    "QAResponse",
]
