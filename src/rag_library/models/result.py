"""
Result models returned to callers of the library service.
"""

from typing import Optional

from pydantic import BaseModel, Field

from .document import RetrievedChunk


class AnswerPayload(BaseModel):
    """A generated answer and the backend that produced it."""

    text: str = Field(description="The generated answer, trimmed")
    provider: str = Field(default="", description="Backend that served the request")
    model: str = Field(default="", description="Model identifier within that backend")


class QAResponse(BaseModel):
    """
    Outcome of a question or chat request.

    Retrieval failures raise. Generation failures don't: the ranked
    results are still useful, so answer is None and answer_error says why.
    """

    results: list[RetrievedChunk] = Field(default_factory=list)
    answer: Optional[AnswerPayload] = None
    answer_error: Optional[str] = None
