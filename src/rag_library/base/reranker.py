"""
Abstract base class for pairwise relevance models.

The reranker never inspects tensors. A cross-encoder adapter scores one
(question, passage) pair and reports the raw logits as a tagged value,
SingleLogit or MultiLogit, and the reranker turns that into a
probability by matching on the tag.
"""

from abc import ABC, abstractmethod
from typing import Literal, Union

from pydantic import BaseModel, Field


class SingleLogit(BaseModel):
    """Regression-style head: one logit, relevance = sigmoid(value)."""

    kind: Literal["single-logit"] = "single-logit"
    value: float


class MultiLogit(BaseModel):
    """Classification head: relevance = softmax(values)[-1]."""

    kind: Literal["multi-logit"] = "multi-logit"
    values: list[float] = Field(min_length=1)


Logits = Union[SingleLogit, MultiLogit]


class BaseCrossEncoder(ABC):
    """Contract for a loaded cross-encoder model."""

    @abstractmethod
    async def score(self, question: str, passage: str) -> Logits:
        """
        Run the model on one (question, passage) pair.

        Args:
            question: The trimmed user question.
            passage: Chunk content.

        Returns:
            The raw logits for the pair, tagged by head shape.
        """
        ...
