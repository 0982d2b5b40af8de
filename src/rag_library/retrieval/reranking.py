"""
Cross-encoder reranking with score fusion.

Vector search is fast but coarse. The reranker reads each (question,
chunk) pair with a cross-encoder and blends that judgement with the
original similarity:

    1. Retrieve a pool (limit=10) with LibrarySearcher
    2. Score every candidate with the cross-encoder → cross_score
    3. Min-max normalize cross_score and vector_score separately
       (a flat column normalizes to 1 everywhere)
    4. fused = w * cross + (1 - w) * vector      (w = CROSS_ENCODER_WEIGHT, 0.7)
    5. Keep the best `limit` (default 3, clamped to 1..10)

Coverage rule: the candidate with the highest raw vector similarity is
always in the output, listed first, even if it loses on fused score. The
rest comes from the fused ranking, then from the original candidate order
if there still aren't enough. Ids are never repeated.

Usage:
    from rag_library.retrieval.reranking import CrossEncoderReranker

    reranker = CrossEncoderReranker(registry)
    top = await reranker.rerank_chunks("refund policy", candidates, limit=3)
"""

import logging
import math
from typing import TYPE_CHECKING, Optional, Sequence

from rag_library.base.reranker import Logits, MultiLogit, SingleLogit
from rag_library.config import RerankerConfig
from rag_library.errors import InvalidQuery
from rag_library.models.document import RetrievedChunk
from rag_library.retrieval.cross_encoder import wrap_cross_encoder_error
from rag_library.utils.helpers import clamp_limit

if TYPE_CHECKING:
    from rag_library.registry import ModelRegistry

logger = logging.getLogger(__name__)

MIN_LIMIT = 1
MAX_LIMIT = 10


# ---------------------------------------------------------------------------
# Pure scoring helpers
# ---------------------------------------------------------------------------

def sigmoid(value: float) -> float:
    if value >= 0:
        return 1.0 / (1.0 + math.exp(-value))
    z = math.exp(value)
    return z / (1.0 + z)


def softmax(values: Sequence[float]) -> list[float]:
    peak = max(values)
    exps = [math.exp(v - peak) for v in values]
    total = sum(exps)
    return [e / total for e in exps]


def relevance_from_logits(logits: Logits) -> float:
    """sigmoid for a single logit, probability of the last class otherwise."""
    if isinstance(logits, SingleLogit):
        return sigmoid(logits.value)
    if isinstance(logits, MultiLogit):
        return softmax(logits.values)[-1]
    raise TypeError(f"Unknown logits type: {type(logits).__name__}")


def vector_similarity(chunk: RetrievedChunk) -> float:
    """Raw retrieval similarity; search always sets vector_score, score is the fallback."""
    return chunk.vector_score if chunk.vector_score is not None else chunk.score


def _min_max(values: list[float]) -> list[float]:
    low, high = min(values), max(values)
    if high <= low:
        return [1.0] * len(values)
    return [(v - low) / (high - low) for v in values]


def combine_scores(chunks: Sequence[RetrievedChunk], weight: float = 0.7) -> list[RetrievedChunk]:
    """
    Fuse cross and vector scores into `score`, sorted best first.

    Returns copies; the inputs are not modified. The sort is stable, so
    chunks with equal fused scores keep their input order.
    """
    if not chunks:
        return []

    weight = min(1.0, max(0.0, weight))
    cross = _min_max([c.cross_score or 0.0 for c in chunks])
    vector = _min_max([vector_similarity(c) for c in chunks])

    fused = [
        chunk.model_copy(update={"score": weight * cross[i] + (1.0 - weight) * vector[i]})
        for i, chunk in enumerate(chunks)
    ]
    fused.sort(key=lambda c: c.score, reverse=True)
    return fused


def select_with_coverage(
    candidates: Sequence[RetrievedChunk],
    fused: Sequence[RetrievedChunk],
    limit: int,
) -> list[RetrievedChunk]:
    """
    Build the final list: top vector hit, then fused ranking, then candidate order.

    Args:
        candidates: Chunks in retrieval order, with vector scores.
        fused: Output of combine_scores() for the same chunks.
        limit: Max results.
    """
    by_id = {chunk.id: chunk for chunk in fused}
    ranked = list(fused[:min(limit, len(fused))])

    final: list[RetrievedChunk] = []
    seen: set[str] = set()

    def push(chunk: Optional[RetrievedChunk]) -> None:
        if chunk is None or chunk.id in seen or len(final) >= limit:
            return
        final.append(by_id.get(chunk.id, chunk))
        seen.add(chunk.id)

    if candidates:
        # max() keeps the first of equal values, so ties go to the earliest hit
        top_hit = max(candidates, key=vector_similarity)
        push(top_hit)

    for chunk in ranked:
        push(chunk)

    for chunk in candidates:
        push(chunk)

    return final


# ---------------------------------------------------------------------------
# Reranker
# ---------------------------------------------------------------------------

class CrossEncoderReranker:
    """
    Reranks retrieved chunks with the registry's shared cross-encoder.

    The model is loaded on first use. Scoring is sequential, one pair
    per model call, in candidate order.
    """

    def __init__(self, registry: "ModelRegistry", config: Optional[RerankerConfig] = None):
        self._registry = registry
        self._config = config or registry.config.reranker

    async def rerank_chunks(
        self,
        question: str,
        chunks: Sequence[RetrievedChunk],
        limit: Optional[float] = None,
    ) -> list[RetrievedChunk]:
        """
        Args:
            question: The user question. Blank raises InvalidQuery.
            chunks: Candidates from search, best vector hit first.
            limit: Results to return, clamped to [1, 10]. Default 3.

        Returns:
            At most `limit` chunks with cross_score and fused score set.
        """
        trimmed = (question or "").strip()
        if not trimmed:
            raise InvalidQuery("Question text is required for reranking.")

        if not chunks:
            return []

        effective_limit = clamp_limit(limit, self._config.limit, MIN_LIMIT, MAX_LIMIT)

        try:
            encoder = await self._registry.get_cross_encoder()
        except Exception as exc:
            raise wrap_cross_encoder_error(exc, self._config) from exc

        scored: list[RetrievedChunk] = []
        for chunk in chunks:
            logits = await encoder.score(trimmed, chunk.content or "")
            scored.append(
                chunk.model_copy(
                    update={
                        "cross_score": relevance_from_logits(logits),
                        "vector_score": vector_similarity(chunk),
                    }
                )
            )

        fused = combine_scores(scored, self._config.weight)
        final = select_with_coverage(scored, fused, effective_limit)

        logger.debug(
            "Reranked %d candidates → %d (weight=%.2f)",
            len(chunks), len(final), self._config.weight,
        )
        return final
