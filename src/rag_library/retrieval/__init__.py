"""
Retrieval components: vector search, cross-encoder scoring, and reranking.

Usage:
    from rag_library.retrieval import LibrarySearcher, CrossEncoderReranker
"""

from .search import LibrarySearcher
from .reranking import CrossEncoderReranker, combine_scores, relevance_from_logits, select_with_coverage
from .cross_encoder import TransformersCrossEncoder, load_cross_encoder, resolve_model_identifier

__all__ = [
    # Vector search
    "LibrarySearcher",
    # Reranking
    "CrossEncoderReranker",
    "combine_scores",
    "relevance_from_logits",
    "select_with_coverage",
    # Cross-encoder model
    "TransformersCrossEncoder",
    "load_cross_encoder",
    "resolve_model_identifier",
]
