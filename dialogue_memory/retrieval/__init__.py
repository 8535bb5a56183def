"""Ranking and similarity primitives shared by both stores."""

from .fusion import RRF_K, keyword_cosine_similarity, rank_by_score, weighted_rrf_fusion
from .hybrid import hybrid_rank
from .similarity import (
    compute_relevance_score,
    extract_active_topics,
    extract_active_topics_from_messages,
    semantic_similarity_score,
    tfidf_cosine_similarity,
)

__all__ = [
    "RRF_K",
    "keyword_cosine_similarity",
    "rank_by_score",
    "weighted_rrf_fusion",
    "hybrid_rank",
    "compute_relevance_score",
    "extract_active_topics",
    "extract_active_topics_from_messages",
    "semantic_similarity_score",
    "tfidf_cosine_similarity",
]
