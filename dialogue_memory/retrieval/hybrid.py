"""Hybrid lexical ranking: BM25 and keyword cosine fused by weighted RRF."""
from __future__ import annotations
from typing import List, Optional, Sequence, Tuple

from ..index.bm25 import score_corpus
from .fusion import RRF_K, keyword_cosine_similarity, rank_by_score, weighted_rrf_fusion


def hybrid_rank(
    query_keywords: Sequence[str],
    documents: Sequence[Sequence[str]],
    bm25_weight: float,
    cosine_weight: float,
    bm25_multipliers: Optional[Sequence[float]] = None,
    cosine_multipliers: Optional[Sequence[float]] = None,
    k: float = RRF_K,
) -> List[Tuple[int, float]]:
    """
    Rank keyword documents against a query.

    Every document is scored twice (BM25 and set cosine), each score
    optionally scaled by a per-document multiplier; the two rankings are
    fused with weighted RRF.

    Args:
        query_keywords: Query terms
        documents: One keyword bag per document
        bm25_weight: RRF weight of the BM25 ranking
        cosine_weight: RRF weight of the cosine ranking
        bm25_multipliers: Per-document BM25 scale (default 1.0)
        cosine_multipliers: Per-document cosine scale (default 1.0)

    Returns:
        (document position, fused score) pairs, best first
    """
    bm25_scale = bm25_multipliers or [1.0] * len(documents)
    cosine_scale = cosine_multipliers or [1.0] * len(documents)

    bm25_scores = [
        score * scale for score, scale in zip(score_corpus(query_keywords, documents), bm25_scale)
    ]
    cosine_scores = [
        keyword_cosine_similarity(query_keywords, doc) * scale
        for doc, scale in zip(documents, cosine_scale)
    ]

    return weighted_rrf_fusion(
        rank_by_score(bm25_scores),
        rank_by_score(cosine_scores),
        bm25_weight,
        cosine_weight,
        k=k,
    )
