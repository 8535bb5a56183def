"""Set cosine and weighted Reciprocal Rank Fusion."""
from __future__ import annotations
from typing import Dict, Hashable, List, Sequence, Tuple
import math


RRF_K = 60.0

Ranking = List[Tuple[Hashable, float]]


def keyword_cosine_similarity(keywords_a: Sequence[str], keywords_b: Sequence[str]) -> float:
    """
    Cosine similarity of two keyword sets.

    |A ∩ B| / (sqrt|A| * sqrt|B|); 0.0 when either side is empty.
    """
    set_a = set(keywords_a)
    set_b = set(keywords_b)
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / (math.sqrt(len(set_a)) * math.sqrt(len(set_b)))


def rank_by_score(scores: Sequence[float]) -> Ranking:
    """
    Turn per-document scores into a ranking.

    Every document is ranked, including zero scores. The sort is stable, so
    ties keep document order.
    """
    ranking = list(enumerate(scores))
    ranking.sort(key=lambda item: item[1], reverse=True)
    return ranking


def weighted_rrf_fusion(
    ranking_a: Ranking,
    ranking_b: Ranking,
    weight_a: float,
    weight_b: float,
    k: float = RRF_K,
) -> Ranking:
    """
    Fuse two rankings with weighted Reciprocal Rank Fusion.

    A document at 0-based position ``rank`` in a list earns
    ``weight / (k + rank + 1)`` from that list; a document missing from a
    list earns nothing from it.

    Args:
        ranking_a: (doc_id, score) pairs, best first
        ranking_b: (doc_id, score) pairs, best first
        weight_a: Weight of the first ranking
        weight_b: Weight of the second ranking
        k: RRF smoothing constant

    Returns:
        (doc_id, fused_score) pairs sorted by fused score descending
    """
    fused: Dict[Hashable, float] = {}

    for rank, (doc_id, _score) in enumerate(ranking_a):
        fused[doc_id] = fused.get(doc_id, 0.0) + weight_a / (k + rank + 1.0)

    for rank, (doc_id, _score) in enumerate(ranking_b):
        fused[doc_id] = fused.get(doc_id, 0.0) + weight_b / (k + rank + 1.0)

    results = list(fused.items())
    results.sort(key=lambda item: item[1], reverse=True)
    return results
