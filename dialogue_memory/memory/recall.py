"""
Memory recall: ranked summary search and the long-term memory context block.
"""

from typing import List, Optional, Sequence, Tuple

from ..index.keywords import extract_keywords
from ..retrieval.hybrid import hybrid_rank
from ..retrieval.similarity import compute_relevance_score, extract_active_topics
from .cards import build_enhanced_search_text
from .schemas import MemorySearchResult, MemorySummary, MemoryTier


BM25_WEIGHT = 0.6
COSINE_WEIGHT = 0.4
SUMMARY_FACT_RELEVANCE = 0.1
BACKGROUND_FACT_RELEVANCE = 0.15
MAX_BACKGROUND_FACTS = 10

MEMORY_USAGE_GUIDELINES = (
    "■ 记忆使用准则（极其重要）：\n"
    "- 上述信息是背景知识，回复时不得与之矛盾\n"
    "- 但不要主动展示这些信息！只有当对话自然涉及时才提及\n"
    "- 不要像背书一样列举事实。记忆是你脑子里的东西，不是台词本\n"
    "- 没有被问到的事情不要主动说。真人不会无缘无故把认识的人的信息背一遍\n"
    "- 如果对方问到相关的事，自然地回忆，就像真的在脑子里翻找一样"
)


def summary_document(summary: MemorySummary) -> List[str]:
    """
    Keyword bag searched for a summary.

    Stored keywords, the enhanced search text, every core fact, card
    entities and card topic tags.
    """
    bag = set(summary.keywords)
    bag.update(extract_keywords(build_enhanced_search_text(summary)))
    for fact in summary.core_facts:
        bag.update(extract_keywords(fact))
    card = summary.context_card
    if card is not None:
        for entity in card.key_entities:
            bag.update(extract_keywords(entity))
        bag.update(card.topic_tags)
    return sorted(bag)


def search_memories(
    query: str,
    summaries: Sequence[MemorySummary],
    top_k: int = 5,
) -> List[MemorySearchResult]:
    """
    Rank summaries for a query with BM25 + keyword cosine fused by RRF.

    Args:
        query: User message
        summaries: Timeline to search
        top_k: Maximum number of results

    Returns:
        Results with positive fused score, best first; empty when there are
        no summaries or the query has no keywords
    """
    if not summaries or top_k <= 0:
        return []

    query_keywords = extract_keywords(query)
    if not query_keywords:
        return []

    documents = [summary_document(summary) for summary in summaries]
    fused = hybrid_rank(query_keywords, documents, BM25_WEIGHT, COSINE_WEIGHT)

    results = []
    for position, score in fused[:top_k]:
        if score <= 0:
            continue
        summary = summaries[position]
        results.append(MemorySearchResult(
            summary_id=summary.id,
            summary=summary.summary,
            core_facts=list(summary.core_facts),
            relevance_score=score,
        ))
    return results


def _gate_timeline_facts(
    summaries: Sequence[MemorySummary],
    topics: Sequence[str],
    query: str,
) -> Tuple[List[str], List[str]]:
    identity_facts: List[str] = []
    scored: List[Tuple[str, float]] = []
    seen = set()

    for summary in summaries:
        for position, fact in enumerate(summary.core_facts):
            # Untiered facts are treated as scene details here
            tier = summary.tier_at(position) or MemoryTier.SCENE_DETAIL
            if tier == MemoryTier.IDENTITY:
                if fact not in identity_facts:
                    identity_facts.append(fact)
                continue
            if fact in seen:
                continue
            relevance = compute_relevance_score(fact, topics, query)
            if relevance > BACKGROUND_FACT_RELEVANCE:
                seen.add(fact)
                scored.append((fact, relevance))

    scored.sort(key=lambda item: item[1], reverse=True)
    return identity_facts, [fact for fact, _ in scored[:MAX_BACKGROUND_FACTS]]


def format_memory_context(
    query: str,
    summaries: Sequence[MemorySummary],
    search_results: Optional[Sequence[MemorySearchResult]] = None,
    top_k: int = 5,
) -> str:
    """
    Render the long-term memory block for the next model call.

    Sections: related past fragments (with their relevant core facts),
    identity anchors from the whole timeline, other facts whose relevance
    to the query exceeds 0.15, then usage guidelines.

    Args:
        query: Current user message
        summaries: Whole timeline
        search_results: Precomputed search_memories output (computed if omitted)

    Returns:
        The block, or "" when there are no summaries
    """
    if not summaries:
        return ""

    topics = extract_active_topics(query)
    if search_results is None:
        search_results = search_memories(query, summaries, top_k)
    identity_facts, background_facts = _gate_timeline_facts(summaries, topics, query)

    lines = ["【长期记忆上下文】"]

    if search_results:
        lines.append("▸ 与当前话题相关的历史片段：")
        for result in search_results:
            lines.append(f"  · {result.summary}")
            for fact in result.core_facts:
                if compute_relevance_score(fact, topics, query) > SUMMARY_FACT_RELEVANCE:
                    lines.append(f"    → {fact}")

    if identity_facts:
        lines.append("▸ 基础设定（背景知识）：")
        lines.extend(f"  ● {fact}" for fact in identity_facts)

    if background_facts:
        lines.append("▸ 可能与当前话题相关的已知信息（仅在话题涉及时自然提及）：")
        lines.extend(f"  · {fact}" for fact in background_facts)

    lines.append("")
    lines.append(MEMORY_USAGE_GUIDELINES)
    return "\n".join(lines) + "\n"
