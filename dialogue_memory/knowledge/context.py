"""
Knowledge context block: the system-prompt section that pins confirmed
facts for the next model call.
"""

from typing import Dict, List, Optional, Sequence

from ..retrieval.similarity import (
    compute_relevance_score,
    extract_active_topics,
    semantic_similarity_score,
)
from .schemas import (
    PERSISTENT_CATEGORIES,
    Fact,
    FactCategory,
    FactSearchResult,
    category_label,
)


CONTEXT_DEDUP_SIMILARITY_THRESHOLD = 0.88
MAX_RELATED_FACTS_IN_CONTEXT = 12

CONTEXT_HEADER = "【本地知识库 — 已确认事实，必须严格遵守】"
CONTEXT_FOOTER = "以上知识库事实是已经确认的信息，回复时必须与之一致，不得矛盾或编造。"


def select_related_facts(
    search_results: Sequence[FactSearchResult],
    limit: int = MAX_RELATED_FACTS_IN_CONTEXT,
) -> List[FactSearchResult]:
    """Search results the context block renders, in rank order."""
    selected: List[FactSearchResult] = []
    for candidate in search_results:
        if len(selected) >= limit:
            break
        if candidate.fact.is_critical:
            selected.append(candidate)
            continue
        duplicated = any(
            not existing.fact.is_critical
            and semantic_similarity_score(existing.fact.content, candidate.fact.content)
            >= CONTEXT_DEDUP_SIMILARITY_THRESHOLD
            for existing in selected
        )
        if not duplicated:
            selected.append(candidate)
    return selected


def build_knowledge_context(
    search_results: Sequence[FactSearchResult],
    identity_facts: Sequence[Fact],
    max_related: int = MAX_RELATED_FACTS_IN_CONTEXT,
) -> str:
    """
    Render confirmed facts as a context block.

    Never-expire facts are listed first, verbatim. Search results follow in
    rank order, capped at ``max_related``; a non-critical result is skipped
    when it is near-identical (>= 0.88) to a non-critical result already
    shown. Critical results are never dropped for similarity.

    Args:
        search_results: Ranked facts for the current query
        identity_facts: Never-expire facts to always include

    Returns:
        The block, or "" when both inputs are empty
    """
    if not search_results and not identity_facts:
        return ""

    lines = [CONTEXT_HEADER]

    if identity_facts:
        lines.append("▸ 不可变事实：")
        for fact in identity_facts:
            lines.append(f"  ● [{category_label(fact.category)}] {fact.content}")

    if search_results:
        lines.append("▸ 与当前话题相关的事实：")
        for result in select_related_facts(search_results, max_related):
            fact = result.fact
            lines.append(
                f"  · [{category_label(fact.category)}] {fact.content} "
                f"(相关:{result.relevance_score:.2f}, 置信:{fact.confidence * 100:.0f}%)"
            )
            if fact.context_snippet:
                lines.append(f"    ↳ 来源: {fact.context_snippet}")

    lines.append("")
    lines.append(CONTEXT_FOOTER)
    return "\n".join(lines) + "\n"


def select_persistent_facts(
    facts: Sequence[Fact],
    query: str,
    active_topics: Optional[Sequence[str]] = None,
    core_confidence: float = 0.9,
    promise_relevance: float = 0.1,
    identity_relevance: float = 0.08,
    identity_confidence_override: float = 0.95,
) -> List[Fact]:
    """
    Choose which Identity/Promise facts to pin for this turn.

    High-confidence identity facts are always pinned; promises and the
    remaining identity facts only when they relate to the current message.

    Args:
        facts: All stored facts
        query: Current user message
        active_topics: Topics of the exchange (derived from ``query`` if omitted)

    Returns:
        Facts to pass to build_knowledge_context as never-expire facts
    """
    topics = list(active_topics) if active_topics is not None else extract_active_topics(query)
    pinned = []

    for fact in facts:
        if fact.category not in PERSISTENT_CATEGORIES:
            continue
        if fact.category == FactCategory.IDENTITY and fact.confidence >= core_confidence:
            pinned.append(fact)
            continue

        relevance = compute_relevance_score(fact.content, topics, query)
        if fact.category == FactCategory.PROMISE:
            if relevance > promise_relevance:
                pinned.append(fact)
        elif relevance > identity_relevance or fact.confidence >= identity_confidence_override:
            pinned.append(fact)

    return pinned


def category_counts(facts: Sequence[Fact]) -> Dict[str, int]:
    """Number of facts per category label, for overviews."""
    counts = {category_label(category): 0 for category in FactCategory}
    for fact in facts:
        counts[category_label(fact.category)] += 1
    return counts
