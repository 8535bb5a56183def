"""
Fact store: atomic facts with dedup-on-write and hybrid lexical retrieval.
"""

from .schemas import (
    CATEGORY_LABELS,
    CATEGORY_WEIGHTS,
    CRITICAL_CATEGORIES,
    PERSISTENT_CATEGORIES,
    PRIORITY_CATEGORIES,
    Fact,
    FactCategory,
    FactSearchResult,
    KnowledgeIndex,
    category_label,
)
from .store import KnowledgeStore, merge_facts, rank_facts, rebuild_index
from .extraction import build_fact_extraction_prompt, parse_extracted_facts
from .context import (
    build_knowledge_context,
    category_counts,
    select_persistent_facts,
    select_related_facts,
)

__all__ = [
    "CATEGORY_LABELS",
    "CATEGORY_WEIGHTS",
    "CRITICAL_CATEGORIES",
    "PERSISTENT_CATEGORIES",
    "PRIORITY_CATEGORIES",
    "Fact",
    "FactCategory",
    "FactSearchResult",
    "KnowledgeIndex",
    "category_label",
    "KnowledgeStore",
    "merge_facts",
    "rank_facts",
    "rebuild_index",
    "build_fact_extraction_prompt",
    "parse_extracted_facts",
    "build_knowledge_context",
    "category_counts",
    "select_persistent_facts",
    "select_related_facts",
]
