"""
Unit tests for the knowledge context block and never-expire fact selection.
"""

from dialogue_memory.knowledge.context import (
    CONTEXT_FOOTER,
    CONTEXT_HEADER,
    build_knowledge_context,
    category_counts,
    select_persistent_facts,
)
from dialogue_memory.knowledge.schemas import FactCategory, FactSearchResult


def _related_lines(block: str):
    return [line for line in block.splitlines() if line.startswith("  · ")]


def test_empty_inputs_give_empty_block():
    assert build_knowledge_context([], []) == ""


def test_identity_facts_listed_verbatim(make_fact):
    identity = make_fact("用户→叫→小明", FactCategory.IDENTITY, 0.95)

    block = build_knowledge_context([], [identity])

    assert block.startswith(CONTEXT_HEADER)
    assert "  ● [身份] 用户→叫→小明" in block
    assert CONTEXT_FOOTER in block


def test_search_results_show_scores_and_provenance(make_fact):
    fact = make_fact("用户→喜欢→猫", FactCategory.PREFERENCE, 0.8, context_snippet="我家有两只猫")

    block = build_knowledge_context([FactSearchResult(fact=fact, relevance_score=0.0321)], [])

    assert "[偏好] 用户→喜欢→猫 (相关:0.03, 置信:80%)" in block
    assert "↳ 来源: 我家有两只猫" in block


def test_near_duplicate_non_critical_results_are_skipped(make_fact):
    first = make_fact("用户→喜欢→猫", FactCategory.PREFERENCE)
    duplicate = make_fact("用户 → 喜欢 → 猫", FactCategory.PREFERENCE)
    other = make_fact("用户→讨厌→下雨天", FactCategory.PREFERENCE)
    results = [FactSearchResult(fact=f, relevance_score=0.02) for f in (first, duplicate, other)]

    lines = _related_lines(build_knowledge_context(results, []))

    assert len(lines) == 2


def test_critical_results_never_dropped_for_similarity(make_fact):
    first = make_fact("用户→是→程序员", FactCategory.IDENTITY)
    duplicate = make_fact("用户→是→程序员", FactCategory.IDENTITY)
    results = [FactSearchResult(fact=f, relevance_score=0.02) for f in (first, duplicate)]

    assert len(_related_lines(build_knowledge_context(results, []))) == 2


def test_related_results_capped_at_twelve(make_fact):
    results = [
        FactSearchResult(fact=make_fact(f"事件编号{i}发生了", FactCategory.EVENT), relevance_score=0.01)
        for i in range(15)
    ]

    assert len(_related_lines(build_knowledge_context(results, []))) == 12


def test_select_persistent_facts(make_fact):
    core = make_fact("用户→叫→小明", FactCategory.IDENTITY, 0.9)
    weak_identity = make_fact("用户→是→老师", FactCategory.IDENTITY, 0.8)
    sure_identity = make_fact("用户→来自→上海", FactCategory.IDENTITY, 0.96)
    promise = make_fact("用户→承诺→周末去看电影", FactCategory.PROMISE, 0.8)
    other_promise = make_fact("用户→承诺→戒烟", FactCategory.PROMISE, 0.8)
    preference = make_fact("用户→喜欢→电影", FactCategory.PREFERENCE, 0.99)

    pinned = select_persistent_facts(
        [core, weak_identity, sure_identity, promise, other_promise, preference],
        "周末我们去看电影吗",
    )

    assert pinned == [core, sure_identity, promise]


def test_category_counts(sample_facts):
    counts = category_counts(sample_facts)

    assert counts["身份"] == 1
    assert counts["共识"] == 0
    assert sum(counts.values()) == len(sample_facts)
