"""
Unit tests for the fact store: dedup-on-write, index, ranking and persistence.
"""

import pytest
from structlog.testing import capture_logs

from dialogue_memory.errors import StorageError
from dialogue_memory.knowledge.schemas import (
    CATEGORY_LABELS,
    CATEGORY_WEIGHTS,
    Fact,
    FactCategory,
)
import dialogue_memory.knowledge.store as store_module
from dialogue_memory.knowledge.store import merge_facts, rank_facts, rebuild_index
from dialogue_memory.persist.json_store import write_json
from dialogue_memory.retrieval.similarity import semantic_similarity_score


# ============================================================================
# Category tables
# ============================================================================

def test_category_weight_order():
    order = [
        FactCategory.IDENTITY,
        FactCategory.PROMISE,
        FactCategory.RELATIONSHIP,
        FactCategory.EVENT,
        FactCategory.PREFERENCE,
        FactCategory.CONSENSUS,
        FactCategory.CURRENT_STATE,
    ]
    weights = [category.weight for category in order]
    assert weights == sorted(weights, reverse=True)
    assert len(set(weights)) == len(weights)
    assert FactCategory.IDENTITY.weight > FactCategory.CURRENT_STATE.weight


def test_category_tables_cover_every_member():
    assert set(CATEGORY_WEIGHTS) == set(FactCategory)
    assert set(CATEGORY_LABELS) == set(FactCategory)


def test_critical_categories():
    assert FactCategory.IDENTITY.is_critical
    assert FactCategory.PROMISE.is_critical
    assert not FactCategory.PREFERENCE.is_critical
    assert not FactCategory.CURRENT_STATE.is_critical


def test_fact_serializes_category_by_name(make_fact):
    data = make_fact("用户→是→程序员", FactCategory.CURRENT_STATE).model_dump(mode="json")
    assert data["category"] == "CurrentState"


# ============================================================================
# merge_facts
# ============================================================================

def test_merge_duplicate_critical_fact_boosts_confidence(make_fact):
    existing = [make_fact("用户→是→程序员", FactCategory.IDENTITY, 0.8)]
    new = make_fact("用户 → 是 → 程序员。", FactCategory.IDENTITY, 0.8)

    merged = merge_facts(existing, [new])

    assert len(merged) == 1
    assert merged[0].id == existing[0].id
    assert merged[0].confidence == pytest.approx(0.9)
    assert merged[0].content == "用户 → 是 → 程序员。"


def test_merge_confidence_capped_at_one(make_fact):
    existing = [make_fact("用户→是→程序员", FactCategory.IDENTITY, 0.95)]

    merged = merge_facts(existing, [make_fact("用户→是→程序员", FactCategory.IDENTITY)])

    assert merged[0].confidence == 1.0


def test_merge_does_not_mutate_input(make_fact):
    existing = [make_fact("用户→是→程序员", FactCategory.IDENTITY, 0.8)]
    merge_facts(existing, [make_fact("用户→是→程序员", FactCategory.IDENTITY)])
    assert existing[0].confidence == 0.8


def test_merge_current_state_by_shared_entity_keeps_content(make_fact):
    existing = [make_fact("小明→在→家里", FactCategory.CURRENT_STATE, 0.8, ["小明"])]
    new = make_fact("小明→心情→低落", FactCategory.CURRENT_STATE, 0.8, ["小明"])

    merged = merge_facts(existing, [new])

    assert len(merged) == 1
    assert merged[0].confidence == pytest.approx(0.9)
    # Weak similarity on a non-critical fact: confirmation only
    assert merged[0].content == "小明→在→家里"
    assert merged[0].last_confirmed_at == new.last_confirmed_at


def test_merge_similar_non_critical_fact_overwrites_content(make_fact):
    existing = [make_fact("用户→喜欢→吃苹果", FactCategory.PREFERENCE, 0.8, ["用户"])]
    new = make_fact(
        "用户→喜欢→吃红苹果",
        FactCategory.PREFERENCE,
        0.8,
        ["用户", "苹果"],
        context_snippet="我最近爱吃红苹果",
    )
    similarity = semantic_similarity_score(existing[0].content, new.content)
    assert 0.62 <= similarity < 1.0

    merged = merge_facts(existing, [new])

    assert len(merged) == 1
    assert merged[0].id == existing[0].id
    assert merged[0].confidence == pytest.approx(0.9)
    assert merged[0].content == new.content
    assert merged[0].keywords == new.keywords
    assert merged[0].entities == ["用户", "苹果"]
    assert merged[0].context_snippet == "我最近爱吃红苹果"


def test_merge_unrelated_fact_is_appended(make_fact):
    existing = [make_fact("用户→是→程序员", FactCategory.IDENTITY)]

    merged = merge_facts(existing, [make_fact("用户→喜欢→猫", FactCategory.PREFERENCE)])

    assert len(merged) == 2
    assert merged[1].content == "用户→喜欢→猫"


def test_merge_batch_duplicates_collapse(make_fact):
    batch = [
        make_fact("双方→约定→周末见", FactCategory.PROMISE),
        make_fact("双方→约定→周末见", FactCategory.PROMISE),
    ]

    merged = merge_facts([], batch)

    assert len(merged) == 1
    assert merged[0].confidence == pytest.approx(0.9)


# ============================================================================
# Index
# ============================================================================

def test_rebuild_index(sample_facts):
    index = rebuild_index(sample_facts)

    identity = sample_facts[0]
    assert identity.id in index.keyword_index["程序员"]
    assert index.category_index["Identity"] == [identity.id]
    assert len(index.entity_index["用户"]) == len(sample_facts)
    assert index.entity_index["猫"] == [sample_facts[1].id]


# ============================================================================
# rank_facts
# ============================================================================

def test_rank_facts_programmer_scenario(make_fact):
    facts = [
        make_fact("用户→喜欢→猫", FactCategory.PREFERENCE),
        make_fact("用户→是→程序员", FactCategory.IDENTITY),
    ]

    results = rank_facts(facts, "程序员", top_k=10)

    assert results[0].fact.content == "用户→是→程序员"
    assert results[0].relevance_score > 0
    assert all(r.relevance_score <= results[0].relevance_score for r in results)


def test_rank_facts_truncates_to_top_k(sample_facts):
    assert len(rank_facts(sample_facts, "用户", top_k=2)) == 2


def test_rank_facts_keywordless_query_falls_back_to_priority(sample_facts):
    results = rank_facts(sample_facts, "的？", top_k=10)

    categories = [r.fact.category for r in results]
    assert set(categories) <= {FactCategory.IDENTITY, FactCategory.PROMISE, FactCategory.RELATIONSHIP}
    assert categories[0] == FactCategory.IDENTITY  # confidence 0.9 is the highest
    assert all(r.relevance_score == 1.0 for r in results)


def test_rank_facts_empty():
    assert rank_facts([], "程序员") == []


# ============================================================================
# KnowledgeStore
# ============================================================================

def test_missing_conversation_reads_empty(knowledge_store):
    assert knowledge_store.load_facts("unknown") == []
    assert knowledge_store.search_facts("unknown", "程序员") == []
    assert knowledge_store.load_index("unknown").keyword_index == {}


def test_add_facts_round_trip(knowledge_store, sample_facts):
    merged = knowledge_store.add_facts("conv_1", sample_facts)

    reloaded = knowledge_store.load_facts("conv_1")

    assert reloaded == merged
    assert knowledge_store.load_index("conv_1") == rebuild_index(reloaded)


def test_failed_index_write_leaves_facts_untouched(knowledge_store, sample_facts, monkeypatch):
    knowledge_store.add_facts("conv_1", sample_facts[:2])
    index_path = knowledge_store.paths.index_path("conv_1")

    def failing_write(path, data):
        if path == index_path:
            raise StorageError("disk full", path=path)
        write_json(path, data)

    monkeypatch.setattr(store_module, "write_json", failing_write)
    with pytest.raises(StorageError):
        knowledge_store.add_facts("conv_1", sample_facts[2:])

    stored = knowledge_store.load_facts("conv_1")
    assert [fact.id for fact in stored] == [fact.id for fact in sample_facts[:2]]
    assert knowledge_store.load_index("conv_1") == rebuild_index(stored)


def test_stale_index_is_rebuilt_from_facts(knowledge_store, sample_facts):
    knowledge_store.add_facts("conv_1", sample_facts[:2])
    # Fact file replaced behind the store's back
    write_json(
        knowledge_store.paths.facts_path("conv_1"),
        [fact.model_dump(mode="json") for fact in sample_facts],
    )

    with capture_logs() as logs:
        index = knowledge_store.load_index("conv_1")

    assert index == rebuild_index(sample_facts)
    assert "knowledge_index_stale" in {entry["event"] for entry in logs}


def test_add_facts_dedups_against_stored(knowledge_store, make_fact):
    knowledge_store.add_facts("conv_1", [make_fact("用户→是→程序员", FactCategory.IDENTITY)])
    merged = knowledge_store.add_facts("conv_1", [make_fact("用户→是→程序员", FactCategory.IDENTITY)])

    assert len(merged) == 1
    assert knowledge_store.load_facts("conv_1")[0].confidence == pytest.approx(0.9)


def test_search_facts(knowledge_store, sample_facts):
    knowledge_store.add_facts("conv_1", sample_facts)

    results = knowledge_store.search_facts("conv_1", "周末看电影", top_k=3)

    assert results[0].fact.category == FactCategory.PROMISE


def test_record_hits(knowledge_store, sample_facts):
    knowledge_store.add_facts("conv_1", sample_facts)
    target = sample_facts[1].id

    updated = knowledge_store.record_hits("conv_1", [target, "missing-id"])

    assert updated == 1
    facts = {fact.id: fact for fact in knowledge_store.load_facts("conv_1")}
    assert facts[target].hit_count == 1
    assert facts[sample_facts[0].id].hit_count == 0
    assert knowledge_store.record_hits("conv_1", []) == 0


def test_delete_knowledge(knowledge_store, sample_facts):
    knowledge_store.add_facts("conv_1", sample_facts)

    assert knowledge_store.delete_knowledge("conv_1") is True
    assert knowledge_store.load_facts("conv_1") == []
    assert not knowledge_store.paths.index_path("conv_1").exists()
    assert knowledge_store.delete_knowledge("conv_1") is False


def test_conversations_are_isolated(knowledge_store, sample_facts):
    knowledge_store.add_facts("conv_a", sample_facts)
    assert knowledge_store.load_facts("conv_b") == []


def test_corrupt_fact_file_raises_storage_error(knowledge_store):
    path = knowledge_store.paths.facts_path("conv_1")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StorageError):
        knowledge_store.load_facts("conv_1")


def test_invalid_fact_record_raises_storage_error(knowledge_store):
    path = knowledge_store.paths.facts_path("conv_1")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text('[{"content": "x", "confidence": 7}]', encoding="utf-8")

    with pytest.raises(StorageError):
        knowledge_store.load_facts("conv_1")


@pytest.mark.parametrize("conversation_id", ["", "../escape", "a/b", "a\\b"])
def test_invalid_conversation_id(knowledge_store, conversation_id):
    with pytest.raises(ValueError):
        knowledge_store.load_facts(conversation_id)


def test_fact_model_rejects_out_of_range_confidence():
    with pytest.raises(ValueError):
        Fact(content="x", confidence=1.5)
