"""
Unit tests for fact similarity, TF-IDF cosine and relevance gating.
"""

import pytest

from dialogue_memory.retrieval.similarity import (
    compute_relevance_score,
    extract_active_topics,
    extract_active_topics_from_messages,
    semantic_similarity_score,
    tfidf_cosine_similarity,
)


@pytest.mark.parametrize(
    "a, b",
    [
        ("用户是程序员", "用户 是 程序员。"),
        ("他是一名医生", "他是医生"),
        ("Hello World", "hello, world!"),
        ("用户→喜欢→猫", "用户 → 喜欢 → 猫"),
    ],
)
def test_identical_normalization_scores_one(a, b):
    assert semantic_similarity_score(a, b) == 1.0


@pytest.mark.parametrize("a, b", [("", "用户"), ("。。。", "用户"), ("用户", "  ！ ")])
def test_empty_normalization_scores_zero(a, b):
    assert semantic_similarity_score(a, b) == 0.0


def test_similarity_bounded_and_symmetric():
    a = "用户→喜欢→吃辣的火锅"
    b = "用户→喜欢→火锅"

    score = semantic_similarity_score(a, b)

    assert 0.0 < score <= 1.0
    assert score == pytest.approx(semantic_similarity_score(b, a))


def test_similar_statements_score_higher_than_unrelated():
    base = "小明→是→程序员"
    assert semantic_similarity_score(base, "小明→是→一名程序员啊") > semantic_similarity_score(base, "今天天气很好")


def test_tfidf_cosine_similarity():
    assert tfidf_cosine_similarity("", "abc") == 0.0
    assert tfidf_cosine_similarity("周末去看电影", "周末去看电影") == pytest.approx(1.0)
    assert tfidf_cosine_similarity("周末去看电影", "数据库迁移") == 0.0


def test_tfidf_counts_first_cjk_ideograph():
    # U+4E00 opens the ideograph block and is a unigram feature like any other
    assert tfidf_cosine_similarity("一", "一") == pytest.approx(1.0)


def test_active_topics_keep_phrases_with_block_boundary_ideograph():
    assert "一，" in extract_active_topics("一一，一")


def test_extract_active_topics_includes_phrases():
    topics = extract_active_topics("我们周末去看电影")

    assert "周末" in topics
    assert "电影" in topics
    assert "看电影" in topics


def test_extract_active_topics_from_messages_skips_system():
    messages = [
        {"role": "system", "content": "系统提示词"},
        {"role": "assistant", "content": "你好"},
        {"role": "user", "content": "聊聊电影"},
    ]

    topics = extract_active_topics_from_messages(messages, limit=50)

    assert "电影" in topics
    assert "系统" not in topics


def test_compute_relevance_score_related_vs_unrelated():
    query = "周末我们去看电影吗"
    topics = extract_active_topics(query)

    related = compute_relevance_score("用户→承诺→周末去看电影", topics, query)
    unrelated = compute_relevance_score("用户→是→老师", topics, query)

    assert related > 0.1
    assert unrelated == 0.0


def test_compute_relevance_score_empty_inputs():
    assert compute_relevance_score("", ["电影"], "电影") == 0.0
    assert compute_relevance_score("电影", [], "") == 0.0
