"""
Text similarity estimators.

- semantic_similarity_score: fact dedup and context diversity
- tfidf_cosine_similarity: hybrid char n-gram TF-IDF for relevance gating
- compute_relevance_score: fact vs. current topics and user message
"""
from __future__ import annotations
from collections import Counter
from typing import Dict, Iterable, List, Mapping, Sequence
import math

from ..index.keywords import (
    char_ngrams,
    extract_keywords,
    is_cjk,
    is_stop_word,
    normalize_fact_text,
)
from .fusion import keyword_cosine_similarity


def semantic_similarity_score(a: str, b: str) -> float:
    """
    Lexical similarity of two fact statements in [0, 1].

    Combines keyword cosine (0.55), character-bigram cosine (0.35) and
    keyword overlap ratio (0.10) over the normalized texts, with a 0.08 bonus
    when one normalized text contains the other.

    Returns:
        0.0 if either side normalizes to empty, 1.0 if both normalize equal
    """
    norm_a = normalize_fact_text(a)
    norm_b = normalize_fact_text(b)
    if not norm_a or not norm_b:
        return 0.0
    if norm_a == norm_b:
        return 1.0

    kw_a = extract_keywords(norm_a)
    kw_b = extract_keywords(norm_b)
    keyword_score = keyword_cosine_similarity(kw_a, kw_b)
    bigram_score = keyword_cosine_similarity(char_ngrams(norm_a, 2), char_ngrams(norm_b, 2))

    common = len(set(kw_a) & set(kw_b))
    union = len(kw_a) + len(kw_b) - common
    overlap = common / union if union > 0 else 0.0

    containment = 0.08 if (norm_a in norm_b or norm_b in norm_a) else 0.0

    score = keyword_score * 0.55 + bigram_score * 0.35 + overlap * 0.10 + containment
    return min(score, 1.0)


def _hybrid_features(text: str) -> List[str]:
    # CJK unigrams + char bigrams/trigrams + keywords
    chars = [ch for ch in text if ch.isalnum()]
    features = [ch for ch in chars if is_cjk(ch)]
    for n in (2, 3):
        if len(chars) >= n:
            features.extend("".join(chars[i:i + n]) for i in range(len(chars) - n + 1))
    features.extend(extract_keywords(text))
    return features


def _term_frequencies(features: Sequence[str]) -> Dict[str, float]:
    total = len(features)
    if total == 0:
        return {}
    return {term: count / total for term, count in Counter(features).items()}


def tfidf_cosine_similarity(text_a: str, text_b: str) -> float:
    """
    TF-IDF weighted cosine over hybrid character features.

    The two texts form their own two-document corpus; idf is
    ``ln(2 / (1 + df)) + 1``.
    """
    if not text_a or not text_b:
        return 0.0

    tf_a = _term_frequencies(_hybrid_features(text_a.lower()))
    tf_b = _term_frequencies(_hybrid_features(text_b.lower()))
    if not tf_a or not tf_b:
        return 0.0

    dot = norm_sq_a = norm_sq_b = 0.0
    for term in set(tf_a) | set(tf_b):
        value_a = tf_a.get(term, 0.0)
        value_b = tf_b.get(term, 0.0)
        df = (1 if value_a > 0 else 0) + (1 if value_b > 0 else 0)
        idf = math.log(2.0 / (1.0 + df)) + 1.0
        weighted_a = value_a * idf
        weighted_b = value_b * idf
        dot += weighted_a * weighted_b
        norm_sq_a += weighted_a * weighted_a
        norm_sq_b += weighted_b * weighted_b

    magnitude = math.sqrt(norm_sq_a) * math.sqrt(norm_sq_b)
    if magnitude == 0.0:
        return 0.0
    return max(0.0, min(1.0, dot / magnitude))


def extract_active_topics(text: str) -> List[str]:
    """
    Topic units of a text: its keywords plus 2-4 character phrases that
    contain Chinese and are not stop words.
    """
    topics = set(extract_keywords(text))
    for size in (2, 3, 4):
        for i in range(len(text) - size + 1):
            phrase = text[i:i + size]
            if any(is_cjk(ch) for ch in phrase) and not is_stop_word(phrase):
                topics.add(phrase)
    return sorted(topics)


def extract_active_topics_from_messages(
    messages: Iterable[Mapping[str, str]],
    limit: int = 30,
) -> List[str]:
    """
    Topics of a recent dialogue window, weighted towards recent user turns.

    Args:
        messages: Turns as dicts with ``role`` and ``content``
        limit: Maximum number of topics

    Returns:
        Topics sorted by accumulated weight descending
    """
    turns = list(messages)
    total = max(len(turns), 1)
    scores: Dict[str, float] = {}

    for i, turn in enumerate(turns):
        role = turn.get("role", "user")
        if role == "system":
            continue
        recency = math.sqrt((i + 1) / total)
        weight = recency * (1.5 if role == "user" else 0.8)
        for topic in extract_active_topics(turn.get("content", "")):
            scores[topic] = scores.get(topic, 0.0) + weight

    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    return [topic for topic, _ in ranked[:limit]]


def compute_relevance_score(
    fact: str,
    active_topics: Sequence[str],
    user_content: str,
) -> float:
    """
    Relevance of a fact to the current exchange in [0, 1].

    0.4 * TF-IDF cosine(fact, user message)
    + 0.4 * share of fact keywords overlapping an active topic
    + 0.2 * (0.3 if any fact keyword appears verbatim in the message)
    """
    if not fact or (not active_topics and not user_content):
        return 0.0

    tfidf_score = tfidf_cosine_similarity(fact, user_content)

    fact_keywords = extract_keywords(fact)
    keyword_overlap = 0.0
    if active_topics and fact_keywords:
        hits = sum(
            1 for keyword in fact_keywords
            if any(keyword in topic or topic in keyword for topic in active_topics)
        )
        keyword_overlap = hits / len(fact_keywords)

    containment = 0.3 if any(keyword in user_content for keyword in fact_keywords) else 0.0

    score = tfidf_score * 0.4 + keyword_overlap * 0.4 + containment * 0.2
    return max(0.0, min(1.0, score))


__all__ = [
    "semantic_similarity_score",
    "tfidf_cosine_similarity",
    "extract_active_topics",
    "extract_active_topics_from_messages",
    "compute_relevance_score",
]
