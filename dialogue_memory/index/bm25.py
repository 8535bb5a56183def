"""BM25 scoring over pre-extracted keyword bags."""
from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Sequence
import math


BM25_K1 = 1.2
BM25_B = 0.75


@dataclass
class CorpusStats:
    """Document-frequency statistics for a small keyword corpus."""

    total_docs: int
    avg_doc_len: float
    doc_freq: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_documents(cls, documents: Sequence[Sequence[str]]) -> "CorpusStats":
        """
        Compute statistics from keyword bags.

        Args:
            documents: One keyword list per document

        Returns:
            CorpusStats with N, average length and per-term df
        """
        total = len(documents)
        if total == 0:
            return cls(total_docs=0, avg_doc_len=0.0)

        doc_freq: Counter = Counter()
        total_len = 0
        for doc in documents:
            total_len += len(doc)
            doc_freq.update(set(doc))

        return cls(
            total_docs=total,
            avg_doc_len=total_len / total,
            doc_freq=dict(doc_freq),
        )


def bm25_idf(total_docs: int, df: int) -> float:
    """Smoothed idf, always positive: ln((N - df + 0.5) / (df + 0.5) + 1)."""
    return math.log((total_docs - df + 0.5) / (df + 0.5) + 1.0)


def bm25_score(
    query_keywords: Sequence[str],
    doc_keywords: Sequence[str],
    avg_doc_len: float,
    total_docs: int,
    doc_freq: Dict[str, int],
    k1: float = BM25_K1,
    b: float = BM25_B,
) -> float:
    """
    BM25 relevance of one document to a query.

    Terms absent from the document (tf = 0) or from the corpus (df = 0)
    contribute nothing, so disjoint keyword sets score exactly 0.

    Args:
        query_keywords: Query terms
        doc_keywords: Document terms (repeats count towards tf)
        avg_doc_len: Mean document length in the corpus
        total_docs: Number of documents in the corpus
        doc_freq: Term -> number of documents containing it

    Returns:
        Non-negative BM25 score
    """
    tf: Counter = Counter(doc_keywords)
    doc_len = float(len(doc_keywords))
    length_ratio = doc_len / avg_doc_len if avg_doc_len > 0 else 0.0

    score = 0.0
    for term in query_keywords:
        term_tf = tf.get(term, 0)
        df = doc_freq.get(term, 0)
        if term_tf == 0 or df == 0:
            continue
        numerator = term_tf * (k1 + 1.0)
        denominator = term_tf + k1 * (1.0 - b + b * length_ratio)
        score += bm25_idf(total_docs, df) * numerator / denominator

    return score


def score_corpus(
    query_keywords: Sequence[str],
    documents: Sequence[Sequence[str]],
) -> List[float]:
    """BM25 score for every document, in input order."""
    stats = CorpusStats.from_documents(documents)
    return [
        bm25_score(query_keywords, doc, stats.avg_doc_len, stats.total_docs, stats.doc_freq)
        for doc in documents
    ]
