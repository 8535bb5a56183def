"""Lexical indexing: keyword extraction and BM25 scoring."""

from .keywords import (
    STOP_WORDS,
    char_ngrams,
    extract_keywords,
    is_stop_word,
    normalize_fact_text,
)
from .bm25 import BM25_B, BM25_K1, CorpusStats, bm25_score

__all__ = [
    "STOP_WORDS",
    "char_ngrams",
    "extract_keywords",
    "is_stop_word",
    "normalize_fact_text",
    "BM25_B",
    "BM25_K1",
    "CorpusStats",
    "bm25_score",
]
