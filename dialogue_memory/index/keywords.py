"""Keyword extraction and text normalization for mixed Chinese/English text."""
from __future__ import annotations
from typing import List
import re
import unicodedata


ENGLISH_STOP_WORDS = frozenset("""
the a an is are was were be been being have has had do does did will would
could should may might shall can to of in for on with at by from as into
through during before after above below between and but or not no nor so
yet both it its this that these those he she we they me him her us them my
your his our their if then
""".split())

CHINESE_STOP_WORDS = frozenset("""
的 了 在 是 我 有 和 就 不 人 都 一 一个 上 也 很 到 说 要 去 你 会 着 没有 看
好 自己 这 他 她 它 吗 呢 吧 啊 哦 嗯 呀 哈 嘛
""".split())

STOP_WORDS = ENGLISH_STOP_WORDS | CHINESE_STOP_WORDS

# Filler words dropped before comparing two fact statements
FILLER_WORDS = ("一名", "一个", "一种", "这个", "那个", "这位", "那位", "非常", "比较", "有点", "真的")

_SPLIT_RE = re.compile(r"[^\w\-]+")
_CJK_FLOOR = "一"


def is_cjk(ch: str) -> bool:
    """True for letters from the start of the CJK Unified Ideographs block upwards."""
    return ch >= _CJK_FLOOR and ch.isalpha()


def is_stop_word(word: str) -> bool:
    return word in STOP_WORDS


def _keep_token(token: str) -> bool:
    # Single CJK characters carry meaning; single ASCII characters do not
    if len(token) < 2 and token.isascii():
        return False
    if not any(ch.isalnum() for ch in token):
        return False
    return token not in STOP_WORDS


def extract_keywords(text: str) -> List[str]:
    """
    Extract a sorted, de-duplicated keyword set from free text.

    Tokens are split on anything that is not a word character or '-', then
    lower-cased and filtered against the stop-word list. Chinese text has no
    word boundaries, so every adjacent character bigram containing a CJK
    character is added as well.

    Args:
        text: Free text, possibly mixing Chinese and English

    Returns:
        Sorted list of unique keywords

    Example:
        >>> extract_keywords("程序员")
        ['序员', '程序', '程序员']
    """
    keywords = set()

    for token in _SPLIT_RE.split(text):
        token = token.lower()
        if token and _keep_token(token):
            keywords.add(token)

    chars = [ch for ch in text if ch.isalpha()]
    for first, second in zip(chars, chars[1:]):
        if is_cjk(first) or is_cjk(second):
            keywords.add((first + second).lower())

    return sorted(keywords)


def normalize_fact_text(text: str) -> str:
    """
    Canonical form used for fact similarity.

    Case-folds, strips filler words, whitespace and Unicode punctuation.
    Symbols such as '→' survive since they separate subject and object.
    """
    normalized = text.lower()
    for filler in FILLER_WORDS:
        normalized = normalized.replace(filler, "")
    return "".join(
        ch for ch in normalized
        if not ch.isspace() and not unicodedata.category(ch).startswith("P")
    )


def char_ngrams(text: str, n: int) -> List[str]:
    """
    Character n-grams of ``text``.

    Empty text yields no grams; text shorter than ``n`` yields itself.
    """
    if not text:
        return []
    if len(text) < n:
        return [text]
    return [text[i:i + n] for i in range(len(text) - n + 1)]
