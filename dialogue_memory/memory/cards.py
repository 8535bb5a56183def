"""Context cards: structured metadata derived from a summary's core facts."""

from typing import List, Sequence

from .schemas import MemoryContextCard, MemorySummary


TOPIC_MARKERS = ("身份", "关系", "事件", "状态")
POSITIVE_WORDS = ("开心", "幸福", "甜蜜", "温暖", "信任", "亲密", "喜欢")
NEGATIVE_WORDS = ("难过", "生气", "冷战", "疏远", "不信任", "伤心", "愤怒")
CAUSAL_CONNECTIVES = ("因为", "导致", "所以", "因此")
MAX_ENTITY_CHARS = 10


def _strip_markers(text: str) -> str:
    text = text.strip()
    for marker in TOPIC_MARKERS:
        tag = f"[{marker}]"
        while text.startswith(tag):
            text = text[len(tag):]
    return text.strip()


def _triple_entities(fact: str) -> List[str]:
    parts = fact.split("→")
    if len(parts) < 2:
        return []
    entities = []
    subject = _strip_markers(parts[0])
    if subject and len(subject) <= MAX_ENTITY_CHARS:
        entities.append(subject)
    if len(parts) >= 3:
        obj = parts[-1].strip()
        if obj and len(obj) <= MAX_ENTITY_CHARS:
            entities.append(obj)
    return entities


def emotional_tone(positive: int, negative: int) -> str:
    """Tone label from lexicon hit counts."""
    total = positive + negative
    if positive > negative:
        return f"正面(强度:{positive}/{total})"
    if negative > positive:
        return f"负面(强度:{negative}/{total})"
    if positive > 0:
        return "混合"
    return "中性"


def build_context_card_from_facts(
    core_facts: Sequence[str],
    turn_start: int,
    turn_end: int,
) -> MemoryContextCard:
    """
    Derive a context card from tagged core facts.

    - topic tags: bracketed category markers ([身份] [关系] [事件] [状态])
    - key entities: subject and, for full triples, object of "a→rel→b"
    - tone: positive vs negative lexicon hits
    - causal links: facts containing a causal connective
    """
    topic_tags = set()
    key_entities = set()
    causal_links = []
    positive = negative = 0

    for fact in core_facts:
        for marker in TOPIC_MARKERS:
            if f"[{marker}]" in fact:
                topic_tags.add(marker)

        key_entities.update(_triple_entities(fact))

        positive += sum(1 for word in POSITIVE_WORDS if word in fact)
        negative += sum(1 for word in NEGATIVE_WORDS if word in fact)

        if any(word in fact for word in CAUSAL_CONNECTIVES):
            causal_links.append(fact)

    return MemoryContextCard(
        source_range=f"对话轮次 {turn_start}-{turn_end}",
        topic_tags=sorted(topic_tags),
        key_entities=sorted(key_entities),
        emotional_tone=emotional_tone(positive, negative),
        causal_links=causal_links,
    )


def build_context_card(summary: MemorySummary) -> MemoryContextCard:
    """Context card for a summary's core facts and turn range."""
    return build_context_card_from_facts(
        summary.core_facts, summary.turn_range_start, summary.turn_range_end
    )


def build_enhanced_search_text(summary: MemorySummary) -> str:
    """
    Summary text widened with its card's tags, entities, tone and range.

    Used as the retrieval document for a summary.
    """
    text = summary.summary
    card = summary.context_card
    if card is None:
        return text

    if card.topic_tags:
        text += f" [主题:{','.join(card.topic_tags)}]"
    if card.key_entities:
        text += f" [实体:{','.join(card.key_entities)}]"
    text += f" [情感:{card.emotional_tone}]"
    text += f" [范围:{card.source_range}]"
    return text
