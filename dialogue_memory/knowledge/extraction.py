"""
Fact extraction adapters: prompt construction and tolerant parsing of the
model's JSON reply.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence
import time
import uuid

import structlog

from ..generation.json_extract import find_json_value
from ..index.keywords import extract_keywords
from .schemas import Fact, FactCategory, category_label


logger = structlog.get_logger(__name__)

EXTRACTED_FACT_CONFIDENCE = 0.8
MAX_EXISTING_FACTS_IN_PROMPT = 20

ROLE_LABELS = {"user": "用户", "assistant": "AI角色"}

# Lower-cased category strings accepted from the model
CATEGORY_ALIASES: Dict[str, FactCategory] = {
    "identity": FactCategory.IDENTITY,
    "身份": FactCategory.IDENTITY,
    "relationship": FactCategory.RELATIONSHIP,
    "关系": FactCategory.RELATIONSHIP,
    "preference": FactCategory.PREFERENCE,
    "偏好": FactCategory.PREFERENCE,
    "习惯": FactCategory.PREFERENCE,
    "event": FactCategory.EVENT,
    "事件": FactCategory.EVENT,
    "state": FactCategory.CURRENT_STATE,
    "状态": FactCategory.CURRENT_STATE,
    "current_state": FactCategory.CURRENT_STATE,
    "currentstate": FactCategory.CURRENT_STATE,
    "promise": FactCategory.PROMISE,
    "承诺": FactCategory.PROMISE,
    "约定": FactCategory.PROMISE,
    "consensus": FactCategory.CONSENSUS,
    "共识": FactCategory.CONSENSUS,
}

EXTRACTION_INSTRUCTIONS = """
请提取新的事实（已存储的不要重复），输出JSON数组：
[
  {
    "content": "事实内容（三元组编码：主体→关系→客体）",
    "category": "identity/relationship/preference/event/state/promise/consensus",
    "entities": ["涉及的实体名"],
    "context": "该事实出现时的对话上下文（简短引用原文）"
  }
]

提取规则：
1. 只提取确定性事实，不提取推测、氛围描写
2. 身份信息(identity)：姓名、年龄、职业等不可变属性
3. 关系(relationship)：人物间的关系定义或变化
4. 偏好(preference)：喜好、习惯、口癖等
5. 事件(event)：已确认发生的关键事件
6. 状态(state)：当前情绪、位置等（会被新状态覆盖）
7. 承诺(promise)：双方做出的承诺、约定
8. 共识(consensus)：双方达成的一致看法
9. 每条事实≤30字，信息密度优先
10. 如果没有新事实可提取，输出空数组 []
只输出JSON"""


def parse_category(value: Optional[str]) -> FactCategory:
    """Map a model-supplied category string to FactCategory (default Event)."""
    if not value:
        return FactCategory.EVENT
    return CATEGORY_ALIASES.get(value.strip().lower(), FactCategory.EVENT)


def build_fact_extraction_prompt(
    recent_messages: Sequence[Mapping[str, str]],
    existing_facts: Sequence[Fact],
) -> str:
    """
    Build the prompt asking the model to extract new facts.

    Args:
        recent_messages: Turns as ``{role, content}`` dicts; system turns are skipped
        existing_facts: Already stored facts (first 20 listed as do-not-repeat)

    Returns:
        Prompt text
    """
    lines = ["【事实提取任务】", "从以下对话中提取所有可以作为持久化知识存储的事实。", ""]

    if existing_facts:
        lines.append("【已存储的事实（不要重复）】")
        for i, fact in enumerate(existing_facts[:MAX_EXISTING_FACTS_IN_PROMPT], 1):
            lines.append(f"{i}. [{category_label(fact.category)}] {fact.content}")
        lines.append("")

    lines.append("【最近对话】")
    for message in recent_messages:
        role = ROLE_LABELS.get(message.get("role", ""))
        if role is None:
            continue
        lines.append(f"{role}: {message.get('content', '')}")

    return "\n".join(lines) + "\n" + EXTRACTION_INSTRUCTIONS


def _fact_from_item(item: Any, turn: int, now: float) -> Optional[Fact]:
    if not isinstance(item, dict):
        return None

    content = item.get("content")
    if content is None:
        content = item.get("fact")
    if not isinstance(content, str) or not content.strip():
        return None
    content = content.strip()

    category = item.get("category")
    if category is None:
        category = item.get("type")

    entities = item.get("entities")
    if not isinstance(entities, list):
        entities = []
    context = item.get("context")

    return Fact(
        id=str(uuid.uuid4()),
        content=content,
        category=parse_category(category if isinstance(category, str) else None),
        source_turn=max(int(turn), 0),
        created_at=now,
        last_confirmed_at=now,
        keywords=extract_keywords(content),
        entities=[entity for entity in entities if isinstance(entity, str)],
        confidence=EXTRACTED_FACT_CONFIDENCE,
        hit_count=0,
        context_snippet=context if isinstance(context, str) else "",
    )


def _is_fact_payload(value: Any) -> bool:
    if isinstance(value, list):
        return all(isinstance(item, dict) for item in value)
    return isinstance(value, dict) and isinstance(value.get("facts"), list)


def parse_extracted_facts(text: str, turn: int) -> List[Fact]:
    """
    Parse the model's extraction reply into Fact records.

    Accepts a JSON array of fact objects or an object with a ``facts``
    array, surrounded by arbitrary prose. Items without textual content are
    skipped. Malformed output yields an empty list.

    Args:
        text: Raw model output
        turn: Turn index to stamp as ``source_turn``

    Returns:
        Parsed facts, confidence 0.8, fresh ids
    """
    value = find_json_value(text, accept=_is_fact_payload)
    if isinstance(value, dict):
        value = value.get("facts")
    if not isinstance(value, list):
        logger.warning("fact_extraction_unparsed", turn=turn, chars=len(text or ""))
        return []

    now = time.time()
    facts = []
    for item in value:
        fact = _fact_from_item(item, turn, now)
        if fact is not None:
            facts.append(fact)
    return facts
