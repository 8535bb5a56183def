"""
Memory summarization adapters.

Builds the summarize / long-summary / verify prompts for an external LLM
and turns its JSON replies into MemorySummary records.
"""

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence
import time
import uuid

import structlog

from ..generation.json_extract import find_json_object, find_json_value
from ..index.keywords import extract_keywords
from .cards import build_context_card
from .compaction import classify_all_facts
from .policy import compression_protection_instructions
from .schemas import MemorySummary, MemoryTier


logger = structlog.get_logger(__name__)

RECENT_MESSAGE_LIMIT = 20

SUMMARY_SYSTEM_PROMPT = "你是一个精确的记忆管理系统，负责总结对话内容。请严格按照要求的JSON格式输出。"
VERIFY_SYSTEM_PROMPT = "你是一个严谨的事实验证系统。请检查新总结是否完整保留了所有原始核心事实。只输出JSON。"

ROLE_LABELS = {"user": "用户", "assistant": "AI"}
MESSAGE_TYPE_TAGS = {"say": "[说]", "do": "[做]", "mixed": "[混合]"}

SUMMARY_FORMAT = """{
  "summary": "用一段话概括关键情节走向（50字以内）",
  "core_facts": [
    "身份/关系类事实",
    "已发生的关键转折",
    "当前状态/情感基调"
  ]
}

要求：
1. core_facts 采用三元组编码：「主体→关系/动作→客体」，如"A→青梅竹马→B"
2. 分类记录：
   - [身份] 角色身份、职业、年龄等不可变属性
   - [关系] 人物间的关系变化（用→标记方向）
   - [事件] 已发生的不可逆事件（时间+动作+结果）
   - [状态] 当前情感基调、物理状态
3. summary 用最少的字传达最多信息，像写电报一样精炼
4. 每条 core_fact 控制在25字以内
5. 与已有核心事实不矛盾，有更新则替换旧版本（标注[更新]）
6. 不记录情绪描写和氛围词，只记录可验证的事实
7. 只输出JSON"""

LONG_SUMMARY_FORMAT = """
输出JSON：
{
  "summary": "完整故事线概括（100字以内，按时间线串联关键转折）",
  "core_facts": ["所有不可变事实，三元组编码，去重合并"]
}

要求：
1. 合并重复事实，保留最新版本，标注[合并]
2. summary 按时间线组织，只保留影响剧情走向的节点
3. core_facts 分类编码：
   - [身份] 不可变属性
   - [关系] 人物关系（用→标记）
   - [事件] 关键转折（时间+结果）
   - [状态] 当前状态
4. 每条 fact ≤25字，用"主体→关系→客体"结构
5. 信息零丢失：原始事实中的每一条都必须在新列表中有对应项
6. 只输出JSON"""

VERIFY_FORMAT = """
输出JSON：
{
  "is_valid": true/false,
  "missing_facts": ["遗漏的事实"],
  "corrected_core_facts": ["补全后的完整事实列表（每条≤20字）"]
}
只输出JSON"""


@dataclass
class ParsedSummary:
    """Summary reply of the model."""

    summary: str
    core_facts: List[str] = field(default_factory=list)
    fact_tiers: List[MemoryTier] = field(default_factory=list)


@dataclass
class VerifyResult:
    """Verification reply of the model."""

    is_valid: bool = True
    missing_facts: List[str] = field(default_factory=list)
    corrected_core_facts: List[str] = field(default_factory=list)


def max_generation(summaries: Sequence[MemorySummary]) -> int:
    return max((summary.compression_generation for summary in summaries), default=0)


def _dialogue_lines(messages: Sequence[Mapping[str, str]], with_type: bool) -> List[str]:
    lines = []
    for message in messages:
        role = ROLE_LABELS.get(message.get("role", ""))
        if role is None:
            continue
        tag = ""
        if with_type:
            tag = MESSAGE_TYPE_TAGS.get(message.get("message_type") or "say", "[说]")
        lines.append(f"{role}{tag}: {message.get('content', '')}")
    return lines


# ============================================================================
# Prompts
# ============================================================================

def build_summarize_prompt(
    messages: Sequence[Mapping[str, str]],
    existing_summaries: Sequence[MemorySummary],
    turn_start: int,
    turn_end: int,
) -> str:
    """
    Prompt for summarizing one span of dialogue.

    Args:
        messages: Turns as ``{role, content, message_type}`` dicts
        existing_summaries: Timeline so far (its core facts are listed as immutable)
        turn_start: First turn covered
        turn_end: Last turn covered

    Returns:
        Prompt text prefixed with the protection directive for the current generation
    """
    lines = [compression_protection_instructions(max_generation(existing_summaries)), ""]

    if existing_summaries:
        lines.append("【已确认的核心事实（不可修改）】")
        for summary in existing_summaries:
            lines.extend(f"- {fact}" for fact in summary.core_facts)
        lines.append("")

    lines.append("【需要总结的对话内容】")
    lines.extend(_dialogue_lines(messages, with_type=True))
    lines.append("")
    lines.append(f"请严格按照以下JSON格式输出第{turn_start}轮到第{turn_end}轮的总结：")
    lines.append(SUMMARY_FORMAT)
    return "\n".join(lines)


def build_long_summary_prompt(
    all_summaries: Sequence[MemorySummary],
    recent_messages: Sequence[Mapping[str, str]],
) -> str:
    """Prompt for re-integrating the whole timeline into one summary."""
    generation = max_generation(all_summaries) + 1
    lines = [
        compression_protection_instructions(generation),
        f"（当前压缩代数：{generation}，每次合并代数+1，代数越高信息损耗风险越大）",
        "",
        "整合以下所有记忆摘要为一份精炼总结。",
        "",
        "【历史记忆】",
    ]

    for i, summary in enumerate(all_summaries, 1):
        gen_tag = f" [压缩G{summary.compression_generation}]" if summary.compression_generation > 0 else ""
        lines.append(
            f"{i}. [轮次{summary.turn_range_start}-{summary.turn_range_end}]{gen_tag} {summary.summary}"
        )
        lines.append(f"  事实：{'；'.join(summary.core_facts)}")

    recent = list(recent_messages)[:RECENT_MESSAGE_LIMIT]
    if recent:
        lines.append("")
        lines.append("【最近对话】")
        lines.extend(_dialogue_lines(recent, with_type=False))

    lines.append(LONG_SUMMARY_FORMAT)
    return "\n".join(lines)


def build_verify_summary_prompt(
    original_core_facts: Sequence[str],
    new_summary: str,
    new_core_facts: Sequence[str],
) -> str:
    """Prompt asking the model whether a new summary dropped any prior fact."""
    lines = ["检查新总结是否遗漏了原始核心事实。", "", "【原始事实】"]
    lines.extend(f"- {fact}" for fact in original_core_facts)
    lines.append("")
    lines.append(f"【新总结】{new_summary}")
    lines.append("【新事实】")
    lines.extend(f"- {fact}" for fact in new_core_facts)
    lines.append(VERIFY_FORMAT)
    return "\n".join(lines)


# ============================================================================
# Reply parsing
# ============================================================================

def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _parse_tiers(value: Any) -> List[MemoryTier]:
    tiers = []
    for item in _string_list(value):
        try:
            tiers.append(MemoryTier(item.strip()))
        except ValueError:
            return []
    return tiers


def _is_summary_payload(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("summary"), str)


def parse_summary_response(text: str) -> Optional[ParsedSummary]:
    """
    Parse a ``{summary, core_facts[, fact_tiers]}`` reply.

    Returns:
        ParsedSummary, or None when no JSON object with a summary is found
    """
    data = find_json_value(text, accept=_is_summary_payload)
    if data is None:
        logger.warning("summary_unparsed", chars=len(text or ""))
        return None

    core_facts = _string_list(data.get("core_facts"))
    tiers = _parse_tiers(data.get("fact_tiers"))
    if len(tiers) != len(core_facts):
        tiers = []
    return ParsedSummary(summary=data["summary"], core_facts=core_facts, fact_tiers=tiers)


def parse_verify_response(text: str) -> Optional[VerifyResult]:
    """Parse an ``{is_valid, missing_facts, corrected_core_facts}`` reply."""
    data = find_json_object(text)
    if data is None:
        return None
    is_valid = data.get("is_valid", True)
    return VerifyResult(
        is_valid=is_valid if isinstance(is_valid, bool) else True,
        missing_facts=_string_list(data.get("missing_facts")),
        corrected_core_facts=_string_list(data.get("corrected_core_facts")),
    )


def apply_verification(core_facts: Sequence[str], verify: Optional[VerifyResult]) -> List[str]:
    """Use the corrected fact list when verification failed and supplied one."""
    if verify is not None and not verify.is_valid and verify.corrected_core_facts:
        return list(verify.corrected_core_facts)
    return list(core_facts)


# ============================================================================
# Summary construction
# ============================================================================

def summary_keywords(summary_text: str, core_facts: Sequence[str]) -> List[str]:
    """Keyword set of a summary: its text plus every core fact."""
    keywords = set(extract_keywords(summary_text))
    for fact in core_facts:
        keywords.update(extract_keywords(fact))
    return sorted(keywords)


def create_memory_summary(
    summary_text: str,
    core_facts: Sequence[str],
    turn_start: int,
    turn_end: int,
    existing_summaries: Sequence[MemorySummary] = (),
    fact_tiers: Optional[Sequence[MemoryTier]] = None,
) -> MemorySummary:
    """
    Assemble a new timeline entry.

    Keywords are derived from the text and facts, tiers classified unless
    supplied for every fact, the generation inherited from the timeline and
    a context card attached.
    """
    core_facts = list(core_facts)
    if fact_tiers is not None and len(fact_tiers) == len(core_facts):
        tiers = list(fact_tiers)
    else:
        tiers = classify_all_facts(core_facts)

    summary = MemorySummary(
        id=str(uuid.uuid4()),
        summary=summary_text,
        core_facts=core_facts,
        turn_range_start=turn_start,
        turn_range_end=turn_end,
        created_at=time.time(),
        keywords=summary_keywords(summary_text, core_facts),
        compression_generation=max_generation(existing_summaries),
        fact_tiers=tiers,
    )
    summary.context_card = build_context_card(summary)
    return summary


__all__ = [
    "SUMMARY_SYSTEM_PROMPT",
    "VERIFY_SYSTEM_PROMPT",
    "ParsedSummary",
    "VerifyResult",
    "apply_verification",
    "build_long_summary_prompt",
    "build_summarize_prompt",
    "build_verify_summary_prompt",
    "create_memory_summary",
    "max_generation",
    "parse_summary_response",
    "parse_verify_response",
    "summary_keywords",
]
