"""
Tiered compaction of the summary timeline.

Once a conversation holds enough summaries, every summary but the latest
is collapsed into one. Facts are bucketed by tier: Identity and
CriticalEvent survive verbatim, RelationshipDynamic survives deduplicated,
CurrentState keeps only its two latest entries and SceneDetail is dropped.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
import time
import uuid

import structlog

from .cards import build_context_card_from_facts
from .policy import compression_protection_instructions
from .schemas import TIER_ORDER, MemorySummary, MemoryTier


logger = structlog.get_logger(__name__)

TIERED_MERGE_THRESHOLD = 8
STATE_FACTS_KEPT = 2
MERGED_SUMMARY_MAX_CHARS = 150
LLM_CONSOLIDATION_FACT_LIMIT = 40

# First matching rule wins; checked in this order
TIER_RULES: Tuple[Tuple[MemoryTier, Tuple[str, ...]], ...] = (
    (MemoryTier.IDENTITY, (
        "[身份]", "姓名", "名字", "年龄", "职业", "设定", "identity", "→是→", "→叫→",
    )),
    (MemoryTier.CRITICAL_EVENT, (
        "[事件]", "承诺", "约定", "金钱", "金额", "转折", "不可逆", "死", "离开",
        "告白", "分手", "结婚",
    )),
    (MemoryTier.RELATIONSHIP_DYNAMIC, (
        "[关系]", "关系", "亲密", "信任", "→喜欢→", "→讨厌→", "→暗恋→", "→青梅竹马→",
    )),
    (MemoryTier.CURRENT_STATE, (
        "[状态]", "当前", "现在", "情绪", "心情", "基调",
    )),
)

TIER_TAGS: Dict[MemoryTier, str] = {
    MemoryTier.IDENTITY: "🔒身份",
    MemoryTier.CRITICAL_EVENT: "🔒事件",
    MemoryTier.RELATIONSHIP_DYNAMIC: "🔄关系",
    MemoryTier.CURRENT_STATE: "⏳状态",
    MemoryTier.SCENE_DETAIL: "💨场景",
}


@dataclass
class CompactionResult:
    """Outcome of one compaction pass."""

    summaries: List[MemorySummary]
    merge_prompt: Optional[str] = None
    discarded_facts: List[str] = field(default_factory=list)
    merged_summary_ids: List[str] = field(default_factory=list)
    generation: Optional[int] = None

    @property
    def compacted(self) -> bool:
        return self.generation is not None


def classify_fact_tier(fact: str) -> MemoryTier:
    """
    Assign a compaction tier to a fact string.

    Substring rules over the lower-cased fact, checked Identity ->
    CriticalEvent -> RelationshipDynamic -> CurrentState; anything else is
    a SceneDetail.

    Example:
        >>> classify_fact_tier("[身份] 姓名：小明")
        <MemoryTier.IDENTITY: 'Identity'>
    """
    lowered = fact.lower()
    for tier, markers in TIER_RULES:
        if any(marker in lowered for marker in markers):
            return tier
    return MemoryTier.SCENE_DETAIL


def classify_all_facts(core_facts: Sequence[str]) -> List[MemoryTier]:
    return [classify_fact_tier(fact) for fact in core_facts]


def should_tiered_merge(
    summaries: Sequence[MemorySummary],
    threshold: int = TIERED_MERGE_THRESHOLD,
) -> bool:
    return len(summaries) >= threshold


def _dedup_first(facts: Sequence[str]) -> List[str]:
    return list(dict.fromkeys(facts))


def _latest_states(facts: Sequence[str], keep: int = STATE_FACTS_KEPT) -> List[str]:
    # Dedup keeping each fact's last position, then keep the newest ``keep``
    last_seen = _dedup_first(reversed(facts))
    return list(reversed(last_seen))[-keep:] if keep > 0 else []


def bucket_facts(summaries: Sequence[MemorySummary]) -> Dict[MemoryTier, List[str]]:
    """All core facts grouped by tier, in timeline order (stored tier preferred)."""
    buckets: Dict[MemoryTier, List[str]] = {tier: [] for tier in MemoryTier}
    for summary in summaries:
        for position, fact in enumerate(summary.core_facts):
            tier = summary.tier_at(position) or classify_fact_tier(fact)
            buckets[tier].append(fact)
    return buckets


def _merged_digest(summaries: Sequence[MemorySummary]) -> str:
    digest = "→".join(summary.summary for summary in summaries)
    if len(digest) > MERGED_SUMMARY_MAX_CHARS:
        return digest[:MERGED_SUMMARY_MAX_CHARS - 3] + "..."
    return digest


def tiered_merge(
    summaries: Sequence[MemorySummary],
    threshold: int = TIERED_MERGE_THRESHOLD,
) -> CompactionResult:
    """
    Collapse all but the latest summary into one higher-generation summary.

    Args:
        summaries: Timeline, oldest first
        threshold: Minimum number of summaries before compaction runs

    Returns:
        CompactionResult whose ``summaries`` is ``[merged, latest]``, or the
        input unchanged when below the threshold
    """
    summaries = list(summaries)
    if not should_tiered_merge(summaries, threshold) or len(summaries) < 2:
        return CompactionResult(summaries=summaries)

    buckets = bucket_facts(summaries)
    surviving: Dict[MemoryTier, List[str]] = {
        MemoryTier.IDENTITY: _dedup_first(buckets[MemoryTier.IDENTITY]),
        MemoryTier.CRITICAL_EVENT: _dedup_first(buckets[MemoryTier.CRITICAL_EVENT]),
        MemoryTier.RELATIONSHIP_DYNAMIC: _dedup_first(buckets[MemoryTier.RELATIONSHIP_DYNAMIC]),
        MemoryTier.CURRENT_STATE: _latest_states(buckets[MemoryTier.CURRENT_STATE]),
    }
    discarded = buckets[MemoryTier.SCENE_DETAIL]

    generation = max(summary.compression_generation for summary in summaries) + 1
    older, latest = summaries[:-1], summaries[-1]

    merged_facts: List[str] = []
    merged_tiers: List[MemoryTier] = []
    for tier in TIER_ORDER:
        merged_facts.extend(surviving[tier])
        merged_tiers.extend([tier] * len(surviving[tier]))

    turn_start = min(summary.turn_range_start for summary in older)
    turn_end = max(summary.turn_range_end for summary in older)
    keywords = sorted({keyword for summary in older for keyword in summary.keywords})

    merged = MemorySummary(
        id=str(uuid.uuid4()),
        summary=_merged_digest(older),
        core_facts=merged_facts,
        turn_range_start=turn_start,
        turn_range_end=turn_end,
        created_at=time.time(),
        keywords=keywords,
        compression_generation=generation,
        context_card=build_context_card_from_facts(merged_facts, turn_start, turn_end),
        fact_tiers=merged_tiers,
    )

    result = [merged, latest]
    merge_prompt = None
    if sum(len(summary.core_facts) for summary in result) > LLM_CONSOLIDATION_FACT_LIMIT:
        merge_prompt = build_tiered_merge_prompt(result, generation)

    logger.info(
        "summaries_compacted",
        inputs=len(summaries),
        generation=generation,
        kept_facts=len(merged_facts),
        discarded_facts=len(discarded),
        needs_consolidation=merge_prompt is not None,
    )
    return CompactionResult(
        summaries=result,
        merge_prompt=merge_prompt,
        discarded_facts=list(discarded),
        merged_summary_ids=[summary.id for summary in older],
        generation=generation,
    )


def build_tiered_merge_prompt(summaries: Sequence[MemorySummary], generation: int) -> str:
    """
    LLM-assisted consolidation prompt for a timeline that is still too large.

    Each fact is tagged with its tier marker so the model knows which facts
    are locked (🔒), mergeable (🔄), latest-only (⏳) or droppable (💨).
    """
    lines = [
        compression_protection_instructions(generation),
        "",
        "【分级压缩合并任务】",
        "以下记忆需要进一步精炼，但必须遵守排级保护规则：",
        "",
        "■ 绝对保护（不可修改、不可合并、不可省略）：",
        "  - 所有 [身份] 类事实",
        "  - 所有 [事件] 类不可逆转折",
        "  - 所有承诺/约定/金额",
        "",
        "■ 允许合并（语义相近的可合并为一条）：",
        "  - [关系] 类事实（保留最新关系状态）",
        "  - [状态] 类事实（只保留当前状态）",
        "",
    ]

    for i, summary in enumerate(summaries, 1):
        lines.append(
            f"记忆{i}. [轮{summary.turn_range_start}-{summary.turn_range_end}] {summary.summary}"
        )
        for position, fact in enumerate(summary.core_facts):
            tier = summary.tier_at(position)
            tag = f" {TIER_TAGS[tier]}" if tier is not None else ""
            lines.append(f"  - {fact}{tag}")

    lines.append("""
输出JSON：
{
  "summary": "合并后的完整时间线概括（100字以内）",
  "core_facts": ["精炼后的事实列表，三元组编码"],
  "fact_tiers": ["Identity/CriticalEvent/RelationshipDynamic/CurrentState 对应每条事实"]
}

要求：
1. 🔒标记的事实必须原样保留，一字不改
2. 🔄标记的事实可以合并同类项，但不可丢弃
3. ⏳标记的事实只保留最新状态
4. 💨标记的事实可以省略
5. 合并后的事实总数不超过25条
6. 只输出JSON""")
    return "\n".join(lines)

