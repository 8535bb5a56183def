"""
Memory policies.

Determines when to summarize and how strongly each summarization prompt
must protect existing facts, based on the compression generation.
"""

from typing import Dict, Tuple

from .schemas import CompressionImpactLevel


SUMMARIZE_INTERVAL = 10

PROTECTION_INSTRUCTIONS: Dict[CompressionImpactLevel, str] = {
    CompressionImpactLevel.LOSSLESS: (
        "【压缩等级：无损】所有信息必须完整保留，不可省略任何细节。"
    ),
    CompressionImpactLevel.STYLE_DRIFT: (
        "【压缩等级：轻微风格偏移】\n"
        "优先保留：身份、关系、事件、金钱数值、承诺\n"
        "允许简化：语气描述、氛围词、重复的情绪表达\n"
        "警告：角色的口癖和表达习惯可能因压缩而轻微变化"
    ),
    CompressionImpactLevel.PERSONALITY_FADE: (
        "【压缩等级：性格细节模糊风险】\n"
        "必须保留（绝对不可丢失）：\n"
        "- [身份] 所有身份属性\n"
        "- [关系] 所有人物关系\n"
        "- [事件] 所有关键事件\n"
        "- [金钱] 所有金额/交易记录\n"
        "允许压缩：性格描述可合并为关键词，口癖可省略频率细节\n"
        "警告：此代数的压缩可能导致角色性格表现不如早期精确"
    ),
    CompressionImpactLevel.DETAIL_LOSS: (
        "【压缩等级：细节丢失风险】\n"
        "绝对保留（核心锚点）：\n"
        "- [身份] 姓名、年龄、职业、核心设定\n"
        "- [关系] 主要人物关系方向\n"
        "- [事件] 不可逆转折点\n"
        "尽力保留：金钱数值、次要关系、时间线\n"
        "允许丢失：氛围、场景细节、重复事件的具体过程\n"
        "警告：金钱数值和次要关系可能因多次压缩而不精确"
    ),
    CompressionImpactLevel.IDENTITY_EROSION: (
        "【压缩等级：深度退化风险】\n"
        "这是高代数压缩，信息损耗不可避免。\n"
        "绝对保留（最后防线）：\n"
        "- 角色姓名和核心身份\n"
        "- 与用户的关系定义\n"
        "- 最重要的 3-5 个转折事件\n"
        "尽力保留：其他身份属性、金钱、次要关系\n"
        "警告：身份的边缘属性（爱好、习惯、次要设定）可能已经模糊"
    ),
}


def compression_impact(generation: int) -> CompressionImpactLevel:
    """
    Map a compression generation to its fidelity risk.

    0-1 lossless, 2-3 style drift, 4-5 personality fade,
    6-7 detail loss, 8+ identity erosion.
    """
    if generation <= 1:
        return CompressionImpactLevel.LOSSLESS
    if generation <= 3:
        return CompressionImpactLevel.STYLE_DRIFT
    if generation <= 5:
        return CompressionImpactLevel.PERSONALITY_FADE
    if generation <= 7:
        return CompressionImpactLevel.DETAIL_LOSS
    return CompressionImpactLevel.IDENTITY_EROSION


def compression_protection_instructions(generation: int) -> str:
    """Directive prefixed to every summarize/merge prompt at this generation."""
    return PROTECTION_INSTRUCTIONS[compression_impact(generation)]


def should_summarize(turn_count: int, interval: int = SUMMARIZE_INTERVAL) -> bool:
    """
    Determine if the conversation is due for a summary.

    Args:
        turn_count: Number of completed turns
        interval: Summarize every ``interval`` turns

    Returns:
        True on every positive multiple of the interval
    """
    return turn_count > 0 and turn_count % interval == 0


def summary_turn_range(turn_count: int, interval: int = SUMMARIZE_INTERVAL) -> Tuple[int, int]:
    """Inclusive (start, end) turn range covered by the summary due at ``turn_count``."""
    start = max(turn_count - interval + 1, 1)
    return start, turn_count
