"""
Summary store: narrative memory of a conversation.

Provides:
- Ranked summary search and the long-term memory context block
- Summarize / long-summary / verify / merge prompt adapters
- Context cards for search enrichment
- Tiered compaction with compression generations
- The integration layer tying both stores to a dialogue loop
"""

from .schemas import (
    TIER_ORDER,
    ArchivedFacts,
    CompressionImpactLevel,
    MemoryContextCard,
    MemorySearchResult,
    MemorySummary,
    MemoryTier,
)
from .policy import (
    compression_impact,
    compression_protection_instructions,
    should_summarize,
    summary_turn_range,
)
from .cards import build_context_card, build_context_card_from_facts, build_enhanced_search_text
from .compaction import (
    CompactionResult,
    build_tiered_merge_prompt,
    classify_all_facts,
    classify_fact_tier,
    should_tiered_merge,
    tiered_merge,
)
from .summarizer import (
    SUMMARY_SYSTEM_PROMPT,
    VERIFY_SYSTEM_PROMPT,
    ParsedSummary,
    VerifyResult,
    apply_verification,
    build_long_summary_prompt,
    build_summarize_prompt,
    build_verify_summary_prompt,
    create_memory_summary,
    parse_summary_response,
    parse_verify_response,
)
from .recall import format_memory_context, search_memories
from .store import SummaryStore
from .integrate import MemoryIntegration, RetrievedContext, create_memory_integration

__all__ = [
    "TIER_ORDER",
    "ArchivedFacts",
    "CompressionImpactLevel",
    "MemoryContextCard",
    "MemorySearchResult",
    "MemorySummary",
    "MemoryTier",
    "compression_impact",
    "compression_protection_instructions",
    "should_summarize",
    "summary_turn_range",
    "build_context_card",
    "build_context_card_from_facts",
    "build_enhanced_search_text",
    "CompactionResult",
    "build_tiered_merge_prompt",
    "classify_all_facts",
    "classify_fact_tier",
    "should_tiered_merge",
    "tiered_merge",
    "SUMMARY_SYSTEM_PROMPT",
    "VERIFY_SYSTEM_PROMPT",
    "ParsedSummary",
    "VerifyResult",
    "apply_verification",
    "build_long_summary_prompt",
    "build_summarize_prompt",
    "build_verify_summary_prompt",
    "create_memory_summary",
    "parse_summary_response",
    "parse_verify_response",
    "format_memory_context",
    "search_memories",
    "SummaryStore",
    "MemoryIntegration",
    "RetrievedContext",
    "create_memory_integration",
]
