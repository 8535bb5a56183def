"""
Memory integration hooks for a dialogue loop.

Wires the fact store and the summary store into the steps a chat engine
runs around each model call:
- before the call: retrieve the knowledge and long-term memory blocks
- after the call: build extraction/summary prompts and ingest the replies
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple
import time

import structlog

from ..config.settings import Settings
from ..errors import StorageError
from ..knowledge.context import (
    build_knowledge_context,
    select_persistent_facts,
    select_related_facts,
)
from ..knowledge.extraction import build_fact_extraction_prompt, parse_extracted_facts
from ..knowledge.schemas import Fact
from ..knowledge.store import KnowledgeStore
from ..persist.paths import StoragePaths
from ..retrieval.similarity import extract_active_topics, extract_active_topics_from_messages
from ..telemetry import log_step
from .policy import should_summarize, summary_turn_range
from .recall import format_memory_context, search_memories
from .schemas import MemorySummary
from .store import SummaryStore
from .summarizer import (
    ParsedSummary,
    apply_verification,
    build_long_summary_prompt,
    build_summarize_prompt,
    build_verify_summary_prompt,
    create_memory_summary,
    parse_summary_response,
    parse_verify_response,
)


logger = structlog.get_logger(__name__)


@dataclass
class RetrievedContext:
    """Context blocks assembled for one model call."""

    knowledge_context: str = ""
    memory_context: str = ""
    fact_ids: List[str] = field(default_factory=list)
    summary_ids: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Both blocks joined, skipping empty ones."""
        return "\n".join(block for block in (self.knowledge_context, self.memory_context) if block)

    def to_dict(self) -> Dict[str, object]:
        return {
            "knowledge_context": self.knowledge_context,
            "memory_context": self.memory_context,
            "fact_ids": list(self.fact_ids),
            "summary_ids": list(self.summary_ids),
        }


class MemoryIntegration:
    """
    Integration layer between a dialogue loop and the two memory stores.

    One instance is the application context: the API and the CLI receive it
    explicitly instead of reaching for module-level state.
    """

    def __init__(
        self,
        knowledge: KnowledgeStore,
        summaries: SummaryStore,
        settings: Optional[Settings] = None,
    ):
        """
        Args:
            knowledge: Fact store
            summaries: Summary store
            settings: Retrieval and compaction knobs (defaults if omitted)
        """
        self.knowledge = knowledge
        self.summaries = summaries
        self.settings = settings or Settings()

    # ------------------------------------------------------------------
    # Fact extraction
    # ------------------------------------------------------------------

    def fact_extraction_prompt(
        self,
        conversation_id: str,
        recent_messages: Sequence[Mapping[str, str]],
    ) -> str:
        facts = self.knowledge.load_facts(conversation_id)
        return build_fact_extraction_prompt(
            recent_messages,
            facts[:self.settings.knowledge.extraction_history_facts],
        )

    def ingest_extracted_facts(self, conversation_id: str, llm_text: str, turn: int) -> List[Fact]:
        """
        Parse an extraction reply and merge it into the fact store.

        Args:
            conversation_id: Conversation key
            llm_text: Raw model output
            turn: Turn the facts were extracted at

        Returns:
            The stored fact set after merging (unchanged when nothing parsed)
        """
        start = time.perf_counter()
        candidates = parse_extracted_facts(llm_text, turn)
        if not candidates:
            return self.knowledge.load_facts(conversation_id)

        merged = self.knowledge.add_facts(conversation_id, candidates)
        log_step(
            "ingest_facts",
            (time.perf_counter() - start) * 1000,
            {"conversation_id": conversation_id, "candidates": len(candidates)},
        )
        return merged

    # ------------------------------------------------------------------
    # Summarization
    # ------------------------------------------------------------------

    def summary_due(self, turn_count: int) -> Optional[Tuple[int, int]]:
        """Turn range to summarize after ``turn_count`` turns, or None when not due."""
        interval = self.settings.memory.summarize_interval
        if not should_summarize(turn_count, interval):
            return None
        return summary_turn_range(turn_count, interval)

    def summary_prompt(
        self,
        conversation_id: str,
        messages: Sequence[Mapping[str, str]],
        turn_start: int,
        turn_end: int,
    ) -> str:
        """
        Prompt for the next summary of this conversation.

        Once ``long_summary_min_summaries`` summaries exist the whole timeline
        is re-integrated together with the most recent messages.
        """
        existing = self.summaries.load_summaries(conversation_id)
        if len(existing) >= self.settings.memory.long_summary_min_summaries:
            dialogue = [message for message in messages if message.get("role") != "system"]
            recent = dialogue[-self.settings.memory.recent_message_limit:]
            return build_long_summary_prompt(existing, recent)
        return build_summarize_prompt(messages, existing, turn_start, turn_end)

    def verification_prompt(self, conversation_id: str, parsed: ParsedSummary) -> Optional[str]:
        """
        Prompt checking ``parsed`` against every stored core fact.

        Returns:
            None when the timeline is empty (nothing to lose)
        """
        existing = self.summaries.load_summaries(conversation_id)
        if not existing:
            return None
        original = [fact for summary in existing for fact in summary.core_facts]
        return build_verify_summary_prompt(original, parsed.summary, parsed.core_facts)

    def ingest_summary(
        self,
        conversation_id: str,
        llm_text: str,
        turn_start: int,
        turn_end: int,
        verify_text: Optional[str] = None,
    ) -> Optional[MemorySummary]:
        """
        Turn a summary reply into a timeline entry and persist it.

        A failed verification with a corrected fact list replaces the core
        facts. Appending may trigger tiered compaction.

        Args:
            conversation_id: Conversation key
            llm_text: Raw summary reply
            turn_start: First turn covered
            turn_end: Last turn covered
            verify_text: Raw verification reply, if one was requested

        Returns:
            The new summary, or None when the reply could not be parsed
        """
        start = time.perf_counter()
        parsed = parse_summary_response(llm_text)
        if parsed is None:
            return None

        existing = self.summaries.load_summaries(conversation_id)
        core_facts = parsed.core_facts
        tiers = parsed.fact_tiers or None
        if verify_text is not None and existing:
            verified = apply_verification(core_facts, parse_verify_response(verify_text))
            if verified != core_facts:
                core_facts, tiers = verified, None

        summary = create_memory_summary(
            parsed.summary,
            core_facts,
            turn_start,
            turn_end,
            existing_summaries=existing,
            fact_tiers=tiers,
        )
        result = self.summaries.append_summary(conversation_id, summary)
        log_step(
            "ingest_summary",
            (time.perf_counter() - start) * 1000,
            {
                "conversation_id": conversation_id,
                "core_facts": len(core_facts),
                "compacted": result.compacted,
            },
        )
        return summary

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def retrieve_context(
        self,
        conversation_id: str,
        query: str,
        recent_messages: Optional[Sequence[Mapping[str, str]]] = None,
    ) -> RetrievedContext:
        """
        Assemble the knowledge and long-term memory blocks for a user message.

        Only the search results rendered into the block get their hit
        counters bumped.

        Args:
            conversation_id: Conversation key
            query: Current user message
            recent_messages: Earlier dialogue whose topics also decide which
                promises and identity facts are pinned

        Returns:
            RetrievedContext (blocks are "" when their store is empty)
        """
        start = time.perf_counter()
        knowledge_cfg = self.settings.knowledge
        topics = extract_active_topics(query)
        if recent_messages:
            topics = sorted(set(topics) | set(extract_active_topics_from_messages(recent_messages)))

        facts = self.knowledge.load_facts(conversation_id)
        fact_results = self.knowledge.search_facts(conversation_id, query, knowledge_cfg.search_top_k)
        pinned = select_persistent_facts(
            facts,
            query,
            active_topics=topics,
            core_confidence=knowledge_cfg.core_identity_confidence,
            promise_relevance=knowledge_cfg.promise_relevance,
            identity_relevance=knowledge_cfg.identity_relevance,
            identity_confidence_override=knowledge_cfg.identity_confidence_override,
        )
        knowledge_context = build_knowledge_context(
            fact_results, pinned, max_related=knowledge_cfg.max_context_facts
        )

        shown = select_related_facts(fact_results, knowledge_cfg.max_context_facts)
        fact_ids = [result.fact.id for result in shown]
        if knowledge_context and fact_ids:
            try:
                self.knowledge.record_hits(conversation_id, fact_ids)
            except StorageError as e:
                # Hit counters are bookkeeping; the context is still valid
                logger.warning("fact_hits_not_recorded", conversation_id=conversation_id, error=str(e))

        timeline = self.summaries.load_summaries(conversation_id)
        memory_results = search_memories(query, timeline, self.settings.memory.search_top_k)
        memory_context = format_memory_context(query, timeline, memory_results)

        log_step(
            "retrieve_context",
            (time.perf_counter() - start) * 1000,
            {
                "conversation_id": conversation_id,
                "facts": len(fact_results),
                "pinned": len(pinned),
                "summaries": len(memory_results),
            },
        )
        return RetrievedContext(
            knowledge_context=knowledge_context,
            memory_context=memory_context,
            fact_ids=fact_ids,
            summary_ids=[result.summary_id for result in memory_results],
        )

    def wipe(self, conversation_id: str) -> Dict[str, bool]:
        """Delete every stored artifact of a conversation."""
        return {
            "knowledge": self.knowledge.delete_knowledge(conversation_id),
            "memory": self.summaries.delete_summaries(conversation_id),
        }


def create_memory_integration(settings: Optional[Settings] = None) -> MemoryIntegration:
    """
    Build stores and the integration layer from settings.

    Args:
        settings: Application settings (environment-derived defaults if omitted)

    Returns:
        Configured MemoryIntegration
    """
    settings = settings or Settings.from_env()
    paths = StoragePaths(
        root=settings.data_root,
        knowledge_subdir=settings.paths.knowledge_subdir,
        memory_subdir=settings.paths.memory_subdir,
    )
    knowledge = KnowledgeStore(paths)
    summaries = SummaryStore(
        paths,
        merge_threshold=settings.memory.tiered_merge_threshold,
        archive_discarded=settings.memory.archive_discarded,
    )
    return MemoryIntegration(knowledge, summaries, settings)
