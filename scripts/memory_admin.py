"""
CLI utility for inspecting and maintaining conversation memory.

Usage:
    python scripts/memory_admin.py stats conv_1
    python scripts/memory_admin.py facts conv_1
    python scripts/memory_admin.py search-facts conv_1 "小明的生日"
    python scripts/memory_admin.py search-memories conv_1 "约定" --top-k 3
    python scripts/memory_admin.py compact conv_1 --threshold 4
    python scripts/memory_admin.py wipe conv_1 --yes
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from dialogue_memory.config.settings import Settings
from dialogue_memory.errors import StorageError
from dialogue_memory.knowledge.context import category_counts
from dialogue_memory.memory.integrate import MemoryIntegration, create_memory_integration
from dialogue_memory.memory.policy import compression_impact
from dialogue_memory.memory.summarizer import max_generation
from dialogue_memory.telemetry import configure_logging


def format_time(ts: float) -> str:
    """Format unix timestamp as human-readable string."""
    if not ts:
        return "never"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def show_stats(memory: MemoryIntegration, conversation_id: str) -> int:
    """
    Display fact and timeline statistics for a conversation.

    Args:
        memory: Application context
        conversation_id: Conversation key
    """
    facts = memory.knowledge.get_all_facts(conversation_id)
    summaries = memory.summaries.load_summaries(conversation_id)
    archive = memory.summaries.load_archive(conversation_id)

    print(f"📊 Memory Statistics: {conversation_id}\n")
    print(f"{'Category':<10} {'Facts':>8}")
    print("=" * 20)
    for label, count in category_counts(facts).items():
        print(f"{label:<10} {count:>8}")
    print("=" * 20)
    print(f"{'TOTAL':<10} {len(facts):>8}\n")

    generation = max_generation(summaries)
    print(f"Summaries:          {len(summaries)}")
    print(f"Generation:         {generation} ({compression_impact(generation).value})")
    print(f"Archived facts:     {sum(len(entry.facts) for entry in archive)}")
    return 0


def list_facts(memory: MemoryIntegration, conversation_id: str) -> int:
    facts = memory.knowledge.get_all_facts(conversation_id)
    if not facts:
        print(f"No facts stored for {conversation_id}")
        return 0

    for fact in facts:
        print(
            f"[{fact.category.label}] {fact.content}  "
            f"(conf {fact.confidence:.2f}, hits {fact.hit_count}, "
            f"confirmed {format_time(fact.last_confirmed_at)})"
        )
    return 0


def search_facts(memory: MemoryIntegration, conversation_id: str, query: str, top_k: int) -> int:
    results = memory.knowledge.search_facts(conversation_id, query, top_k)
    if not results:
        print("No matching facts")
        return 0

    for rank, result in enumerate(results, 1):
        print(f"{rank:>2}. {result.relevance_score:.4f}  [{result.fact.category.label}] {result.fact.content}")
    return 0


def search_memories(memory: MemoryIntegration, conversation_id: str, query: str, top_k: int) -> int:
    results = memory.summaries.search(conversation_id, query, top_k)
    if not results:
        print("No matching summaries")
        return 0

    for rank, result in enumerate(results, 1):
        print(f"{rank:>2}. {result.relevance_score:.4f}  {result.summary}")
        for fact in result.core_facts:
            print(f"      - {fact}")
    return 0


def compact(memory: MemoryIntegration, conversation_id: str, threshold: Optional[int]) -> int:
    """
    Run tiered compaction on a stored timeline.

    Args:
        memory: Application context
        conversation_id: Conversation key
        threshold: Override of the configured merge threshold
    """
    store = memory.summaries
    if threshold is not None:
        store.merge_threshold = threshold

    summaries = store.load_summaries(conversation_id)
    result = store.compact(conversation_id, summaries)
    if not result.compacted:
        print(f"Nothing to compact ({len(summaries)} summaries, threshold {store.merge_threshold})")
        return 0

    print(f"🔧 Compacted {len(summaries)} summaries into {len(result.summaries)}")
    print(f"   Generation:       {result.generation}")
    print(f"   Discarded facts:  {len(result.discarded_facts)}")
    if result.merge_prompt is not None:
        print("   ⚠️  Timeline still large; an LLM consolidation pass is recommended")
    return 0


def wipe(memory: MemoryIntegration, conversation_id: str, confirmed: bool) -> int:
    if not confirmed:
        print("❌ Refusing to wipe without --yes")
        return 1

    removed = memory.wipe(conversation_id)
    print(f"🗑️  Knowledge removed: {removed['knowledge']}")
    print(f"🗑️  Memory removed:    {removed['memory']}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect and maintain conversation memory (facts and summaries)"
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Storage root (default: DIALOGUE_MEMORY_DATA_DIR or data/dialogue_memory)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        help="Log level for library events",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    stats_cmd = commands.add_parser("stats", help="Show fact and summary counts")
    stats_cmd.add_argument("conversation_id")

    facts_cmd = commands.add_parser("facts", help="List stored facts")
    facts_cmd.add_argument("conversation_id")

    for name, default_k, help_text in (
        ("search-facts", 10, "Rank facts against a query"),
        ("search-memories", 5, "Rank summaries against a query"),
    ):
        search_cmd = commands.add_parser(name, help=help_text)
        search_cmd.add_argument("conversation_id")
        search_cmd.add_argument("query")
        search_cmd.add_argument("--top-k", type=int, default=default_k)

    compact_cmd = commands.add_parser("compact", help="Run tiered compaction now")
    compact_cmd.add_argument("conversation_id")
    compact_cmd.add_argument("--threshold", type=int, default=None, help="Override merge threshold (>= 2)")

    wipe_cmd = commands.add_parser("wipe", help="Delete all memory of a conversation")
    wipe_cmd.add_argument("conversation_id")
    wipe_cmd.add_argument("--yes", action="store_true", help="Confirm deletion")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "threshold", None) is not None and args.threshold < 2:
        parser.error("--threshold must be at least 2")

    settings = Settings.from_env()
    if args.data_dir is not None:
        settings.paths.data_dir = str(args.data_dir)
    configure_logging(args.log_level)
    memory = create_memory_integration(settings)

    try:
        if args.command == "stats":
            return show_stats(memory, args.conversation_id)
        if args.command == "facts":
            return list_facts(memory, args.conversation_id)
        if args.command == "search-facts":
            return search_facts(memory, args.conversation_id, args.query, args.top_k)
        if args.command == "search-memories":
            return search_memories(memory, args.conversation_id, args.query, args.top_k)
        if args.command == "compact":
            return compact(memory, args.conversation_id, args.threshold)
        return wipe(memory, args.conversation_id, args.yes)
    except (StorageError, ValueError) as e:
        print(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
