"""
dialogue_memory: long-term memory for conversational agents.

Two persisted stores per conversation:
- knowledge: atomic facts with dedup-on-write and hybrid BM25/cosine search
- memory: rolling summaries with tiered compaction and context cards
"""

__version__ = "0.1.0"
