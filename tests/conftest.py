"""Test configuration and fixtures."""

from pathlib import Path
from typing import Callable, List, Optional

import pytest

from dialogue_memory.config.settings import Paths, Settings
from dialogue_memory.index.keywords import extract_keywords
from dialogue_memory.knowledge.schemas import Fact, FactCategory
from dialogue_memory.knowledge.store import KnowledgeStore
from dialogue_memory.memory.integrate import MemoryIntegration, create_memory_integration
from dialogue_memory.memory.schemas import MemorySummary, MemoryTier
from dialogue_memory.memory.store import SummaryStore


@pytest.fixture
def data_root(tmp_path) -> Path:
    """Empty storage root for one test."""
    root = tmp_path / "memory_data"
    root.mkdir()
    return root


@pytest.fixture
def settings(data_root) -> Settings:
    """Settings pointing at the temporary storage root."""
    return Settings(paths=Paths(data_dir=str(data_root)))


@pytest.fixture
def knowledge_store(data_root) -> KnowledgeStore:
    return KnowledgeStore(data_root)


@pytest.fixture
def summary_store(data_root) -> SummaryStore:
    return SummaryStore(data_root)


@pytest.fixture
def integration(settings) -> MemoryIntegration:
    """Fully wired application context over the temporary root."""
    return create_memory_integration(settings)


@pytest.fixture
def make_fact() -> Callable[..., Fact]:
    """Factory for facts with derived keywords."""

    def _make(
        content: str,
        category: FactCategory = FactCategory.EVENT,
        confidence: float = 0.8,
        entities: Optional[List[str]] = None,
        context_snippet: str = "",
    ) -> Fact:
        return Fact(
            content=content,
            category=category,
            keywords=extract_keywords(content),
            entities=entities or [],
            confidence=confidence,
            context_snippet=context_snippet,
        )

    return _make


@pytest.fixture
def make_summary() -> Callable[..., MemorySummary]:
    """Factory for summaries; facts are reclassified unless tiers are given."""

    def _make(
        summary: str,
        core_facts: List[str],
        turn_start: int = 1,
        turn_end: int = 10,
        generation: int = 0,
        fact_tiers: Optional[List[MemoryTier]] = None,
    ) -> MemorySummary:
        keywords = set(extract_keywords(summary))
        for fact in core_facts:
            keywords.update(extract_keywords(fact))
        return MemorySummary(
            summary=summary,
            core_facts=core_facts,
            turn_range_start=turn_start,
            turn_range_end=turn_end,
            keywords=sorted(keywords),
            compression_generation=generation,
            fact_tiers=fact_tiers or [],
        )

    return _make


@pytest.fixture
def sample_facts(make_fact) -> List[Fact]:
    """A small mixed-category fact set about one user."""
    return [
        make_fact("用户→是→程序员", FactCategory.IDENTITY, 0.9, ["用户"], "我是做后端的程序员"),
        make_fact("用户→喜欢→猫", FactCategory.PREFERENCE, 0.8, ["用户", "猫"]),
        make_fact("用户→承诺→周末去看电影", FactCategory.PROMISE, 0.85, ["用户"]),
        make_fact("用户→和→小红→是同事", FactCategory.RELATIONSHIP, 0.8, ["用户", "小红"]),
        make_fact("用户→心情→很好", FactCategory.CURRENT_STATE, 0.7, ["用户"]),
    ]


@pytest.fixture
def timeline(make_summary) -> List[MemorySummary]:
    """Eight ten-turn summaries, each with one identity and one scene fact."""
    return [
        make_summary(
            f"第{i + 1}段对话",
            [f"[身份] 角色{i + 1}→是→学生", f"窗外下着小雨{i + 1}"],
            turn_start=i * 10 + 1,
            turn_end=i * 10 + 10,
        )
        for i in range(8)
    ]
