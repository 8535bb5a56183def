"""
Summary memory data models.

Defines MemorySummary, its context card and the tier/impact enumerations
that drive compaction.
"""

from enum import Enum
from typing import List, Optional
import time
import uuid

from pydantic import BaseModel, ConfigDict, Field


class MemoryTier(str, Enum):
    """Compaction priority of a core fact, highest first."""

    IDENTITY = "Identity"
    CRITICAL_EVENT = "CriticalEvent"
    RELATIONSHIP_DYNAMIC = "RelationshipDynamic"
    CURRENT_STATE = "CurrentState"
    SCENE_DETAIL = "SceneDetail"


# Order merged core facts are emitted in; SceneDetail never survives a merge
TIER_ORDER = (
    MemoryTier.IDENTITY,
    MemoryTier.CRITICAL_EVENT,
    MemoryTier.RELATIONSHIP_DYNAMIC,
    MemoryTier.CURRENT_STATE,
)


class CompressionImpactLevel(str, Enum):
    """Fidelity risk of a summary given how many merges produced it."""

    LOSSLESS = "Lossless"
    STYLE_DRIFT = "StyleDrift"
    PERSONALITY_FADE = "PersonalityFade"
    DETAIL_LOSS = "DetailLoss"
    IDENTITY_EROSION = "IdentityErosion"


class MemoryContextCard(BaseModel):
    """Structured metadata derived from a summary's core facts."""

    source_range: str = ""
    topic_tags: List[str] = Field(default_factory=list)
    key_entities: List[str] = Field(default_factory=list)
    emotional_tone: str = "中性"
    causal_links: List[str] = Field(default_factory=list)


class MemorySummary(BaseModel):
    """
    A digest of a span of dialogue turns.

    ``fact_tiers`` runs parallel to ``core_facts``; it may be shorter for
    summaries written before tiers were assigned, in which case missing
    tiers are recomputed on demand.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    summary: str = Field(..., description="Short natural-language digest")
    core_facts: List[str] = Field(default_factory=list, description="Tier-tagged fact strings")
    turn_range_start: int = Field(0, ge=0)
    turn_range_end: int = Field(0, ge=0)
    created_at: float = Field(default_factory=time.time, description="Unix timestamp")
    keywords: List[str] = Field(default_factory=list)
    compression_generation: int = Field(0, ge=0, description="Number of merge passes")
    context_card: Optional[MemoryContextCard] = None
    fact_tiers: List[MemoryTier] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "summary": "小明向小红告白，两人确定关系",
                "core_facts": ["[身份] 小明→是→程序员", "[事件] 小明→告白→小红"],
                "turn_range_start": 1,
                "turn_range_end": 10,
                "compression_generation": 0,
                "fact_tiers": ["Identity", "CriticalEvent"],
            }
        }
    )

    def tier_at(self, position: int) -> Optional[MemoryTier]:
        """Stored tier of the fact at ``position``, if one was recorded."""
        if 0 <= position < len(self.fact_tiers):
            return self.fact_tiers[position]
        return None


class MemorySearchResult(BaseModel):
    """A summary with its fused retrieval score."""

    summary_id: str
    summary: str
    core_facts: List[str] = Field(default_factory=list)
    relevance_score: float


class ArchivedFacts(BaseModel):
    """Facts dropped by one compaction pass, kept in cold storage."""

    summary_ids: List[str] = Field(default_factory=list)
    facts: List[str] = Field(default_factory=list)
    generation: int = 0
    archived_at: float = Field(default_factory=time.time)
