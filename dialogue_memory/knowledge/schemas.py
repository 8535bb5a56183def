"""
Fact store data models.

Defines Fact, its closed category set and the derived inverted index.
"""

from enum import Enum
from typing import Dict, List
import time
import uuid

from pydantic import BaseModel, ConfigDict, Field


class FactCategory(str, Enum):
    """Closed set of fact categories, serialized by name."""

    IDENTITY = "Identity"
    RELATIONSHIP = "Relationship"
    PREFERENCE = "Preference"
    EVENT = "Event"
    CURRENT_STATE = "CurrentState"
    PROMISE = "Promise"
    CONSENSUS = "Consensus"

    @property
    def is_critical(self) -> bool:
        """Critical facts are always shown and always overwritten on re-confirmation."""
        return self in CRITICAL_CATEGORIES

    @property
    def weight(self) -> float:
        return CATEGORY_WEIGHTS[self]

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


CATEGORY_WEIGHTS: Dict[FactCategory, float] = {
    FactCategory.IDENTITY: 2.0,
    FactCategory.PROMISE: 1.8,
    FactCategory.RELATIONSHIP: 1.6,
    FactCategory.EVENT: 1.4,
    FactCategory.PREFERENCE: 1.2,
    FactCategory.CONSENSUS: 1.1,
    FactCategory.CURRENT_STATE: 1.0,
}

CATEGORY_LABELS: Dict[FactCategory, str] = {
    FactCategory.IDENTITY: "身份",
    FactCategory.RELATIONSHIP: "关系",
    FactCategory.PREFERENCE: "偏好",
    FactCategory.EVENT: "事件",
    FactCategory.CURRENT_STATE: "状态",
    FactCategory.PROMISE: "承诺",
    FactCategory.CONSENSUS: "共识",
}

CRITICAL_CATEGORIES = frozenset({
    FactCategory.IDENTITY,
    FactCategory.RELATIONSHIP,
    FactCategory.EVENT,
    FactCategory.PROMISE,
})

# Returned, by confidence, when a query has no usable keywords
PRIORITY_CATEGORIES = frozenset({
    FactCategory.IDENTITY,
    FactCategory.PROMISE,
    FactCategory.RELATIONSHIP,
})

# Never-expire facts injected on every turn
PERSISTENT_CATEGORIES = frozenset({
    FactCategory.IDENTITY,
    FactCategory.PROMISE,
})


def category_label(category: FactCategory) -> str:
    """Short display label used in prompts and context blocks."""
    return CATEGORY_LABELS[category]


class Fact(BaseModel):
    """
    A single atomic statement about the conversation.

    Facts are never deleted individually; re-confirmation raises
    confidence and refreshes ``last_confirmed_at``.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Stable UUID4")
    content: str = Field(..., description="Fact statement, e.g. '用户→是→程序员'")
    category: FactCategory = Field(FactCategory.EVENT)
    source_turn: int = Field(0, ge=0, description="Turn index the fact was extracted at")
    created_at: float = Field(default_factory=time.time, description="Unix timestamp")
    last_confirmed_at: float = Field(default_factory=time.time, description="Unix timestamp")
    keywords: List[str] = Field(default_factory=list)
    entities: List[str] = Field(default_factory=list)
    confidence: float = Field(0.8, ge=0.0, le=1.0)
    hit_count: int = Field(0, ge=0, description="Times injected into a context block")
    context_snippet: str = Field("", description="Provenance excerpt")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "content": "用户→是→程序员",
                "category": "Identity",
                "source_turn": 12,
                "keywords": ["程序", "程序员", "序员", "用户"],
                "entities": ["用户"],
                "confidence": 0.8,
                "context_snippet": "我是做后端的程序员",
            }
        }
    )

    @property
    def is_critical(self) -> bool:
        return self.category.is_critical


class KnowledgeIndex(BaseModel):
    """Inverted index over a fact set; a pure function of the facts."""

    keyword_index: Dict[str, List[str]] = Field(default_factory=dict)
    entity_index: Dict[str, List[str]] = Field(default_factory=dict)
    category_index: Dict[str, List[str]] = Field(default_factory=dict)


class FactSearchResult(BaseModel):
    """A fact with its fused retrieval score."""

    fact: Fact
    relevance_score: float
