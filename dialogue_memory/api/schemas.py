"""
Pydantic schemas for FastAPI endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional

from ..knowledge.schemas import Fact, FactSearchResult
from ..memory.schemas import MemorySearchResult, MemorySummary


class HealthResponse(BaseModel):
    """Response model for /health endpoint."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Package version")
    data_dir: str = Field(..., description="Storage root")


# ============================================================================
# Knowledge
# ============================================================================

class ExtractFactsRequest(BaseModel):
    """Raw extraction reply of the model, to be merged into the fact store."""

    text: str = Field(..., description="Model output holding a JSON fact array")
    turn: int = Field(0, ge=0, description="Turn the facts were extracted at")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "text": '[{"content": "用户叫小明", "category": "identity", "entities": ["小明"]}]',
                "turn": 3,
            }
        }
    )


class FactListResponse(BaseModel):
    """Stored facts of a conversation."""

    facts: List[Fact] = Field(default_factory=list)
    count: int = Field(0, description="Number of facts")
    categories: Dict[str, int] = Field(default_factory=dict, description="Facts per category label")


class SearchFactsRequest(BaseModel):
    """Fact search request."""

    query: str = Field(..., description="User message to rank facts against")
    top_k: int = Field(10, ge=1, le=100, description="Maximum number of results")


class SearchFactsResponse(BaseModel):
    """Ranked facts."""

    results: List[FactSearchResult] = Field(default_factory=list)
    count: int = 0


# ============================================================================
# Memory
# ============================================================================

class AddSummaryRequest(BaseModel):
    """Raw summary reply of the model, with an optional verification reply."""

    text: str = Field(..., description="Model output holding {summary, core_facts}")
    turn_start: int = Field(..., ge=0)
    turn_end: int = Field(..., ge=0)
    verify_text: Optional[str] = Field(None, description="Verification reply, if one was requested")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "text": '{"summary": "小明与AI初识", "core_facts": ["[身份] 用户→叫→小明"]}',
                "turn_start": 1,
                "turn_end": 10,
            }
        }
    )


class AddSummaryResponse(BaseModel):
    """Outcome of a summary ingestion."""

    stored: bool = Field(..., description="Whether the reply parsed into a summary")
    summary: Optional[MemorySummary] = None
    timeline_length: int = Field(0, description="Summaries stored after compaction")


class SummaryListResponse(BaseModel):
    """Timeline of a conversation."""

    summaries: List[MemorySummary] = Field(default_factory=list)
    count: int = 0
    max_generation: int = 0


class SearchMemoriesRequest(BaseModel):
    """Summary search request."""

    query: str = Field(..., description="User message")
    top_k: int = Field(5, ge=1, le=50)


class SearchMemoriesResponse(BaseModel):
    """Ranked summaries."""

    results: List[MemorySearchResult] = Field(default_factory=list)
    count: int = 0


class ContextRequest(BaseModel):
    """Context assembly request."""

    query: str = Field(..., description="Current user message")
    recent_messages: List[Dict[str, str]] = Field(
        default_factory=list,
        description="Earlier turns (role/content) whose topics help pin facts",
    )


class ContextResponse(BaseModel):
    """Knowledge and memory blocks for the next model call."""

    knowledge_context: str = ""
    memory_context: str = ""
    fact_ids: List[str] = Field(default_factory=list)
    summary_ids: List[str] = Field(default_factory=list)


class DeleteResponse(BaseModel):
    """Outcome of a wipe."""

    deleted: bool = Field(..., description="Whether anything was removed")
    message: str = Field(..., description="Status message")
