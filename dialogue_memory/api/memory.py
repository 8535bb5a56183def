"""
Memory API endpoints: the summary timeline and context assembly.
"""

from fastapi import APIRouter, Depends

from ..memory.integrate import MemoryIntegration
from ..memory.summarizer import max_generation
from .deps import get_integration
from .schemas import (
    AddSummaryRequest,
    AddSummaryResponse,
    ContextRequest,
    ContextResponse,
    DeleteResponse,
    SearchMemoriesRequest,
    SearchMemoriesResponse,
    SummaryListResponse,
)


router = APIRouter(prefix="/memory", tags=["memory"])


@router.get("/{conversation_id}/summaries", response_model=SummaryListResponse)
def list_summaries(conversation_id: str, memory: MemoryIntegration = Depends(get_integration)):
    """Timeline of a conversation, oldest first."""
    summaries = memory.summaries.load_summaries(conversation_id)
    return SummaryListResponse(
        summaries=summaries,
        count=len(summaries),
        max_generation=max_generation(summaries),
    )


@router.post("/{conversation_id}/summaries", response_model=AddSummaryResponse)
def add_summary(
    conversation_id: str,
    request: AddSummaryRequest,
    memory: MemoryIntegration = Depends(get_integration),
):
    """
    Ingest a summary reply (and optional verification reply).

    Appending may compact the timeline; ``timeline_length`` reflects the
    persisted state.
    """
    summary = memory.ingest_summary(
        conversation_id,
        request.text,
        request.turn_start,
        request.turn_end,
        verify_text=request.verify_text,
    )
    timeline = memory.summaries.load_summaries(conversation_id)
    return AddSummaryResponse(
        stored=summary is not None,
        summary=summary,
        timeline_length=len(timeline),
    )


@router.post("/{conversation_id}/search", response_model=SearchMemoriesResponse)
def search_summaries(
    conversation_id: str,
    request: SearchMemoriesRequest,
    memory: MemoryIntegration = Depends(get_integration),
):
    """Hybrid BM25 + cosine ranking of stored summaries."""
    results = memory.summaries.search(conversation_id, request.query, request.top_k)
    return SearchMemoriesResponse(results=results, count=len(results))


@router.post("/{conversation_id}/context", response_model=ContextResponse)
def build_context(
    conversation_id: str,
    request: ContextRequest,
    memory: MemoryIntegration = Depends(get_integration),
):
    """Knowledge and long-term memory blocks for the given user message."""
    context = memory.retrieve_context(
        conversation_id, request.query, recent_messages=request.recent_messages
    )
    return ContextResponse(**context.to_dict())


@router.delete("/{conversation_id}", response_model=DeleteResponse)
def delete_memory(conversation_id: str, memory: MemoryIntegration = Depends(get_integration)):
    """Remove the timeline and archive of a conversation."""
    deleted = memory.summaries.delete_summaries(conversation_id)
    message = "Memory deleted" if deleted else "Nothing stored for this conversation"
    return DeleteResponse(deleted=deleted, message=message)
