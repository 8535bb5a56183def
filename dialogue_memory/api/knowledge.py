"""
Knowledge API endpoints: inspect, feed, search and wipe the fact store.
"""

from fastapi import APIRouter, Depends

from ..knowledge.context import category_counts
from ..memory.integrate import MemoryIntegration
from .deps import get_integration
from .schemas import (
    DeleteResponse,
    ExtractFactsRequest,
    FactListResponse,
    SearchFactsRequest,
    SearchFactsResponse,
)


router = APIRouter(prefix="/knowledge", tags=["knowledge"])


@router.get("/{conversation_id}/facts", response_model=FactListResponse)
def list_facts(conversation_id: str, memory: MemoryIntegration = Depends(get_integration)):
    """All stored facts of a conversation, in insertion order."""
    facts = memory.knowledge.get_all_facts(conversation_id)
    return FactListResponse(facts=facts, count=len(facts), categories=category_counts(facts))


@router.post("/{conversation_id}/extract", response_model=FactListResponse)
def extract_facts(
    conversation_id: str,
    request: ExtractFactsRequest,
    memory: MemoryIntegration = Depends(get_integration),
):
    """
    Merge the facts found in a model extraction reply.

    Unparseable replies leave the store untouched and return the current facts.

    Example:
        POST /knowledge/conv_1/extract
        {"text": "[{\"content\": \"用户叫小明\", \"category\": \"identity\"}]", "turn": 3}
    """
    facts = memory.ingest_extracted_facts(conversation_id, request.text, request.turn)
    return FactListResponse(facts=facts, count=len(facts), categories=category_counts(facts))


@router.post("/{conversation_id}/search", response_model=SearchFactsResponse)
def search_facts(
    conversation_id: str,
    request: SearchFactsRequest,
    memory: MemoryIntegration = Depends(get_integration),
):
    """Hybrid BM25 + cosine ranking of stored facts."""
    results = memory.knowledge.search_facts(conversation_id, request.query, request.top_k)
    return SearchFactsResponse(results=results, count=len(results))


@router.delete("/{conversation_id}", response_model=DeleteResponse)
def delete_knowledge(conversation_id: str, memory: MemoryIntegration = Depends(get_integration)):
    """Remove the fact file and index of a conversation."""
    deleted = memory.knowledge.delete_knowledge(conversation_id)
    message = "Knowledge deleted" if deleted else "Nothing stored for this conversation"
    return DeleteResponse(deleted=deleted, message=message)
