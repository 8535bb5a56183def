"""
Fact store: dedup-on-write persistence and hybrid retrieval.

Files per conversation under ``<root>/knowledge_base``:
- <cid>_facts.json: list of Fact records
- <cid>_index.json: KnowledgeIndex rebuilt on every write
"""

from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union
import time

import structlog
from pydantic import ValidationError

from ..errors import StorageError
from ..index.keywords import extract_keywords
from ..persist.json_store import delete_file, read_json, write_json
from ..persist.paths import StoragePaths
from ..retrieval.hybrid import hybrid_rank
from ..retrieval.similarity import semantic_similarity_score
from .schemas import (
    PRIORITY_CATEGORIES,
    Fact,
    FactCategory,
    FactSearchResult,
    KnowledgeIndex,
)


logger = structlog.get_logger(__name__)

FACT_SIMILARITY_THRESHOLD = 0.62
NON_CRITICAL_UPDATE_FLOOR = 0.55
CONFIRMATION_BOOST = 0.1
BM25_WEIGHT = 0.55
COSINE_WEIGHT = 0.45


# ============================================================================
# Pure operations
# ============================================================================

def _find_match(existing: Sequence[Fact], new_fact: Fact) -> Optional[Tuple[int, float]]:
    for position, fact in enumerate(existing):
        similarity = semantic_similarity_score(fact.content, new_fact.content)
        if similarity >= FACT_SIMILARITY_THRESHOLD:
            return position, similarity
        both_state = (
            fact.category == FactCategory.CURRENT_STATE
            and new_fact.category == FactCategory.CURRENT_STATE
        )
        if both_state and set(fact.entities) & set(new_fact.entities):
            return position, similarity
    return None


def merge_facts(existing: Sequence[Fact], new_facts: Iterable[Fact]) -> List[Fact]:
    """
    Merge freshly extracted facts into an existing list.

    A new fact matches the first existing fact whose similarity reaches
    0.62, or the first CurrentState fact sharing an entity with a new
    CurrentState fact. On a match the existing fact keeps its id, gains
    +0.1 confidence (capped at 1.0) and a fresh ``last_confirmed_at``; its
    content, keywords, entities and snippet are overwritten only when it is
    critical or the similarity is at least 0.55. Unmatched facts are
    appended and may absorb later facts of the same batch.

    Args:
        existing: Facts already stored (not mutated)
        new_facts: Candidates from extraction

    Returns:
        Merged fact list
    """
    merged = [fact.model_copy(deep=True) for fact in existing]

    for new_fact in new_facts:
        match = _find_match(merged, new_fact)
        if match is None:
            merged.append(new_fact.model_copy(deep=True))
            continue

        position, similarity = match
        current = merged[position]
        update = {
            "last_confirmed_at": new_fact.last_confirmed_at,
            "confidence": min(1.0, round(current.confidence + CONFIRMATION_BOOST, 6)),
        }
        if current.is_critical or similarity >= NON_CRITICAL_UPDATE_FLOOR:
            update.update(
                content=new_fact.content,
                keywords=list(new_fact.keywords),
                entities=list(new_fact.entities),
                context_snippet=new_fact.context_snippet,
            )
        merged[position] = current.model_copy(update=update)

    return merged


def rebuild_index(facts: Iterable[Fact]) -> KnowledgeIndex:
    """Build the keyword/entity/category inverted index for a fact set."""
    index = KnowledgeIndex()
    for fact in facts:
        for keyword in fact.keywords:
            index.keyword_index.setdefault(keyword, []).append(fact.id)
        for entity in fact.entities:
            index.entity_index.setdefault(entity, []).append(fact.id)
        index.category_index.setdefault(fact.category.value, []).append(fact.id)
    return index


def fact_document(fact: Fact) -> List[str]:
    """Keyword bag searched for a fact: stored keywords plus content and snippet."""
    bag = set(fact.keywords)
    bag.update(extract_keywords(fact.content))
    if fact.context_snippet:
        bag.update(extract_keywords(fact.context_snippet))
    return sorted(bag)


def priority_facts(facts: Sequence[Fact], top_k: int) -> List[FactSearchResult]:
    """Identity/Promise/Relationship facts by confidence, each scored 1.0."""
    candidates = [fact for fact in facts if fact.category in PRIORITY_CATEGORIES]
    candidates.sort(key=lambda fact: fact.confidence, reverse=True)
    return [FactSearchResult(fact=fact, relevance_score=1.0) for fact in candidates[:top_k]]


def rank_facts(facts: Sequence[Fact], query: str, top_k: int = 10) -> List[FactSearchResult]:
    """
    Hybrid lexical ranking of facts for a query.

    BM25 (weighted by category and confidence) and keyword cosine (weighted
    by category) rankings are fused with weighted RRF (0.55 / 0.45, k=60).
    A query without keywords falls back to the priority categories.

    Args:
        facts: Candidate facts
        query: User query
        top_k: Maximum number of results

    Returns:
        Results with positive fused score, best first
    """
    if not facts or top_k <= 0:
        return []

    query_keywords = extract_keywords(query)
    if not query_keywords:
        return priority_facts(facts, top_k)

    documents = [fact_document(fact) for fact in facts]
    weights = [fact.category.weight for fact in facts]
    fused = hybrid_rank(
        query_keywords,
        documents,
        BM25_WEIGHT,
        COSINE_WEIGHT,
        bm25_multipliers=[
            weight * (0.5 + 0.5 * fact.confidence) for weight, fact in zip(weights, facts)
        ],
        cosine_multipliers=weights,
    )

    return [
        FactSearchResult(fact=facts[position], relevance_score=score)
        for position, score in fused[:top_k]
        if score > 0
    ]


# ============================================================================
# Repository
# ============================================================================

class KnowledgeStore:
    """
    Persistent fact store, one pair of JSON files per conversation.

    Every method takes the conversation id explicitly. Writers to the same
    conversation are expected to be serialized by the caller; concurrent
    writers resolve last-writer-wins.
    """

    def __init__(self, root: Union[str, Path, StoragePaths]):
        """
        Args:
            root: Storage root directory (or pre-built StoragePaths)
        """
        self.paths = root if isinstance(root, StoragePaths) else StoragePaths.from_root(root)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load_facts(self, conversation_id: str) -> List[Fact]:
        """
        Load all facts of a conversation.

        Returns:
            Facts in insertion order; empty if nothing was stored yet

        Raises:
            StorageError: If the file is unreadable or malformed
        """
        path = self.paths.facts_path(conversation_id)
        data = read_json(path, default=[])
        if not isinstance(data, list):
            raise StorageError("Fact file must hold a JSON list", path=path)
        try:
            return [Fact.model_validate(item) for item in data]
        except ValidationError as e:
            raise StorageError(f"Invalid fact record: {e}", path=path) from e

    def save_facts(self, conversation_id: str, facts: Sequence[Fact]) -> None:
        """
        Rewrite the inverted index, then the fact file.

        The fact file is authoritative and written last: if either write
        fails the stored facts are unchanged, and load_index repairs an index
        left ahead of them.
        """
        write_json(
            self.paths.index_path(conversation_id),
            rebuild_index(facts).model_dump(mode="json"),
        )
        write_json(
            self.paths.facts_path(conversation_id),
            [fact.model_dump(mode="json") for fact in facts],
        )
        logger.debug("facts_saved", conversation_id=conversation_id, count=len(facts))

    def load_index(self, conversation_id: str) -> KnowledgeIndex:
        """
        Load the inverted index of a conversation.

        The persisted index is returned when it matches the stored facts;
        otherwise (missing, or left behind by an interrupted save) it is
        rebuilt from the facts.

        Raises:
            StorageError: If either file is unreadable or malformed
        """
        path = self.paths.index_path(conversation_id)
        data = read_json(path, default=None)
        current = rebuild_index(self.load_facts(conversation_id))
        if data is None:
            return current
        try:
            persisted = KnowledgeIndex.model_validate(data)
        except ValidationError as e:
            raise StorageError(f"Invalid index: {e}", path=path) from e
        if persisted != current:
            logger.warning("knowledge_index_stale", conversation_id=conversation_id)
            return current
        return persisted

    def get_all_facts(self, conversation_id: str) -> List[Fact]:
        return self.load_facts(conversation_id)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def add_facts(self, conversation_id: str, new_facts: Sequence[Fact]) -> List[Fact]:
        """
        Merge new facts into the stored set and persist the result.

        Args:
            conversation_id: Conversation key
            new_facts: Candidates from extraction

        Returns:
            The merged fact list as persisted
        """
        existing = self.load_facts(conversation_id)
        merged = merge_facts(existing, new_facts)
        self.save_facts(conversation_id, merged)

        added = len(merged) - len(existing)
        logger.info(
            "facts_merged",
            conversation_id=conversation_id,
            candidates=len(new_facts),
            added=added,
            confirmed=len(new_facts) - added,
            total=len(merged),
        )
        return merged

    def search_facts(
        self,
        conversation_id: str,
        query: str,
        top_k: int = 10,
    ) -> List[FactSearchResult]:
        """Rank the stored facts of a conversation against ``query``."""
        return rank_facts(self.load_facts(conversation_id), query, top_k)

    def record_hits(self, conversation_id: str, fact_ids: Iterable[str]) -> int:
        """
        Count a context injection for each listed fact.

        Returns:
            Number of facts updated
        """
        wanted = set(fact_ids)
        if not wanted:
            return 0

        facts = self.load_facts(conversation_id)
        now = time.time()
        updated = 0
        for position, fact in enumerate(facts):
            if fact.id in wanted:
                facts[position] = fact.model_copy(
                    update={"hit_count": fact.hit_count + 1, "last_confirmed_at": now}
                )
                updated += 1

        if updated:
            write_json(
                self.paths.facts_path(conversation_id),
                [fact.model_dump(mode="json") for fact in facts],
            )
        logger.debug("fact_hits_recorded", conversation_id=conversation_id, updated=updated)
        return updated

    def delete_knowledge(self, conversation_id: str) -> bool:
        """
        Remove both the fact file and the index of a conversation.

        Returns:
            True if anything was deleted
        """
        removed_facts = delete_file(self.paths.facts_path(conversation_id))
        removed_index = delete_file(self.paths.index_path(conversation_id))
        logger.info("knowledge_deleted", conversation_id=conversation_id)
        return removed_facts or removed_index
