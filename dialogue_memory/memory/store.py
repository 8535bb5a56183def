"""
Summary store: per-conversation timeline persistence.

Files per conversation under ``<root>/memory_index``:
- <cid>.json: list of MemorySummary records, oldest first
- <cid>_archive.json: facts dropped by compaction (cold storage)
"""

from pathlib import Path
from typing import List, Sequence, Union

import structlog
from pydantic import ValidationError

from ..errors import StorageError
from ..persist.json_store import delete_file, read_json, write_json
from ..persist.paths import StoragePaths
from .compaction import TIERED_MERGE_THRESHOLD, CompactionResult, tiered_merge
from .recall import search_memories
from .schemas import ArchivedFacts, MemorySearchResult, MemorySummary


logger = structlog.get_logger(__name__)


class SummaryStore:
    """
    Persistent summary timeline, one JSON file per conversation.

    Appending a summary runs tiered compaction once the timeline is long
    enough. Facts the compaction drops are appended to a per-conversation
    archive when ``archive_discarded`` is set.
    """

    def __init__(
        self,
        root: Union[str, Path, StoragePaths],
        merge_threshold: int = TIERED_MERGE_THRESHOLD,
        archive_discarded: bool = True,
    ):
        """
        Args:
            root: Storage root directory (or pre-built StoragePaths)
            merge_threshold: Timeline length that triggers compaction
            archive_discarded: Keep compaction casualties in cold storage
        """
        self.paths = root if isinstance(root, StoragePaths) else StoragePaths.from_root(root)
        self.merge_threshold = merge_threshold
        self.archive_discarded = archive_discarded

    def _load_models(self, path: Path, model) -> list:
        data = read_json(path, default=[])
        if not isinstance(data, list):
            raise StorageError("Expected a JSON list", path=path)
        try:
            return [model.model_validate(item) for item in data]
        except ValidationError as e:
            raise StorageError(f"Invalid record: {e}", path=path) from e

    def load_summaries(self, conversation_id: str) -> List[MemorySummary]:
        """
        Load the timeline of a conversation.

        Raises:
            StorageError: If the file is unreadable or malformed
        """
        return self._load_models(self.paths.summaries_path(conversation_id), MemorySummary)

    def save_summaries(self, conversation_id: str, summaries: Sequence[MemorySummary]) -> None:
        write_json(
            self.paths.summaries_path(conversation_id),
            [summary.model_dump(mode="json") for summary in summaries],
        )

    def load_archive(self, conversation_id: str) -> List[ArchivedFacts]:
        """Cold-storage entries written by earlier compactions."""
        return self._load_models(self.paths.archive_path(conversation_id), ArchivedFacts)

    def _archive(self, conversation_id: str, result: CompactionResult) -> None:
        entries = self.load_archive(conversation_id)
        # A retried compaction collapses the same summaries; archive them once
        if any(entry.summary_ids == result.merged_summary_ids for entry in entries):
            logger.debug("scene_details_already_archived", conversation_id=conversation_id)
            return
        entries.append(ArchivedFacts(
            summary_ids=result.merged_summary_ids,
            facts=result.discarded_facts,
            generation=result.generation or 0,
        ))
        write_json(
            self.paths.archive_path(conversation_id),
            [entry.model_dump(mode="json") for entry in entries],
        )
        logger.info(
            "scene_details_archived",
            conversation_id=conversation_id,
            facts=len(result.discarded_facts),
        )

    def compact(self, conversation_id: str, summaries: Sequence[MemorySummary]) -> CompactionResult:
        """
        Run tiered compaction over ``summaries`` and persist the outcome.

        Discarded facts are archived before the timeline is rewritten, so a
        failed timeline write loses nothing; retrying re-archives nothing.

        Returns:
            CompactionResult (unchanged timeline when below the threshold)
        """
        result = tiered_merge(summaries, threshold=self.merge_threshold)
        if result.compacted:
            if result.discarded_facts:
                if self.archive_discarded:
                    self._archive(conversation_id, result)
                else:
                    logger.warning(
                        "scene_details_dropped",
                        conversation_id=conversation_id,
                        facts=len(result.discarded_facts),
                    )
            if result.merge_prompt is not None:
                logger.info("consolidation_prompt_ready", conversation_id=conversation_id)
        self.save_summaries(conversation_id, result.summaries)
        return result

    def append_summary(self, conversation_id: str, summary: MemorySummary) -> CompactionResult:
        """
        Append a summary to the timeline, compacting when due.

        Args:
            conversation_id: Conversation key
            summary: New timeline entry

        Returns:
            CompactionResult describing the persisted timeline
        """
        summaries = self.load_summaries(conversation_id)
        summaries.append(summary)
        return self.compact(conversation_id, summaries)

    def search(self, conversation_id: str, query: str, top_k: int = 5) -> List[MemorySearchResult]:
        return search_memories(query, self.load_summaries(conversation_id), top_k)

    def delete_summaries(self, conversation_id: str) -> bool:
        """
        Remove the timeline and its archive.

        Returns:
            True if anything was deleted
        """
        removed_timeline = delete_file(self.paths.summaries_path(conversation_id))
        removed_archive = delete_file(self.paths.archive_path(conversation_id))
        logger.info("memory_deleted", conversation_id=conversation_id)
        return removed_timeline or removed_archive
