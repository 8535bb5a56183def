"""
Path management for per-conversation memory files.

Layout under a storage root:
    knowledge_base/<cid>_facts.json
    knowledge_base/<cid>_index.json
    memory_index/<cid>.json
    memory_index/<cid>_archive.json
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Union


def validate_conversation_id(conversation_id: str) -> str:
    """
    Reject ids that could escape the storage root.

    Raises:
        ValueError: If the id is empty or contains path components
    """
    if not isinstance(conversation_id, str) or not conversation_id.strip():
        raise ValueError("conversation_id must be a non-empty string")
    if "/" in conversation_id or "\\" in conversation_id or ".." in conversation_id:
        raise ValueError(f"Invalid conversation_id: {conversation_id!r}")
    return conversation_id


@dataclass
class StoragePaths:
    """Centralized paths for a storage root and its derived files."""

    root: Path
    knowledge_subdir: str = "knowledge_base"
    memory_subdir: str = "memory_index"

    def __post_init__(self):
        self.root = Path(self.root)

    @classmethod
    def from_root(cls, root: Union[str, Path]) -> "StoragePaths":
        return cls(root=Path(root))

    @property
    def knowledge_dir(self) -> Path:
        """Directory holding fact and index files."""
        return self.root / self.knowledge_subdir

    @property
    def memory_dir(self) -> Path:
        """Directory holding summary timelines."""
        return self.root / self.memory_subdir

    def facts_path(self, conversation_id: str) -> Path:
        cid = validate_conversation_id(conversation_id)
        return self.knowledge_dir / f"{cid}_facts.json"

    def index_path(self, conversation_id: str) -> Path:
        cid = validate_conversation_id(conversation_id)
        return self.knowledge_dir / f"{cid}_index.json"

    def summaries_path(self, conversation_id: str) -> Path:
        cid = validate_conversation_id(conversation_id)
        return self.memory_dir / f"{cid}.json"

    def archive_path(self, conversation_id: str) -> Path:
        """Cold storage for facts dropped by compaction."""
        cid = validate_conversation_id(conversation_id)
        return self.memory_dir / f"{cid}_archive.json"
