"""Application settings and configuration schema."""

import json
import os
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field, ValidationError

from ..errors import StorageError


class Paths(BaseModel):
    """File and directory paths configuration."""
    data_dir: str = "data/dialogue_memory"
    knowledge_subdir: str = "knowledge_base"
    memory_subdir: str = "memory_index"


class KnowledgeCfg(BaseModel):
    """Fact store retrieval and context knobs."""
    search_top_k: int = Field(10, ge=1)
    max_context_facts: int = Field(12, ge=1)
    core_identity_confidence: float = Field(0.9, ge=0.0, le=1.0)
    promise_relevance: float = 0.1
    identity_relevance: float = 0.08
    identity_confidence_override: float = Field(0.95, ge=0.0, le=1.0)
    extraction_history_facts: int = Field(20, ge=0)


class MemoryCfg(BaseModel):
    """Summary store and compaction knobs."""
    search_top_k: int = Field(5, ge=1)
    summarize_interval: int = Field(10, ge=1)
    long_summary_min_summaries: int = Field(3, ge=1)
    tiered_merge_threshold: int = Field(8, ge=2)
    archive_discarded: bool = True
    recent_message_limit: int = Field(20, ge=1)


class Settings(BaseModel):
    """Main application settings."""
    paths: Paths = Paths()
    knowledge: KnowledgeCfg = KnowledgeCfg()
    memory: MemoryCfg = MemoryCfg()
    log_level: str = "INFO"
    log_json: bool = False

    @property
    def data_root(self) -> Path:
        return Path(self.paths.data_dir)

    @classmethod
    def from_env(cls, base: Optional["Settings"] = None) -> "Settings":
        """
        Apply environment overrides on top of defaults (or ``base``).

        Recognised variables:
            DIALOGUE_MEMORY_DATA_DIR: storage root
            DIALOGUE_MEMORY_LOG_LEVEL: structlog level name
        """
        settings = base.model_copy(deep=True) if base is not None else cls()
        data_dir = os.environ.get("DIALOGUE_MEMORY_DATA_DIR")
        if data_dir:
            settings.paths.data_dir = data_dir
        log_level = os.environ.get("DIALOGUE_MEMORY_LOG_LEVEL")
        if log_level:
            settings.log_level = log_level.upper()
        return settings

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Settings":
        """
        Load settings from a JSON document.

        Args:
            path: JSON file with any subset of the settings fields

        Returns:
            Validated Settings

        Raises:
            StorageError: If the file cannot be read or does not validate
        """
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return cls.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise StorageError(f"Cannot load settings: {e}", path=path) from e
