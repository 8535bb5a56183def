"""Unit tests for settings configuration."""

import json

import pytest

from dialogue_memory.config.settings import Settings
from dialogue_memory.errors import StorageError


def test_default_settings():
    """Test that default settings are correctly configured."""
    settings = Settings()
    assert settings.paths.data_dir == "data/dialogue_memory"
    assert settings.paths.knowledge_subdir == "knowledge_base"
    assert settings.paths.memory_subdir == "memory_index"
    assert settings.knowledge.search_top_k == 10
    assert settings.knowledge.max_context_facts == 12
    assert settings.memory.search_top_k == 5
    assert settings.memory.tiered_merge_threshold == 8
    assert settings.memory.archive_discarded is True
    assert settings.log_level == "INFO"


def test_from_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("DIALOGUE_MEMORY_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("DIALOGUE_MEMORY_LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.data_root == tmp_path
    assert settings.log_level == "DEBUG"


def test_from_env_keeps_base(monkeypatch):
    monkeypatch.delenv("DIALOGUE_MEMORY_DATA_DIR", raising=False)
    monkeypatch.delenv("DIALOGUE_MEMORY_LOG_LEVEL", raising=False)
    base = Settings(log_level="WARNING")

    settings = Settings.from_env(base)

    assert settings.log_level == "WARNING"
    assert settings is not base


def test_from_file(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"memory": {"tiered_merge_threshold": 4}}), encoding="utf-8")

    settings = Settings.from_file(path)

    assert settings.memory.tiered_merge_threshold == 4
    assert settings.memory.search_top_k == 5


@pytest.mark.parametrize(
    "content",
    ["{broken", json.dumps({"memory": {"tiered_merge_threshold": 1}})],
)
def test_from_file_invalid(tmp_path, content):
    path = tmp_path / "settings.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(StorageError):
        Settings.from_file(path)


def test_from_file_missing(tmp_path):
    with pytest.raises(StorageError):
        Settings.from_file(tmp_path / "absent.json")
