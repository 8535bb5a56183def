"""
Unit tests for SummaryStore (timeline persistence, auto-compaction, archive).
"""

import pytest
from structlog.testing import capture_logs

from dialogue_memory.errors import StorageError
from dialogue_memory.memory.store import SummaryStore


def test_missing_timeline_reads_empty(summary_store):
    assert summary_store.load_summaries("unknown") == []
    assert summary_store.load_archive("unknown") == []
    assert summary_store.search("unknown", "小明") == []


def test_round_trip(summary_store, timeline):
    summary_store.save_summaries("conv_1", timeline)
    assert summary_store.load_summaries("conv_1") == timeline


def test_append_below_threshold(summary_store, timeline):
    for summary in timeline[:7]:
        result = summary_store.append_summary("conv_1", summary)
        assert not result.compacted

    assert summary_store.load_summaries("conv_1") == timeline[:7]
    assert not summary_store.paths.archive_path("conv_1").exists()


def test_append_triggers_compaction_and_archive(summary_store, timeline):
    for summary in timeline[:7]:
        summary_store.append_summary("conv_1", summary)

    with capture_logs() as logs:
        result = summary_store.append_summary("conv_1", timeline[7])

    assert result.compacted
    stored = summary_store.load_summaries("conv_1")
    assert len(stored) == 2
    assert stored[0].compression_generation == 1
    assert stored[1] == timeline[7]

    archive = summary_store.load_archive("conv_1")
    assert len(archive) == 1
    assert archive[0].generation == 1
    assert sorted(archive[0].facts) == sorted(f"窗外下着小雨{i + 1}" for i in range(8))
    assert archive[0].summary_ids == [summary.id for summary in timeline[:7]]

    events = {entry["event"] for entry in logs}
    assert "summaries_compacted" in events
    assert "scene_details_archived" in events


def test_archive_accumulates(summary_store, make_summary, timeline):
    summary_store.save_summaries("conv_1", timeline[:7])
    summary_store.append_summary("conv_1", timeline[7])

    for i in range(6):
        summary_store.append_summary(
            "conv_1",
            make_summary(f"后续{i}", [f"街上很热闹{i}"], 81 + i * 10, 90 + i * 10),
        )

    assert len(summary_store.load_summaries("conv_1")) == 2
    archive = summary_store.load_archive("conv_1")
    assert len(archive) == 2
    assert archive[1].generation == 2


def test_failed_timeline_write_then_retry_archives_once(summary_store, timeline, monkeypatch):
    summary_store.save_summaries("conv_1", timeline[:7])

    def failing_save(conversation_id, summaries):
        raise StorageError("disk full")

    monkeypatch.setattr(summary_store, "save_summaries", failing_save)
    with pytest.raises(StorageError):
        summary_store.append_summary("conv_1", timeline[7])

    # Timeline untouched, discarded facts already safe in the archive
    assert summary_store.load_summaries("conv_1") == timeline[:7]
    assert len(summary_store.load_archive("conv_1")) == 1

    monkeypatch.undo()
    result = summary_store.append_summary("conv_1", timeline[7])

    assert result.compacted
    assert len(summary_store.load_summaries("conv_1")) == 2
    archive = summary_store.load_archive("conv_1")
    assert len(archive) == 1
    assert len(archive[0].facts) == 8


def test_archive_disabled_logs_drop(data_root, timeline):
    store = SummaryStore(data_root, archive_discarded=False)
    store.save_summaries("conv_1", timeline[:7])

    with capture_logs() as logs:
        store.append_summary("conv_1", timeline[7])

    assert not store.paths.archive_path("conv_1").exists()
    dropped = [entry for entry in logs if entry["event"] == "scene_details_dropped"]
    assert dropped and dropped[0]["facts"] == 8


def test_custom_merge_threshold(data_root, timeline):
    store = SummaryStore(data_root, merge_threshold=3)
    for summary in timeline[:3]:
        result = store.append_summary("conv_1", summary)

    assert result.compacted
    assert len(store.load_summaries("conv_1")) == 2


def test_search(summary_store, make_summary):
    summary_store.save_summaries(
        "conv_1",
        [
            make_summary("一起吃火锅", ["[事件] 吃火锅"]),
            make_summary("小明告白", ["[事件] 小明→告白→小红"], 11, 20),
        ],
    )

    results = summary_store.search("conv_1", "告白", top_k=1)

    assert len(results) == 1
    assert results[0].summary == "小明告白"


def test_delete_summaries_removes_archive(summary_store, timeline):
    summary_store.save_summaries("conv_1", timeline[:7])
    summary_store.append_summary("conv_1", timeline[7])

    assert summary_store.delete_summaries("conv_1") is True
    assert summary_store.load_summaries("conv_1") == []
    assert not summary_store.paths.archive_path("conv_1").exists()
    assert summary_store.delete_summaries("conv_1") is False


def test_malformed_timeline_raises(summary_store):
    path = summary_store.paths.summaries_path("conv_1")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text('{"summary": "not a list"}', encoding="utf-8")

    with pytest.raises(StorageError):
        summary_store.load_summaries("conv_1")


def test_invalid_conversation_id(summary_store):
    with pytest.raises(ValueError):
        summary_store.load_summaries("../etc")
