"""
Tests for CrawlTask: full/incremental threshold selection, crawl record
updates, sink error handling and cancellation.
"""

import os
import threading
import time

import pytest

from fscrawler.crawler.errors import DocumentAcceptorError, DocumentRejectedError
from fscrawler.crawler.filesystem import PathResolver, RootSpec, default_registry
from fscrawler.crawler.filters import FilePatternMatcher
from fscrawler.crawler.task import CrawlTask
from tests.fakes import FakeClock, FakeSink


# ============================================================================
# THRESHOLD COMPUTATION
# ============================================================================


def test_zero_interval_always_forces_full_pass(make_task, tmp_path):
    task = make_task(tmp_path, FakeSink(), full_traversal_interval=0)
    task.record.last_full_traversal = 1000.0
    task.record.last_traversal = 1000.0

    assert task.get_if_modified_since(1001.0) == 0.0
    assert task.record.last_full_traversal == 0.0


def test_negative_interval_is_always_incremental(make_task, tmp_path):
    task = make_task(
        tmp_path, FakeSink(), full_traversal_interval=-1, if_modified_since_cushion=100
    )
    task.record.last_full_traversal = 1.0
    task.record.last_traversal = 5000.0

    assert task.get_if_modified_since(10 ** 9) == 4900.0

    task.record.last_traversal = 50.0
    assert task.get_if_modified_since(10 ** 9) == 0.0


def test_positive_interval_switches_to_full_when_elapsed(make_task, tmp_path):
    task = make_task(
        tmp_path, FakeSink(), full_traversal_interval=1000, if_modified_since_cushion=100
    )
    task.record.last_full_traversal = 5000.0
    task.record.last_traversal = 5500.0

    assert task.get_if_modified_since(5999.0) == 5400.0
    assert task.record.last_full_traversal == 5000.0

    assert task.get_if_modified_since(6000.0) == 0.0
    assert task.record.last_full_traversal == 0.0


def test_finished_traversal_records_full_start_only_after_reset(make_task, tmp_path):
    task = make_task(tmp_path, FakeSink())

    task.finished_traversal(100.0)
    assert (task.record.last_full_traversal, task.record.last_traversal) == (100.0, 100.0)

    task.finished_traversal(200.0)
    assert (task.record.last_full_traversal, task.record.last_traversal) == (100.0, 200.0)


# ============================================================================
# PASSES
# ============================================================================


def test_full_then_incremental_pass(make_tree, make_task):
    root = make_tree({"old.txt": "old", "sub": {"older.txt": "older"}})
    long_ago = time.time() - 10 * 24 * 60 * 60
    for path in (root / "old.txt", root / "sub" / "older.txt"):
        os.utime(path, (long_ago, long_ago))

    now = time.time()
    sink = FakeSink()
    task = make_task(root, sink, clock=FakeClock(now, now + 60))

    task.run()
    assert [os.path.basename(p) for p in sink.paths] == ["old.txt", "older.txt"]
    assert task.status()["last_pass_full"] is True
    assert task.record.last_full_traversal == now

    (root / "fresh.txt").write_text("fresh")
    sink.documents.clear()
    task.run()

    assert [os.path.basename(p) for p in sink.paths] == ["fresh.txt"]
    assert task.status()["last_pass_full"] is False
    assert task.status()["passes"] == 2
    assert task.record.last_traversal == now + 60
    assert task.record.last_full_traversal == now
    assert sink.flush_count == 2


def test_documents_carry_file_metadata(make_tree, make_task):
    root = make_tree({"notes.txt": "hello world"})
    sink = FakeSink()

    make_task(root, sink).run()

    [document] = sink.documents
    assert document["filename"] == "notes.txt"
    assert document["extension"] == ".txt"
    assert document["mime_type"] == "text/plain"
    assert document["content"] == "hello world"
    assert document["size"] == len("hello world")
    assert len(document["id"]) == 16


def test_missing_root_returns_without_recording(tmp_path):
    sink = FakeSink()
    task = CrawlTask(
        RootSpec(str(tmp_path / "missing") + "/", "local"),
        PathResolver(default_registry()),
        sink,
        builder=None,
        pattern_matcher=FilePatternMatcher(["*"]),
    )

    task.run()

    assert task.record.last_traversal == 0.0
    assert sink.documents == []


def test_unknown_filesystem_type_is_skipped(builder):
    task = CrawlTask(
        RootSpec("smb://server/share/", None),
        PathResolver(default_registry()),
        FakeSink(),
        builder,
        FilePatternMatcher(["*"]),
    )

    task.run()

    assert task.status()["passes"] == 0


# ============================================================================
# SINK ERRORS AND CANCELLATION
# ============================================================================


def test_rejected_document_is_skipped(make_tree, make_task):
    root = make_tree({"a.txt": "a", "b.txt": "b"})
    sink = FakeSink()
    accept = sink.accept

    def reject_a(document):
        if document["filename"] == "a.txt":
            raise DocumentRejectedError("rejected")
        accept(document)

    sink.accept = reject_a
    task = make_task(root, sink)

    task.run()

    assert [os.path.basename(p) for p in sink.paths] == ["b.txt"]
    assert task.record.last_traversal > 0


def test_fatal_sink_error_propagates_and_flushes(make_tree, make_task, fatal_sink):
    root = make_tree({"a.txt": "a"})
    task = make_task(root, fatal_sink)

    with pytest.raises(DocumentAcceptorError):
        task.run()

    assert fatal_sink.flush_count == 1
    assert task.record.last_traversal == 0.0


def test_cancelled_pass_does_not_update_record(make_tree, make_task):
    root = make_tree({"a.txt": "a"})
    sink = FakeSink()
    task = make_task(root, sink)
    cancel_event = threading.Event()
    cancel_event.set()

    task.run(cancel_event)

    assert sink.documents == []
    assert sink.flush_count == 1
    assert task.record.last_traversal == 0.0
    assert task.status()["passes"] == 0
