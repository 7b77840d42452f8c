"""
Tests for TreeWalker: ordering, pattern/size/MIME filtering, listing errors
and idempotence.
"""

import os

import pytest

from fscrawler.crawler.errors import DirectoryListingError, InsufficientAccessError
from fscrawler.crawler.filesystem import LocalFile
from fscrawler.crawler.filters import FilePatternMatcher, TraversalContext
from fscrawler.crawler.mime import MimeTypeDetector
from fscrawler.crawler.walker import TreeWalker


def names(files, root):
    return [os.path.relpath(f.path, str(root)) for f in files]


# ============================================================================
# ORDERING
# ============================================================================


def test_walker_yields_files_and_skips_empty_directory(make_tree, root_file):
    """Scenario: root with f1, f2 and empty d1 yields [f1, f2]."""
    root = make_tree({"f1": "one", "f2": "two", "d1": {}})

    walker = TreeWalker(root_file(root), FilePatternMatcher(["*"]))

    assert names(walker, root) == ["f1", "f2"]


def test_walker_is_depth_first_lexicographic(make_tree, root_file):
    """A directory sorts after a sibling file sharing its prefix ("a.txt" < "a/")."""
    root = make_tree({
        "b.txt": "b",
        "a": {"y.txt": "y", "x.txt": "x", "sub": {"z.txt": "z"}},
        "a.txt": "a",
    })

    walker = TreeWalker(root_file(root), FilePatternMatcher(["*"]))

    assert names(walker, root) == [
        "a.txt",
        os.path.join("a", "sub", "z.txt"),
        os.path.join("a", "x.txt"),
        os.path.join("a", "y.txt"),
        "b.txt",
    ]


def test_walker_output_is_idempotent(make_tree, root_file):
    root = make_tree({"a": {"1.txt": "1", "2.txt": "2"}, "b.txt": "b", "c": {}})
    matcher = FilePatternMatcher(["*"], ["*.tmp"])

    first = names(TreeWalker(root_file(root), matcher), root)
    second = names(TreeWalker(root_file(root), matcher), root)

    assert first == second
    assert len(first) == 3


def test_has_more_is_idempotent_and_take_next_requires_position(make_tree, root_file):
    root = make_tree({"only.txt": "x"})
    walker = TreeWalker(root_file(root), FilePatternMatcher(["*"]))

    assert walker.take_next() is None
    assert walker.has_more()
    assert walker.has_more()
    assert walker.take_next().name == "only.txt"
    assert walker.take_next() is None
    assert not walker.has_more()
    assert walker.get_stats()["files_returned"] == 1


# ============================================================================
# FILTERING
# ============================================================================


def test_rejected_directory_contributes_no_files(make_tree, root_file):
    root = make_tree({
        "node_modules": {"keep.txt": "k", "deep": {"also.txt": "a"}},
        "src": {"main.txt": "m"},
    })

    walker = TreeWalker(root_file(root), FilePatternMatcher(["*"], ["node_modules"]))

    assert names(walker, root) == [os.path.join("src", "main.txt")]
    assert walker.get_stats()["skipped_directories"] == 1


def test_excluded_files_are_skipped(make_tree, root_file):
    root = make_tree({"keep.txt": "k", "drop.tmp": "d"})

    walker = TreeWalker(root_file(root), FilePatternMatcher(["*"], ["*.tmp"]))

    assert names(walker, root) == ["keep.txt"]
    assert walker.get_stats()["skipped_by_pattern"] == 1


def test_file_over_size_limit_is_excluded(make_tree, root_file):
    """Scenario: fTooBig exceeds the maximum size, sibling fOk is kept."""
    root = make_tree({"fOk.txt": "small", "fTooBig.txt": "x" * 100})
    context = TraversalContext(max_document_size=10, mime_type_detector=MimeTypeDetector())

    walker = TreeWalker(root_file(root), FilePatternMatcher(["*"]), context)

    assert names(walker, root) == ["fOk.txt"]
    assert walker.get_stats()["skipped_by_size"] == 1


def test_unsupported_mime_type_is_excluded(make_tree, root_file):
    root = make_tree({"doc.txt": "text", "page.html": "<html></html>"})
    context = TraversalContext(
        max_document_size=1024,
        mime_type_detector=MimeTypeDetector(),
        supported_mime_types=["text/*"],
        excluded_mime_types=["text/html"],
    )

    walker = TreeWalker(root_file(root), FilePatternMatcher(["*"]), context)

    assert names(walker, root) == ["doc.txt"]
    assert walker.get_stats()["skipped_by_mime_type"] == 1


def test_files_older_than_threshold_are_skipped(make_tree, root_file):
    root = make_tree({"old.txt": "o", "new.txt": "n"})
    os.utime(root / "old.txt", (1_000_000, 1_000_000))
    os.utime(root / "new.txt", (3_000_000, 3_000_000))

    walker = TreeWalker(root_file(root), FilePatternMatcher(["*"]), if_modified_since=2_000_000)

    assert names(walker, root) == ["new.txt"]
    assert walker.get_stats()["skipped_unmodified"] == 1


def test_hidden_files_are_skipped(make_tree, root_file):
    root = make_tree({".hidden": "h", "visible.txt": "v"})

    walker = TreeWalker(root_file(root), FilePatternMatcher(["*"]))

    assert names(walker, root) == ["visible.txt"]


def test_hidden_directories_are_not_expanded(make_tree, root_file):
    root = make_tree({"a.txt": "a", ".secret": {"key.txt": "k"}})

    walker = TreeWalker(root_file(root), FilePatternMatcher(["*"]))

    assert names(walker, root) == ["a.txt"]
    assert walker.get_stats()["skipped_directories"] == 1


def test_include_pattern_applies_to_files_in_nested_directories(make_tree, root_file):
    root = make_tree({"a.pdf": "a", "b.txt": "b", "sub": {"c.pdf": "c"}})

    walker = TreeWalker(root_file(root), FilePatternMatcher(["*.pdf"]))

    assert names(walker, root) == ["a.pdf", os.path.join("sub", "c.pdf")]
    assert walker.get_stats()["skipped_by_pattern"] == 1
    assert walker.get_stats()["skipped_directories"] == 0


# ============================================================================
# ERROR HANDLING
# ============================================================================


@pytest.mark.parametrize("error", [
    DirectoryListingError("listing failed"),
    InsufficientAccessError("denied"),
    OSError("io error"),
])
def test_listing_error_yields_empty_children(make_tree, root_file, monkeypatch, error):
    root = make_tree({
        "a": {"before.txt": "b"},
        "broken": {"lost.txt": "l"},
        "c": {"after.txt": "a"},
    })
    original = LocalFile.list_files

    def list_files(self):
        if self.name == "broken":
            raise error
        return original(self)

    monkeypatch.setattr(LocalFile, "list_files", list_files)

    walker = TreeWalker(root_file(root), FilePatternMatcher(["*"]))

    assert names(walker, root) == [
        os.path.join("a", "before.txt"),
        os.path.join("c", "after.txt"),
    ]
    assert walker.get_stats()["listing_errors"] == 1


def test_error_while_inspecting_file_skips_only_that_file(make_tree, root_file, monkeypatch):
    root = make_tree({"bad.txt": "b", "good.txt": "g"})
    original = LocalFile.last_modified

    def last_modified(self):
        if self.name == "bad.txt":
            raise OSError("stat failed")
        return original(self)

    monkeypatch.setattr(LocalFile, "last_modified", last_modified)

    walker = TreeWalker(root_file(root), FilePatternMatcher(["*"]), if_modified_since=1.0)

    assert names(walker, root) == ["good.txt"]
    assert walker.get_stats()["skipped_by_error"] == 1
