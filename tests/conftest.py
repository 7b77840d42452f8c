"""
Pytest configuration and shared fixtures for fscrawler tests.

In-memory collaborators (FakeSink, FakeSchedule, FakeClock) live in
tests/fakes.py.
"""

from pathlib import Path

import pytest

from fscrawler.crawler.document import DocumentBuilder
from fscrawler.crawler.errors import DocumentAcceptorError
from fscrawler.crawler.filesystem import LocalFile, PathResolver, RootSpec, default_registry
from fscrawler.crawler.filters import FilePatternMatcher
from fscrawler.crawler.mime import MimeTypeDetector
from fscrawler.crawler.parser import ContentExtractor
from fscrawler.crawler.task import CrawlTask
from tests.fakes import FakeSink


@pytest.fixture
def make_tree(tmp_path):
    """
    Build a tree from a nested dict: str values are file contents,
    dict values are subdirectories.
    """

    def _make(spec, base: Path = None) -> Path:
        base = base or tmp_path / "root"
        base.mkdir(parents=True, exist_ok=True)
        for name, value in spec.items():
            target = base / name
            if isinstance(value, dict):
                _make(value, target)
            else:
                target.write_text(value)
        return base

    return _make


@pytest.fixture
def root_file():
    def _root(path: Path) -> LocalFile:
        return LocalFile(str(path))

    return _root


@pytest.fixture
def builder():
    return DocumentBuilder(MimeTypeDetector(), ContentExtractor())


@pytest.fixture
def make_task(builder):
    def _make(root: Path, sink, **kwargs) -> CrawlTask:
        kwargs.setdefault("pattern_matcher", FilePatternMatcher(["*"]))
        return CrawlTask(
            RootSpec(str(root) + "/", "local"),
            PathResolver(default_registry()),
            sink,
            builder,
            **kwargs,
        )

    return _make


@pytest.fixture
def fatal_sink():
    return FakeSink(fail_with=DocumentAcceptorError("index unavailable"))
