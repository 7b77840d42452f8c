"""
In-memory collaborators shared by the fscrawler tests.
"""

import threading
import time

from fscrawler.crawler.schedule import Schedule
from fscrawler.crawler.sink import DocumentSink


class FakeSink(DocumentSink):
    """Collects accepted documents; can be told to fail."""

    def __init__(self, fail_with=None):
        self.documents = []
        self.flush_count = 0
        self.cancel_count = 0
        self.fail_with = fail_with
        self._lock = threading.Lock()

    def accept(self, document):
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            self.documents.append(document)

    def flush(self):
        with self._lock:
            self.flush_count += 1

    def cancel(self):
        with self._lock:
            self.cancel_count += 1

    @property
    def paths(self):
        return [d["path"] for d in self.documents]


class FakeSchedule(Schedule):
    def __init__(self, disabled=False, due=0, retry=-1):
        self.disabled = disabled
        self.due = due
        self.retry = retry

    def is_disabled(self):
        return self.disabled

    def seconds_until_due(self):
        return self.due

    def retry_delay_seconds(self):
        return self.retry

    def __repr__(self):
        return f"FakeSchedule(disabled={self.disabled}, due={self.due}, retry={self.retry})"


class FakeClock:
    """Returns the queued timestamps in order, then repeats the last one."""

    def __init__(self, *times):
        self.times = list(times)

    def __call__(self):
        if len(self.times) > 1:
            return self.times.pop(0)
        return self.times[0]


def wait_until(predicate, timeout=5.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
