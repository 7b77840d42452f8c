"""
Tests for the /api control routes using FastAPI's TestClient.

The lifespan is not entered, so no Meilisearch connection or scheduler
thread is started; module globals in fscrawler.main are patched instead.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

import fscrawler.main as main
from fscrawler.config import Settings
from fscrawler.crawler.schedule import TraversalSchedule
from fscrawler.crawler.scheduler import CrawlScheduler
from tests.fakes import FakeSink


@pytest.fixture
def client():
    return TestClient(main.app)


@pytest.fixture
def scheduler(monkeypatch):
    sink = FakeSink()
    scheduler = CrawlScheduler([], sink, TraversalSchedule())
    monkeypatch.setattr(main, "scheduler", scheduler)
    return scheduler


@pytest.fixture
def index_sink(monkeypatch):
    sink = MagicMock()
    monkeypatch.setattr(main, "sink", sink)
    return sink


# ============================================================================
# CRAWL CONTROL
# ============================================================================


def test_crawl_status(client, scheduler):
    response = client.get("/api/crawl/status")

    assert response.status_code == 200
    body = response.json()
    assert body["state"] == "idle"
    assert body["batches_started"] == 0
    assert body["roots"] == []
    assert body["schedule"].startswith("TraversalSchedule(")


def test_update_schedule(client, scheduler):
    response = client.put(
        "/api/crawl/schedule",
        json={"cron": "0 1 * * *", "window_minutes": 30, "scan_interval_minutes": 15},
    )

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert scheduler.schedule.cron == "0 1 * * *"
    assert scheduler.schedule.window_minutes == 30
    assert scheduler.schedule.retry_delay_seconds() == 15 * 60


def test_update_schedule_rejects_invalid_cron(client, scheduler):
    response = client.put("/api/crawl/schedule", json={"cron": "every day"})

    assert response.status_code == 400
    assert scheduler.schedule.cron is None


def test_stop_crawl(client, scheduler):
    response = client.post("/api/crawl/stop")

    assert response.status_code == 200
    assert scheduler.state.value == "stopped"
    assert scheduler.sink.cancel_count == 1


@pytest.mark.parametrize("method, path", [
    ("get", "/api/crawl/status"),
    ("post", "/api/crawl/stop"),
    ("get", "/api/stats"),
])
def test_unavailable_services_return_503(client, monkeypatch, method, path):
    monkeypatch.setattr(main, "scheduler", None)
    monkeypatch.setattr(main, "sink", None)

    response = getattr(client, method)(path)

    assert response.status_code == 503


# ============================================================================
# STATS AND HEALTH
# ============================================================================


def test_stats(client, index_sink):
    index_sink.get_stats.return_value = {
        "numberOfDocuments": 10,
        "isIndexing": False,
        "documentsSent": 4,
        "pending": 1,
    }

    response = client.get("/api/stats")

    assert response.status_code == 200
    assert response.json() == {
        "total_documents": 10,
        "is_indexing": False,
        "documents_sent": 4,
        "pending": 1,
    }


def test_health(client, scheduler, index_sink):
    index_sink.health_check.return_value = True

    body = client.get("/api/health").json()

    assert body == {"status": "healthy", "meilisearch": "connected", "crawler": "idle"}


def test_health_degraded_without_sink(client, monkeypatch):
    monkeypatch.setattr(main, "scheduler", None)
    monkeypatch.setattr(main, "sink", None)

    body = client.get("/api/health").json()

    assert body["status"] == "degraded"
    assert body["crawler"] == "unavailable"


# ============================================================================
# SCHEDULER FACTORY
# ============================================================================


def test_build_scheduler_creates_one_task_per_start_path(tmp_path):
    config = Settings(
        start_paths=[str(tmp_path / "a"), str(tmp_path / "b"), str(tmp_path / "a") + "/"],
        thread_pool_size=3,
    )

    scheduler = main.build_scheduler(config, FakeSink())

    assert [t.root_spec.path for t in scheduler.tasks] == [
        str(tmp_path / "a") + "/",
        str(tmp_path / "b") + "/",
    ]
    assert scheduler.thread_pool_size == 3
    assert scheduler.tasks[0].full_traversal_interval == 24 * 60 * 60
    assert scheduler.tasks[0].if_modified_since_cushion == 60 * 60
