"""
Tests for TraversalSchedule (cron window on APScheduler's CronTrigger).
"""

from datetime import datetime, timezone

import pytest

from fscrawler.config import ScheduleConfig
from fscrawler.crawler.schedule import TraversalSchedule


def at(hour, minute=0):
    return lambda: datetime(2024, 1, 10, hour, minute, tzinfo=timezone.utc)


def test_no_cron_is_always_due():
    schedule = TraversalSchedule()

    assert schedule.seconds_until_due() == 0
    assert not schedule.is_disabled()


def test_inside_window_is_due():
    schedule = TraversalSchedule(cron="0 1 * * *", window_minutes=240, timezone="UTC", now=at(3))

    assert schedule.seconds_until_due() == 0


def test_window_start_is_due():
    schedule = TraversalSchedule(cron="0 1 * * *", window_minutes=240, timezone="UTC", now=at(1))

    assert schedule.seconds_until_due() == 0


def test_outside_window_reports_seconds_until_next_start():
    schedule = TraversalSchedule(cron="0 1 * * *", window_minutes=240, timezone="UTC", now=at(6))

    assert schedule.seconds_until_due() == 19 * 60 * 60


def test_before_first_window_of_day():
    schedule = TraversalSchedule(cron="30 0 * * *", window_minutes=10, timezone="UTC", now=at(0, 20))

    assert schedule.seconds_until_due() == 10 * 60


def test_invalid_cron_raises_value_error():
    with pytest.raises(ValueError):
        TraversalSchedule(cron="not a cron")


@pytest.mark.parametrize("minutes, expected", [(60, 3600), (0, 0), (-1, -1)])
def test_from_config_converts_scan_interval(minutes, expected):
    config = ScheduleConfig(scan_interval_minutes=minutes, cron="0 2 * * *", timezone="UTC")

    schedule = TraversalSchedule.from_config(config)

    assert schedule.retry_delay_seconds() == expected
    assert schedule.cron == "0 2 * * *"


def test_disabled_from_config():
    schedule = TraversalSchedule.from_config(ScheduleConfig(disabled=True))

    assert schedule.is_disabled()
    assert "disabled=True" in repr(schedule)
