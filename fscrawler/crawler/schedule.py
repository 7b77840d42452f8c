# =============================================================================
# fscrawler - 巡回スケジュール
# =============================================================================
# スケジューラーが各ティックで参照するスケジュールを定義します。
#
# TraversalSchedule は APScheduler の CronTrigger で巡回ウィンドウの開始時刻を
# 指定し、ウィンドウ内であれば「今すぐ実行」と判定します。
#
# 設定例（config.yaml）:
#   schedule:
#     cron: "0 1 * * *"      # 毎日 1:00 にウィンドウ開始
#     window_minutes: 240    # 4時間の間は巡回を繰り返す
#     scan_interval_minutes: 60
# =============================================================================

import math
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Optional

from apscheduler.triggers.cron import CronTrigger


class Schedule(ABC):
    """スケジューラーが参照する読み取り専用のスケジュール"""

    @abstractmethod
    def is_disabled(self) -> bool: ...

    @abstractmethod
    def seconds_until_due(self) -> int:
        """次の巡回までの秒数（0 は今すぐ、負の値は無期限）"""

    @abstractmethod
    def retry_delay_seconds(self) -> int:
        """巡回成功後の待機秒数（負の値は無期限）"""


class TraversalSchedule(Schedule):
    """
    cron 式と時間幅で巡回ウィンドウを指定するスケジュール

    cron 式を省略した場合は常に巡回可能です。

    使用例:
        schedule = TraversalSchedule(cron="0 1 * * *", window_minutes=240,
                                     retry_delay_seconds=3600)
        schedule.seconds_until_due()  # ウィンドウ内なら 0

    Attributes:
        disabled: 巡回を停止するか
        cron: ウィンドウ開始時刻の crontab 式
        window_minutes: ウィンドウの長さ（分）
    """

    def __init__(
        self,
        disabled: bool = False,
        cron: Optional[str] = None,
        window_minutes: int = 60,
        retry_delay_seconds: int = 3600,
        timezone: Optional[str] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.disabled = disabled
        self.cron = cron
        self.window_minutes = window_minutes
        self._retry_delay_seconds = retry_delay_seconds
        self._trigger = CronTrigger.from_crontab(cron, timezone=timezone) if cron else None
        self._now = now

    @classmethod
    def from_config(cls, config) -> "TraversalSchedule":
        """ScheduleConfig からスケジュールを生成する"""
        retry = config.scan_interval_minutes
        return cls(
            disabled=config.disabled,
            cron=config.cron,
            window_minutes=config.window_minutes,
            retry_delay_seconds=retry * 60 if retry >= 0 else -1,
            timezone=config.timezone,
        )

    def is_disabled(self) -> bool:
        return self.disabled

    def retry_delay_seconds(self) -> int:
        return self._retry_delay_seconds

    def seconds_until_due(self) -> int:
        if self._trigger is None:
            return 0

        now = self._now() if self._now else datetime.now(self._trigger.timezone)
        window_start = now - timedelta(minutes=self.window_minutes)
        next_fire = self._trigger.get_next_fire_time(None, window_start)
        if next_fire is None:
            return -1
        if next_fire <= now:
            return 0
        return max(1, math.ceil((next_fire - now).total_seconds()))

    def __repr__(self) -> str:
        return (
            f"TraversalSchedule(disabled={self.disabled}, cron={self.cron!r}, "
            f"window_minutes={self.window_minutes}, "
            f"retry_delay_seconds={self._retry_delay_seconds})"
        )
