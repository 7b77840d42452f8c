# =============================================================================
# fscrawler - クロールスケジューラー
# =============================================================================
# 全ての開始パスの巡回をスケジュールに従って定期実行するスケジューラーです。
#
# 主な機能:
#   - ワーカースレッドプールによるルートごとの並行巡回
#   - スケジュールに従った待機（スケジュール変更・停止要求で即座に起床）
#   - 巡回失敗時のエラー待機（15分）による再試行ループの抑制
#   - スケジュール変更時のワーカープールの再作成
#
# 1回のティック:
#   スケジュール待機 → 全ルートの巡回（並行） → 完了待ち → 再実行待機
# =============================================================================

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Set

from fscrawler.crawler.errors import DocumentAcceptorError
from fscrawler.crawler.schedule import Schedule
from fscrawler.crawler.sink import DocumentSink
from fscrawler.crawler.task import CrawlTask

logger = logging.getLogger(__name__)

# 巡回に失敗した後の待機時間（秒）
ERROR_DELAY_SECONDS = 15 * 60


class SchedulerState(str, Enum):
    """スケジューラーの状態"""
    IDLE = "idle"
    SLEEPING = "sleeping"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class WakeReason(Enum):
    """待機から起床した理由"""
    TIMEOUT = "timeout"
    SCHEDULE_CHANGED = "schedule_changed"
    SHUTDOWN = "shutdown"


class _Sleep(Enum):
    SCHEDULE_DELAY = "schedule_delay"  # 次のスケジュールまで待機
    RETRY_DELAY = "retry_delay"        # 巡回成功後の待機
    ERROR_DELAY = "error_delay"        # 巡回失敗後の待機


class _BatchOutcome(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    RESCHEDULED = "rescheduled"
    SHUTDOWN = "shutdown"


class _WorkerPool:
    """
    ワーカースレッドプールと中断イベントの組

    中断イベントは実行中のタスクに協調的な中断を要求します。
    """

    def __init__(self, size: int):
        self.size = size
        self.executor = ThreadPoolExecutor(max_workers=size, thread_name_prefix="crawl-worker")
        self.cancel_event = threading.Event()

    def submit_all(self, tasks: Sequence[CrawlTask]) -> List[Future]:
        return [self.executor.submit(task.run, self.cancel_event) for task in tasks]

    def cancel(self, wait: bool) -> None:
        """新規タスクの受付を停止し、実行中のタスクに中断を要求する"""
        self.cancel_event.set()
        self.executor.shutdown(wait=wait, cancel_futures=True)


class CrawlScheduler:
    """
    クロールタスクを定期実行するスケジューラークラス

    start() を呼び出したスレッドが制御ループを実行し、
    shutdown() が呼ばれるまで戻りません。
    shutdown() と set_schedule() は任意のスレッドから呼び出せます。

    使用例:
        scheduler = CrawlScheduler(tasks, sink, schedule, thread_pool_size=4)
        thread = threading.Thread(target=scheduler.start)
        thread.start()
        scheduler.set_schedule(new_schedule)  # 待機中なら即座に反映
        scheduler.shutdown()
        thread.join()

    Attributes:
        tasks: ルートごとのクロールタスク
        sink: ドキュメント登録先
        thread_pool_size: 同時に巡回するルート数の上限
        error_delay_seconds: 巡回失敗後の待機時間（秒）
    """

    def __init__(
        self,
        tasks: Sequence[CrawlTask],
        sink: DocumentSink,
        schedule: Schedule,
        thread_pool_size: int = 10,
        error_delay_seconds: float = ERROR_DELAY_SECONDS,
    ):
        if thread_pool_size < 1:
            raise ValueError(f"thread_pool_size は 1 以上を指定してください: {thread_pool_size}")
        self.tasks = list(tasks)
        self.sink = sink
        self.thread_pool_size = thread_pool_size
        self.error_delay_seconds = error_delay_seconds

        # スケジュール、プール、状態はこの条件変数のロック下でのみ参照・更新する
        self._cond = threading.Condition()
        self._schedule = schedule
        self._pool: Optional[_WorkerPool] = None
        self._state = SchedulerState.IDLE
        self._shutdown_requested = False
        self._schedule_changed = False

        # 状態管理
        self._batches_started = 0
        self._batches_failed = 0
        self._last_batch_failed: Optional[bool] = None
        self._last_run_started: Optional[datetime] = None
        self._last_run_finished: Optional[datetime] = None

    # -----------------------------------------------------------------------
    # 公開インターフェース
    # -----------------------------------------------------------------------
    @property
    def state(self) -> SchedulerState:
        with self._cond:
            return self._state

    @property
    def schedule(self) -> Schedule:
        with self._cond:
            return self._schedule

    def start(self) -> None:
        """
        スケジューラーを開始する

        ワーカープールを作成し、制御ループを実行します。
        shutdown() が呼ばれるまで呼び出し元のスレッドをブロックします。
        """
        with self._cond:
            if self._state is not SchedulerState.IDLE:
                logger.warning(f"スケジューラーは開始できない状態です: {self._state.value}")
                return
            self._pool = _WorkerPool(self.thread_pool_size)
            self._state = SchedulerState.SLEEPING

        logger.info(
            f"スケジューラーを開始しました（ルート数: {len(self.tasks)}, "
            f"スレッド数: {self.thread_pool_size}）"
        )
        try:
            self._run_loop()
        except Exception as e:
            logger.warning(f"スケジューラーの実行中にエラーが発生しました: {e}", exc_info=True)
        finally:
            self._halt()

    def shutdown(self) -> None:
        """
        スケジューラーの停止を要求する

        何度呼び出しても安全です。ワーカープールを即座に中断し、
        待機中の制御ループを起床させます。
        """
        with self._cond:
            if self._shutdown_requested:
                return
            self._shutdown_requested = True
            never_started = self._state is SchedulerState.IDLE
            self._state = (
                SchedulerState.STOPPED if never_started else SchedulerState.SHUTTING_DOWN
            )
            pool = self._pool
            self._cond.notify_all()

        logger.info("スケジューラーの停止を要求しました")
        if pool is not None:
            pool.cancel(wait=False)
        if never_started:
            self._cancel_sink()

    def set_schedule(self, schedule: Schedule) -> None:
        """スケジュールを置き換え、待機中の制御ループを起床させる"""
        with self._cond:
            self._schedule = schedule
            self._schedule_changed = True
            self._cond.notify_all()
        logger.info(f"スケジュールを変更しました: {schedule!r}")

    def get_status(self) -> Dict[str, Any]:
        """
        スケジューラーの現在の状態を取得する

        Returns:
            dict: 状態情報を含む辞書
                - state: スケジューラーの状態
                - batches_started: 開始したティック数
                - batches_failed: 失敗を含んだティック数
                - last_batch_failed: 直近のティックが失敗を含んだか
                - last_run_started / last_run_finished: 直近のティックの開始・終了日時
                - roots: ルートごとのタスク状態
        """
        with self._cond:
            return {
                "state": self._state.value,
                "batches_started": self._batches_started,
                "batches_failed": self._batches_failed,
                "last_batch_failed": self._last_batch_failed,
                "last_run_started": _iso(self._last_run_started),
                "last_run_finished": _iso(self._last_run_finished),
                "thread_pool_size": self.thread_pool_size,
                "roots": [task.status() for task in self.tasks],
            }

    # -----------------------------------------------------------------------
    # 制御ループ
    # -----------------------------------------------------------------------
    def _run_loop(self) -> None:
        while not self._is_shutdown():
            reason = self._sleep(_Sleep.SCHEDULE_DELAY)
            if reason is WakeReason.SHUTDOWN:
                break
            if reason is WakeReason.SCHEDULE_CHANGED:
                self._restart_pool()
                continue

            outcome = self._run_batch()
            if outcome is _BatchOutcome.SHUTDOWN:
                break
            if outcome is _BatchOutcome.RESCHEDULED:
                self._restart_pool()
                continue

            if outcome is _BatchOutcome.FAILED:
                self._sleep(_Sleep.ERROR_DELAY)
            else:
                self._sleep(_Sleep.RETRY_DELAY)

    def _run_batch(self) -> _BatchOutcome:
        """全ルートのタスクを投入し、全ての完了を待つ"""
        with self._cond:
            if self._shutdown_requested:
                return _BatchOutcome.SHUTDOWN
            self._state = SchedulerState.RUNNING
            self._batches_started += 1
            self._last_run_started = datetime.now()
            futures = self._pool.submit_all(self.tasks)

        logger.info(f"クロールを開始します（{len(futures)} ルート）")
        for future in futures:
            future.add_done_callback(self._on_task_done)

        with self._cond:
            while True:
                if self._shutdown_requested:
                    return _BatchOutcome.SHUTDOWN
                if self._schedule_changed:
                    self._schedule_changed = False
                    logger.info("スケジュール変更のため実行中のクロールを中断します")
                    return _BatchOutcome.RESCHEDULED
                if all(future.done() for future in futures):
                    break
                self._cond.wait()

        # 各タスクの例外はワーカースレッドでログ出力済み
        failed = any(f.cancelled() or f.exception() is not None for f in futures)
        with self._cond:
            self._last_run_finished = datetime.now()
            self._last_batch_failed = failed
            if failed:
                self._batches_failed += 1

        if failed:
            logger.warning("一部のルートの巡回に失敗しました。エラー待機に入ります")
            return _BatchOutcome.FAILED
        logger.info("全ルートの巡回が完了しました")
        return _BatchOutcome.SUCCEEDED

    def _on_task_done(self, future: Future) -> None:
        with self._cond:
            self._cond.notify_all()

    def _sleep(self, delay: _Sleep) -> WakeReason:
        """
        指定された種類の待機を行う

        待機はスケジュール変更と停止要求で中断されます。
        スケジュールが無効の場合は無期限に待機します。

        Returns:
            WakeReason: 起床した理由
        """
        with self._cond:
            if self._shutdown_requested:
                return WakeReason.SHUTDOWN

            seconds = self._delay_seconds(delay)
            if seconds == 0:
                return WakeReason.TIMEOUT

            self._state = SchedulerState.SLEEPING
            if seconds is None:
                logger.debug(f"無期限に待機します（{delay.value}）")
                deadline = None
            else:
                logger.debug(f"{seconds} 秒待機します（{delay.value}）")
                deadline = time.monotonic() + seconds

            while True:
                if self._shutdown_requested:
                    return WakeReason.SHUTDOWN
                if self._schedule_changed:
                    self._schedule_changed = False
                    return WakeReason.SCHEDULE_CHANGED
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return WakeReason.TIMEOUT
                self._cond.wait(remaining)

    def _delay_seconds(self, delay: _Sleep) -> Optional[float]:
        """待機秒数を返す（None は無期限）。ロック下で呼び出すこと"""
        schedule = self._schedule
        if schedule.is_disabled():
            return None
        if delay is _Sleep.ERROR_DELAY:
            return self.error_delay_seconds
        if delay is _Sleep.RETRY_DELAY:
            seconds = schedule.retry_delay_seconds()
        else:
            seconds = schedule.seconds_until_due()
        return None if seconds < 0 else seconds

    def _restart_pool(self) -> None:
        """
        ワーカープールを再作成する

        古いプールの中断と終了待ちを同期的に行ってから、
        新しいプールでタスクの受付を開始します。
        """
        with self._cond:
            old_pool = self._pool
        logger.info("ワーカープールを再作成します")
        if old_pool is not None:
            old_pool.cancel(wait=True)
        with self._cond:
            if not self._shutdown_requested:
                self._pool = _WorkerPool(self.thread_pool_size)

    def _is_shutdown(self) -> bool:
        with self._cond:
            return self._shutdown_requested

    def _halt(self) -> None:
        """ワーカープールを停止し、登録先にクロールの中止を通知する"""
        logger.info("スケジューラーを停止しています...")
        with self._cond:
            self._shutdown_requested = True
            self._state = SchedulerState.SHUTTING_DOWN
            pool = self._pool
        if pool is not None:
            pool.cancel(wait=True)
        self._cancel_sink()
        with self._cond:
            self._state = SchedulerState.STOPPED
        logger.info("スケジューラーを停止しました")

    def _cancel_sink(self) -> None:
        try:
            self.sink.cancel()
        except DocumentAcceptorError as e:
            logger.warning(f"登録先の停止中にエラーが発生しました: {e}")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
