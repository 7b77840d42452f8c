# =============================================================================
# fscrawler - クロールタスク
# =============================================================================
# 1つの開始パス（ルート）を1回巡回し、見つかったファイルをドキュメントとして
# 登録先に渡します。前回の巡回日時を記録し、フル巡回と差分巡回を切り替えます。
#
# 巡回の種類:
#   - フル巡回: 更新日時に関係なく全ての対象ファイルを登録
#   - 差分巡回: 前回の巡回開始日時（- 猶予時間）以降に更新されたファイルのみ登録
# =============================================================================

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from fscrawler.crawler.document import DocumentBuilder
from fscrawler.crawler.errors import (
    DocumentAcceptorError,
    DocumentRejectedError,
    RepositoryDocumentError,
)
from fscrawler.crawler.filesystem import PathResolver, RootSpec
from fscrawler.crawler.filters import FilePatternMatcher, TraversalContext
from fscrawler.crawler.sink import DocumentSink
from fscrawler.crawler.walker import TreeWalker

logger = logging.getLogger(__name__)


@dataclass
class CrawlRecord:
    """
    ルートごとの巡回記録（プロセス終了時に破棄される）

    Attributes:
        last_full_traversal: 最後に成功したフル巡回の開始日時（エポック秒）
        last_traversal: 最後に成功した巡回の開始日時（エポック秒）
    """
    last_full_traversal: float = 0.0
    last_traversal: float = 0.0


class CrawlTask:
    """
    1つのルートを巡回するタスク

    スケジューラーのワーカースレッドで run() が実行されます。
    巡回記録はこのタスクだけが更新します。

    Attributes:
        root_spec: 巡回する開始パス
        full_traversal_interval: フル巡回を強制する間隔（秒）
                                 負の値は常に差分巡回、0 は常にフル巡回
        if_modified_since_cushion: 時刻のずれを吸収する猶予時間（秒）
        record: 巡回記録
    """

    def __init__(
        self,
        root_spec: RootSpec,
        resolver: PathResolver,
        sink: DocumentSink,
        builder: DocumentBuilder,
        pattern_matcher: FilePatternMatcher,
        traversal_context: Optional[TraversalContext] = None,
        full_traversal_interval: float = 24 * 60 * 60,
        if_modified_since_cushion: float = 60 * 60,
        clock: Callable[[], float] = time.time,
    ):
        self.root_spec = root_spec
        self.resolver = resolver
        self.sink = sink
        self.builder = builder
        self.pattern_matcher = pattern_matcher
        self.traversal_context = traversal_context
        self.full_traversal_interval = full_traversal_interval
        self.if_modified_since_cushion = if_modified_since_cushion
        self.clock = clock

        self.record = CrawlRecord()
        self._passes = 0
        self._documents_fed = 0
        self._last_pass_full: Optional[bool] = None

    def get_if_modified_since(self, start_time: float) -> float:
        """
        巡回開始日時から更新日時の閾値を計算する

        フル巡回の間隔が経過していればフル巡回とし（閾値 0）、
        それ以外は前回の巡回開始日時から猶予時間を引いた値を返します。
        """
        interval = self.full_traversal_interval
        if interval >= 0 and (start_time - self.record.last_full_traversal) >= interval:
            self.record.last_full_traversal = 0.0
            return 0.0
        return max(0.0, self.record.last_traversal - self.if_modified_since_cushion)

    def finished_traversal(self, start_time: float) -> None:
        """成功した巡回の開始日時を記録する"""
        if self.record.last_full_traversal == 0.0:
            self.record.last_full_traversal = start_time
        self.record.last_traversal = start_time

    def run(self, cancel_event: Optional[threading.Event] = None) -> None:
        """
        ルートを1回巡回する

        Args:
            cancel_event: セットされると巡回を中断する

        Raises:
            DocumentAcceptorError: 登録先の致命的なエラー
            RepositoryError: リポジトリ全体の障害
        """
        path = self.root_spec.path
        try:
            self._traverse(cancel_event)
        except DocumentAcceptorError as e:
            logger.warning(f"ドキュメント登録エラー: {path} - {e}", exc_info=True)
            raise
        except Exception as e:
            logger.warning(f"巡回に失敗しました: {path} - {e}", exc_info=True)
            raise

    __call__ = run

    def _traverse(self, cancel_event: Optional[threading.Event]) -> None:
        path = self.root_spec.path
        logger.info(f"巡回開始: {path}")

        if self.root_spec.filesystem_type is None:
            logger.warning(f"ファイルシステム種別が不明なためスキップします: {path}")
            return

        root = self.resolver.resolve(path, self.root_spec.filesystem_type)
        if root is None:
            logger.warning(f"開始パスを開けません: {path}")
            return

        start_time = self.clock()
        if_modified_since = self.get_if_modified_since(start_time)
        is_full = if_modified_since == 0.0
        documents_fed = 0
        try:
            walker = TreeWalker(
                root,
                self.pattern_matcher,
                self.traversal_context,
                if_modified_since,
            )
            while not self._cancelled(cancel_event) and walker.has_more():
                file = walker.take_next()
                try:
                    self.sink.accept(self.builder.build(file))
                    documents_fed += 1
                except (RepositoryDocumentError, DocumentRejectedError) as e:
                    logger.warning(f"ドキュメントの登録をスキップ: {file.path} - {e}")

            if self._cancelled(cancel_event):
                logger.info(f"巡回を中断しました: {path}")
                return

            # 成功した場合のみ巡回記録を更新する
            self.finished_traversal(start_time)
            self._passes += 1
            self._last_pass_full = is_full
            logger.info(
                f"巡回完了: {path} ({'フル' if is_full else '差分'}, "
                f"{documents_fed} 件, 統計: {walker.get_stats()})"
            )
        finally:
            self._documents_fed = documents_fed
            self.sink.flush()

    @staticmethod
    def _cancelled(cancel_event: Optional[threading.Event]) -> bool:
        return cancel_event is not None and cancel_event.is_set()

    def status(self) -> Dict[str, Any]:
        """タスクの状態を返す"""

        def iso(ts: float) -> Optional[str]:
            return datetime.fromtimestamp(ts).isoformat() if ts else None

        return {
            "path": self.root_spec.path,
            "passes": self._passes,
            "documents_fed": self._documents_fed,
            "last_pass_full": self._last_pass_full,
            "last_full_traversal": iso(self.record.last_full_traversal),
            "last_traversal": iso(self.record.last_traversal),
        }
