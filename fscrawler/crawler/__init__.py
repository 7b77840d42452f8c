# =============================================================================
# fscrawler - クローラーパッケージ
# =============================================================================
# ファイルシステムを巡回し、ドキュメントを登録先に渡すモジュール群
#
# モジュール構成:
#   - filesystem.py: ファイルハンドルとファイルシステム種別、開始パスの解決
#   - filters.py: インクルード/除外パターン、サイズ・MIME タイプの判定
#   - mime.py: MIME タイプの判定
#   - walker.py: ディレクトリツリーの深さ優先巡回
#   - parser.py: ドキュメントからのテキスト抽出
#   - document.py: 登録用ドキュメントの生成
#   - sink.py: ドキュメント登録先のインターフェース
#   - task.py: 開始パスごとの巡回タスク（フル/差分の切り替え）
#   - schedule.py: 巡回スケジュール
#   - scheduler.py: 巡回タスクの定期実行スケジューラー
#   - errors.py: 例外クラス
# =============================================================================

from fscrawler.crawler.filesystem import (
    LocalFile,
    LocalFileSystemType,
    PathResolver,
    ReadonlyFile,
    RootSpec,
    RootSpecList,
    default_registry,
)
from fscrawler.crawler.filters import FilePatternMatcher, TraversalContext
from fscrawler.crawler.walker import TreeWalker
from fscrawler.crawler.document import DocumentBuilder
from fscrawler.crawler.sink import DocumentSink
from fscrawler.crawler.task import CrawlTask
from fscrawler.crawler.schedule import Schedule, TraversalSchedule
from fscrawler.crawler.scheduler import CrawlScheduler, SchedulerState

__all__ = [
    "LocalFile",
    "LocalFileSystemType",
    "PathResolver",
    "ReadonlyFile",
    "RootSpec",
    "RootSpecList",
    "default_registry",
    "FilePatternMatcher",
    "TraversalContext",
    "TreeWalker",
    "DocumentBuilder",
    "DocumentSink",
    "CrawlTask",
    "Schedule",
    "TraversalSchedule",
    "CrawlScheduler",
    "SchedulerState",
]
