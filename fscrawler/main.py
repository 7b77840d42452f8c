# =============================================================================
# fscrawler - FastAPI メインエントリーポイント
# =============================================================================
# アプリケーションの起動、ルーティング設定、クローラーの
# 初期化を行うメインモジュールです。
#
# 起動方法:
#   uvicorn fscrawler.main:app --host 0.0.0.0 --port 8000
# =============================================================================

import logging
import threading
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from fscrawler.api.routes import router as api_router
from fscrawler.config import Settings, settings
from fscrawler.crawler.document import DocumentBuilder
from fscrawler.crawler.filesystem import PathResolver, RootSpecList, default_registry
from fscrawler.crawler.filters import FilePatternMatcher, TraversalContext
from fscrawler.crawler.mime import MimeTypeDetector
from fscrawler.crawler.parser import ContentExtractor
from fscrawler.crawler.schedule import TraversalSchedule
from fscrawler.crawler.scheduler import CrawlScheduler
from fscrawler.crawler.sink import DocumentSink
from fscrawler.crawler.task import CrawlTask
from fscrawler.indexer.meilisearch_client import MeilisearchSink


# ---------------------------------------------------------------------------
# ログ設定
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=getattr(logging, settings.logging.level.upper(), logging.INFO),
    format=settings.logging.format
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# グローバルインスタンス
# ---------------------------------------------------------------------------
# スケジューラーと登録先はアプリケーション全体で共有
scheduler: Optional[CrawlScheduler] = None
sink: Optional[MeilisearchSink] = None
scheduler_thread: Optional[threading.Thread] = None


def build_scheduler(config: Settings, document_sink: DocumentSink) -> CrawlScheduler:
    """
    設定からクロールスケジューラーを組み立てる

    開始パスごとに CrawlTask を1つ作成します。
    フィルター、MIME タイプ判定器、テキスト抽出器は全タスクで共有します。

    Args:
        config: アプリケーション設定
        document_sink: ドキュメントの登録先

    Returns:
        CrawlScheduler: 未開始のスケジューラー
    """
    registry = default_registry()
    resolver = PathResolver(registry)
    root_specs = RootSpecList.from_paths(config.start_paths, registry)

    detector = MimeTypeDetector()
    pattern_matcher = FilePatternMatcher(config.include_patterns, config.exclude_patterns)
    traversal_context = TraversalContext(
        max_document_size=config.max_file_size_mb * 1024 * 1024,
        mime_type_detector=detector,
        supported_mime_types=config.supported_mime_types,
        excluded_mime_types=config.excluded_mime_types,
    )
    builder = DocumentBuilder(
        detector,
        ContentExtractor(max_content_length=config.max_content_length),
        root_specs=root_specs,
        mark_all_documents_public=config.mark_all_documents_public,
    )

    tasks = [
        CrawlTask(
            root_spec,
            resolver,
            document_sink,
            builder,
            pattern_matcher,
            traversal_context,
            full_traversal_interval=config.full_traversal_interval_days * 24 * 60 * 60,
            if_modified_since_cushion=config.if_modified_since_cushion_minutes * 60,
        )
        for root_spec in root_specs
    ]
    if not tasks:
        logger.warning("開始パスが設定されていません（start_paths）")

    return CrawlScheduler(
        tasks,
        document_sink,
        TraversalSchedule.from_config(config.schedule),
        thread_pool_size=config.thread_pool_size,
    )


# ---------------------------------------------------------------------------
# ライフサイクル管理
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPIアプリケーションのライフサイクルを管理する

    起動時の処理:
    1. Meilisearch 登録先の初期化
    2. インデックスの作成（存在しない場合）
    3. クロールスケジューラーをバックグラウンドスレッドで起動

    終了時の処理:
    1. スケジューラーの停止要求
    2. スケジューラースレッドの終了待ち
    """
    global scheduler, sink, scheduler_thread

    logger.info("=" * 60)
    logger.info("fscrawler を起動しています...")
    logger.info("=" * 60)

    logger.info(f"Meilisearch に接続中: {settings.meilisearch.host}")
    sink = MeilisearchSink(
        host=settings.meilisearch.host,
        api_key=settings.meilisearch.api_key,
        index_name=settings.meilisearch.index_name,
        batch_size=settings.batch_size,
    )
    sink.initialize_index()
    logger.info("Meilisearch インデックスの準備が完了しました")

    scheduler = build_scheduler(settings, sink)
    scheduler_thread = threading.Thread(
        target=scheduler.start, name="crawl-scheduler", daemon=True
    )
    scheduler_thread.start()
    logger.info(f"クローラーを起動しました: {scheduler.schedule!r}")

    logger.info("=" * 60)
    logger.info("fscrawler の起動が完了しました")
    logger.info("=" * 60)

    yield

    logger.info("fscrawler を終了しています...")
    scheduler.shutdown()
    scheduler_thread.join(timeout=60)
    if scheduler_thread.is_alive():
        logger.warning("スケジューラースレッドが時間内に終了しませんでした")
    logger.info("fscrawler を終了しました")


# ---------------------------------------------------------------------------
# FastAPIアプリケーションの作成
# ---------------------------------------------------------------------------
app = FastAPI(
    title="fscrawler",
    description="ローカルディスク・ネットワークドライブのファイルクローラー",
    version="1.0.0",
    lifespan=lifespan
)

# ---------------------------------------------------------------------------
# ルーターの登録
# ---------------------------------------------------------------------------
app.include_router(api_router, prefix="/api")
