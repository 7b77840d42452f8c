# =============================================================================
# fscrawler - API ルート
# =============================================================================
# クローラーを制御する REST API エンドポイントを定義します。
#
# エンドポイント:
#   GET  /api/crawl/status    - クロール状態取得
#   PUT  /api/crawl/schedule  - 巡回スケジュール変更
#   POST /api/crawl/stop      - クローラー停止
#   GET  /api/stats           - 統計情報取得
#   GET  /api/health          - ヘルスチェック
# =============================================================================

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from fscrawler.config import ScheduleConfig
from fscrawler.crawler.schedule import TraversalSchedule

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# ルーターの作成
# ---------------------------------------------------------------------------
router = APIRouter(tags=["API"])


# ---------------------------------------------------------------------------
# レスポンスモデル
# ---------------------------------------------------------------------------
class RootStatus(BaseModel):
    """開始パスごとの巡回状態"""
    path: str
    passes: int
    documents_fed: int
    last_pass_full: Optional[bool]
    last_full_traversal: Optional[str]
    last_traversal: Optional[str]


class CrawlStatusResponse(BaseModel):
    """
    クロール状態のレスポンスモデル

    Attributes:
        state: スケジューラーの状態（idle, sleeping, running, shutting_down, stopped）
        batches_started: 開始した巡回の回数
        batches_failed: 失敗を含んだ巡回の回数
        last_batch_failed: 直近の巡回が失敗を含んだか
        last_run_started: 直近の巡回の開始日時
        last_run_finished: 直近の巡回の終了日時
        schedule: 現在のスケジュール
        roots: 開始パスごとの状態
    """
    state: str
    batches_started: int
    batches_failed: int
    last_batch_failed: Optional[bool]
    last_run_started: Optional[str]
    last_run_finished: Optional[str]
    schedule: str
    roots: List[RootStatus]


class StatsResponse(BaseModel):
    """
    統計情報のレスポンスモデル

    Attributes:
        total_documents: インデックスのドキュメント総数
        is_indexing: インデックス処理中かどうか
        documents_sent: このプロセスが送信したドキュメント数
        pending: 未送信のドキュメント数
    """
    total_documents: int
    is_indexing: bool
    documents_sent: int
    pending: int


class MessageResponse(BaseModel):
    """汎用メッセージレスポンスモデル"""
    success: bool
    message: str


# ---------------------------------------------------------------------------
# クロール制御 API
# ---------------------------------------------------------------------------
@router.get("/crawl/status", response_model=CrawlStatusResponse)
async def get_crawl_status():
    """
    クロールの状態を取得する

    スケジューラーの状態、巡回の回数、開始パスごとの
    最終巡回日時などの情報を返します。
    """
    from fscrawler.main import scheduler

    if not scheduler:
        raise HTTPException(status_code=503, detail="クローラーサービスが利用できません")

    status = scheduler.get_status()
    return CrawlStatusResponse(schedule=repr(scheduler.schedule), **status)


@router.put("/crawl/schedule", response_model=MessageResponse)
async def update_schedule(request: ScheduleConfig):
    """
    巡回スケジュールを変更する

    待機中のスケジューラーは即座に新しいスケジュールで再計算します。
    巡回中の場合は実行中の巡回を中断して再スケジュールします。
    """
    from fscrawler.main import scheduler

    if not scheduler:
        raise HTTPException(status_code=503, detail="クローラーサービスが利用できません")

    try:
        schedule = TraversalSchedule.from_config(request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"スケジュールが不正です: {e}")

    scheduler.set_schedule(schedule)
    return MessageResponse(success=True, message="スケジュールを変更しました")


@router.post("/crawl/stop", response_model=MessageResponse)
async def stop_crawl():
    """
    クローラーを停止する

    実行中の巡回を中断し、スケジューラーを終了します。
    再開するにはアプリケーションの再起動が必要です。
    """
    from fscrawler.main import scheduler

    if not scheduler:
        raise HTTPException(status_code=503, detail="クローラーサービスが利用できません")

    scheduler.shutdown()
    return MessageResponse(success=True, message="クローラーを停止しました")


# ---------------------------------------------------------------------------
# 統計情報 API
# ---------------------------------------------------------------------------
@router.get("/stats", response_model=StatsResponse)
async def get_stats():
    """インデックスの統計情報を取得する"""
    from fscrawler.main import sink

    if not sink:
        raise HTTPException(status_code=503, detail="検索サービスが利用できません")

    stats = sink.get_stats()
    return StatsResponse(
        total_documents=stats.get("numberOfDocuments", 0),
        is_indexing=stats.get("isIndexing", False),
        documents_sent=stats.get("documentsSent", 0),
        pending=stats.get("pending", 0),
    )


# ---------------------------------------------------------------------------
# ヘルスチェック API
# ---------------------------------------------------------------------------
@router.get("/health")
async def health_check():
    """
    サービスの健全性をチェックする

    Meilisearch サーバーとの接続状態とスケジューラーの状態を返します。
    """
    from fscrawler.main import scheduler, sink

    meili_healthy = sink.health_check() if sink else False

    return {
        "status": "healthy" if meili_healthy else "degraded",
        "meilisearch": "connected" if meili_healthy else "disconnected",
        "crawler": scheduler.state.value if scheduler else "unavailable",
    }
