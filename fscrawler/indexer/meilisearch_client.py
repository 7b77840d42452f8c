# =============================================================================
# fscrawler - Meilisearch 登録先
# =============================================================================
# 巡回で生成されたドキュメントを Meilisearch インデックスに登録する
# DocumentSink の実装を提供します。
#
# 主な機能:
#   - インデックスの作成・設定
#   - ドキュメントのバッファリングとバッチ登録
#   - 統計情報の取得・ヘルスチェック
# =============================================================================

import logging
import threading
from typing import Any, Dict, List, Optional

import meilisearch
from meilisearch.errors import MeilisearchApiError, MeilisearchError

from fscrawler.crawler.errors import DocumentAcceptorError, DocumentRejectedError
from fscrawler.crawler.sink import DocumentSink

logger = logging.getLogger(__name__)


def _get_task_uid(task_info: Any) -> Optional[int]:
    """
    タスク情報から task_uid を取得するヘルパー関数

    Meilisearch ライブラリのバージョンによって、タスク情報が
    辞書または TaskInfo オブジェクトで返されるため、両方に対応する。
    """
    if hasattr(task_info, "task_uid"):
        return task_info.task_uid
    if isinstance(task_info, dict):
        return task_info.get("taskUid") or task_info.get("uid")
    return None


def _get_task_status(result: Any) -> str:
    if hasattr(result, "status"):
        return result.status
    if isinstance(result, dict):
        return result.get("status", "unknown")
    return "unknown"


def _get_task_error(result: Any) -> Any:
    if hasattr(result, "error"):
        return result.error
    if isinstance(result, dict):
        return result.get("error", {})
    return None


class MeilisearchSink(DocumentSink):
    """
    Meilisearch インデックスにドキュメントを登録する登録先クラス

    accept() で受け取ったドキュメントをバッファし、batch_size 件ごと、
    または flush() の呼び出し時にまとめて送信します。
    複数のワーカースレッドから同時に呼び出されても安全です。

    使用例:
        sink = MeilisearchSink(
            host="http://localhost:7700",
            index_name="files"
        )
        sink.initialize_index()
        sink.accept({"id": "...", "path": "...", ...})
        sink.flush()

    Attributes:
        host: Meilisearch サーバーの URL
        api_key: 認証用 API キー（オプション）
        index_name: 使用するインデックス名
        batch_size: 1回のAPIコールで送信するドキュメント数
    """

    def __init__(
        self,
        host: str = "http://localhost:7700",
        api_key: Optional[str] = None,
        index_name: str = "files",
        batch_size: int = 1000,
        timeout_ms: int = 120000,
    ):
        self.host = host
        self.api_key = api_key
        self.index_name = index_name
        self.batch_size = batch_size
        self.timeout_ms = timeout_ms

        # Meilisearch クライアントの初期化
        self.client = meilisearch.Client(host, api_key)
        self.index = self.client.index(index_name)

        self._lock = threading.Lock()
        self._buffer: List[Dict[str, Any]] = []
        self._cancelled = False
        self._documents_sent = 0

    # -----------------------------------------------------------------------
    # インデックスの準備
    # -----------------------------------------------------------------------
    def initialize_index(self) -> None:
        """
        インデックスを初期化する

        インデックスが存在しない場合は作成し、
        検索設定（検索可能属性、フィルター可能属性等）を適用します。

        この関数はアプリケーション起動時に一度だけ呼び出されます。
        """
        try:
            self.client.get_index(self.index_name)
            logger.info(f"既存のインデックスを使用: {self.index_name}")
        except MeilisearchApiError as e:
            if "index_not_found" not in str(e):
                logger.error(f"インデックス初期化エラー: {e}")
                raise
            logger.info(f"インデックスを作成: {self.index_name}")
            task = self.client.create_index(self.index_name, {"primaryKey": "id"})
            self._wait_for_task(task)

        self._configure_index_settings()

    def _configure_index_settings(self) -> None:
        """
        インデックスの検索設定を適用する

        - 検索可能属性: ファイル名・本文・パス
        - フィルター可能属性: 拡張子、MIME タイプ、開始パス、公開フラグ等
        - ソート可能属性: 更新日時、サイズ、ファイル名
        - ローカライズ属性: 日本語トークナイザー（Meilisearch v1.10 以降）
        """
        searchable_attributes = ["filename", "content", "path"]
        filterable_attributes = [
            "extension",
            "mime_type",
            "start_path",
            "is_public",
            "modified_at",
            "size",
        ]
        sortable_attributes = ["modified_at", "size", "filename"]
        ranking_rules = [
            "words",
            "typo",
            "proximity",
            "attribute",
            "sort",
            "exactness",
            "modified_at:desc",  # 新しいファイルを優先
        ]
        localized_attributes = [
            {"locales": ["jpn"], "attributePatterns": ["filename", "content", "path"]}
        ]

        try:
            tasks = [
                self.index.update_searchable_attributes(searchable_attributes),
                self.index.update_filterable_attributes(filterable_attributes),
                self.index.update_sortable_attributes(sortable_attributes),
                self.index.update_ranking_rules(ranking_rules),
            ]
            try:
                tasks.append(self.index.update_localized_attributes(localized_attributes))
            except MeilisearchApiError as e:
                # サーバーが localizedAttributes をサポートしていない場合
                logger.warning(f"日本語トークナイザー設定に失敗: {e}")

            for task in tasks:
                self._wait_for_task(task)
            logger.info("インデックス設定を適用しました")
        except MeilisearchError as e:
            logger.warning(f"インデックス設定の適用に失敗: {e}")

    # -----------------------------------------------------------------------
    # DocumentSink の実装
    # -----------------------------------------------------------------------
    def accept(self, document: Dict[str, Any]) -> None:
        """
        ドキュメントをバッファに追加する

        Raises:
            DocumentRejectedError: ドキュメントに id がない場合
            DocumentAcceptorError: 送信に失敗した場合、または中止後の呼び出し
        """
        if not document.get("id"):
            raise DocumentRejectedError(f"id のないドキュメントは登録できません: {document.get('path')}")

        with self._lock:
            if self._cancelled:
                raise DocumentAcceptorError("登録先は停止済みです")
            self._buffer.append(document)
            if len(self._buffer) < self.batch_size:
                return
            batch = self._take_buffer()
        self._send(batch)

    def flush(self) -> None:
        """バッファされたドキュメントを送信する"""
        with self._lock:
            if self._cancelled:
                return
            batch = self._take_buffer()
        if batch:
            self._send(batch)

    def cancel(self) -> None:
        """未送信のドキュメントを破棄し、以降の登録を拒否する"""
        with self._lock:
            discarded = len(self._buffer)
            self._buffer = []
            self._cancelled = True
        logger.info(f"登録を停止しました（未送信 {discarded} 件を破棄）")

    def _take_buffer(self) -> List[Dict[str, Any]]:
        batch, self._buffer = self._buffer, []
        return batch

    def _send(self, batch: List[Dict[str, Any]]) -> None:
        """
        バッチを送信し、タスクの完了を待つ

        Raises:
            DocumentAcceptorError: 通信エラーまたはタスクが失敗した場合
        """
        logger.info(f"Meilisearchにバッチ送信中: {len(batch)} 件...")
        try:
            task = self.index.add_documents(batch)
            result = self._wait_for_task(task)
        except MeilisearchError as e:
            raise DocumentAcceptorError(f"Meilisearch への送信に失敗しました: {e}") from e

        status = _get_task_status(result)
        if status == "failed":
            raise DocumentAcceptorError(
                f"バッチ登録に失敗しました: taskUid={_get_task_uid(task)}, "
                f"error={_get_task_error(result)}"
            )
        with self._lock:
            self._documents_sent += len(batch)
        logger.info(f"バッチ追加成功: {len(batch)} 件 (taskUid={_get_task_uid(task)})")

    def _wait_for_task(self, task_info: Any) -> Any:
        """
        Meilisearch タスクの完了を待機する

        Raises:
            MeilisearchError: 待機中に通信エラーやタイムアウトが発生した場合
        """
        task_uid = _get_task_uid(task_info)
        if task_uid is None:
            logger.warning(f"タスク情報にtaskUidがありません: {task_info}")
            return task_info

        logger.debug(f"タスク待機中: taskUid={task_uid}")
        result = self.client.wait_for_task(task_uid, self.timeout_ms)
        status = _get_task_status(result)
        if status == "failed":
            logger.error(f"タスク失敗: taskUid={task_uid}, error={_get_task_error(result)}")
        elif status != "succeeded":
            logger.warning(f"タスク状態: taskUid={task_uid}, status={status}")
        return result

    # -----------------------------------------------------------------------
    # 状態確認
    # -----------------------------------------------------------------------
    def get_stats(self) -> Dict[str, Any]:
        """
        インデックスの統計情報を取得する

        Returns:
            dict: 統計情報を含む辞書
                - numberOfDocuments: ドキュメント総数
                - isIndexing: インデックス処理中かどうか
                - documentsSent: このプロセスが送信したドキュメント数
                - pending: 未送信のドキュメント数
        """
        with self._lock:
            local = {"documentsSent": self._documents_sent, "pending": len(self._buffer)}

        try:
            stats = self.index.get_stats()
        except MeilisearchError as e:
            logger.error(f"統計情報取得エラー: {e}")
            return {"numberOfDocuments": 0, "isIndexing": False, "error": str(e), **local}

        # バージョンによって辞書または IndexStats オブジェクトで返される
        if isinstance(stats, dict):
            remote = {
                "numberOfDocuments": stats.get("numberOfDocuments", 0),
                "isIndexing": stats.get("isIndexing", False),
            }
        else:
            remote = {
                "numberOfDocuments": getattr(stats, "number_of_documents", 0),
                "isIndexing": getattr(stats, "is_indexing", False),
            }
        return {**remote, **local}

    def health_check(self) -> bool:
        """Meilisearch サーバーが利用可能なら True を返す"""
        try:
            health = self.client.health()
            return health.get("status") == "available"
        except MeilisearchError as e:
            logger.error(f"ヘルスチェック失敗: {e}")
            return False
