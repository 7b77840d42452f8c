# =============================================================================
# fscrawler - 設定管理モジュール
# =============================================================================
# config.yaml と環境変数から設定を読み込み、アプリケーション全体で
# 使用可能な設定オブジェクトを提供します。
#
# 使用方法:
#   from fscrawler.config import settings
#   print(settings.start_paths)
#
# 設定ファイルのパスは環境変数 FSCRAWLER_CONFIG で変更できます。
# =============================================================================

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LOG_FORMAT = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"


# ---------------------------------------------------------------------------
# スケジュール設定のデータクラス
# ---------------------------------------------------------------------------
class ScheduleConfig(BaseModel):
    """
    巡回スケジュール設定を保持するクラス

    Attributes:
        disabled: True の場合は巡回しない
        cron: 巡回ウィンドウの開始時刻（crontab 形式、省略時は常に巡回可能）
        window_minutes: 巡回ウィンドウの長さ（分）
        scan_interval_minutes: 巡回完了後、次の巡回までの待機時間（分、負の値は無期限）
        timezone: cron 式のタイムゾーン（省略時はローカル）
    """
    disabled: bool = False
    cron: Optional[str] = None
    window_minutes: int = 60
    scan_interval_minutes: int = 60
    timezone: Optional[str] = None


# ---------------------------------------------------------------------------
# Meilisearch設定のデータクラス
# ---------------------------------------------------------------------------
class MeilisearchConfig(BaseModel):
    """
    Meilisearch接続設定を保持するクラス

    Attributes:
        host: MeilisearchサーバーのURL
        index_name: 使用するインデックス名
        api_key: 認証用APIキー（オプション）
    """
    host: str = "http://meilisearch:7700"
    index_name: str = "files"
    api_key: Optional[str] = None


# ---------------------------------------------------------------------------
# ログ設定のデータクラス
# ---------------------------------------------------------------------------
class LoggingConfig(BaseModel):
    """ログ出力設定（スレッド名でルートごとのログを区別できる）"""
    level: str = "INFO"
    format: str = DEFAULT_LOG_FORMAT


# ---------------------------------------------------------------------------
# メイン設定クラス
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """
    アプリケーション全体の設定を管理するクラス

    設定の優先順位:
    1. config.yaml
    2. 環境変数（FSCRAWLER_ プレフィックス）
    3. デフォルト値

    Meilisearch のホストと APIキーのみ、環境変数が config.yaml より優先されます。

    Attributes:
        start_paths: 巡回を開始するパスのリスト
        include_patterns: 対象とするファイル/フォルダのパターン
        exclude_patterns: 除外するファイル/フォルダのパターン
        thread_pool_size: 同時に巡回するルート数
        full_traversal_interval_days: フル巡回の間隔（日、0 は常にフル、負の値はフル巡回しない）
        if_modified_since_cushion_minutes: 差分巡回の猶予時間（分）
        max_file_size_mb: 登録対象の最大ファイルサイズ（MB）
        supported_mime_types: 登録対象の MIME タイプ（空の場合は全て）
        excluded_mime_types: 除外する MIME タイプ
        max_content_length: 抽出テキストの最大長（文字数）
        batch_size: Meilisearchへのバッチ登録サイズ
        mark_all_documents_public: 全ドキュメントを公開として登録するか
        schedule: 巡回スケジュール設定
        meilisearch: Meilisearch接続設定
        logging: ログ設定
    """

    model_config = SettingsConfigDict(env_prefix="FSCRAWLER_")

    # 巡回対象
    start_paths: List[str] = Field(default_factory=list)
    include_patterns: List[str] = Field(default_factory=lambda: ["*"])
    exclude_patterns: List[str] = Field(default_factory=lambda: [
        "*.tmp", "node_modules", ".git", "__pycache__"
    ])

    # 巡回の挙動
    thread_pool_size: int = 10
    full_traversal_interval_days: float = 1
    if_modified_since_cushion_minutes: float = 60

    # 登録対象のフィルター
    max_file_size_mb: int = 50
    supported_mime_types: List[str] = Field(default_factory=list)
    excluded_mime_types: List[str] = Field(default_factory=list)

    # 登録内容
    max_content_length: int = 100000
    batch_size: int = 1000
    mark_all_documents_public: bool = False

    # サブ設定
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    meilisearch: MeilisearchConfig = Field(default_factory=MeilisearchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    設定ファイルを読み込み、Settingsオブジェクトを生成する

    この関数は以下の処理を行います:
    1. config.yaml ファイルを読み込む
    2. Meilisearchのホスト・APIキーを環境変数から上書きする

    Args:
        config_path: 設定ファイルのパス（省略時は FSCRAWLER_CONFIG または config.yaml）

    Returns:
        Settings: 読み込まれた設定オブジェクト

    Raises:
        yaml.YAMLError: YAMLの解析に失敗した場合
        pydantic.ValidationError: 設定値が不正な場合
    """
    if config_path is None:
        config_path = os.environ.get("FSCRAWLER_CONFIG", "config.yaml")

    config_file = Path(config_path)
    if not config_file.exists():
        # デフォルト設定で動作
        print(f"警告: 設定ファイル {config_path} が見つかりません。デフォルト設定を使用します。")
        yaml_config = {}
    else:
        with open(config_file, "r", encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}

    # 環境変数 MEILISEARCH_HOST / MEILI_MASTER_KEY が優先される
    meili_config = dict(yaml_config.get("meilisearch") or {})
    if os.environ.get("MEILISEARCH_HOST"):
        meili_config["host"] = os.environ["MEILISEARCH_HOST"]
    if os.environ.get("MEILI_MASTER_KEY"):
        meili_config["api_key"] = os.environ["MEILI_MASTER_KEY"]
    yaml_config["meilisearch"] = meili_config

    return Settings(**yaml_config)


# ---------------------------------------------------------------------------
# グローバル設定インスタンス
# ---------------------------------------------------------------------------
# アプリケーション起動時に一度だけ読み込まれる
# 他のモジュールからは `from fscrawler.config import settings` でアクセス可能
# ---------------------------------------------------------------------------
settings = load_config()
