# =============================================================================
# fscrawler - インデクサーパッケージ
# =============================================================================
# 巡回で生成されたドキュメントの登録先
#
# モジュール構成:
#   - meilisearch_client.py: Meilisearch インデックスへの登録
# =============================================================================

from fscrawler.indexer.meilisearch_client import MeilisearchSink

__all__ = ["MeilisearchSink"]
