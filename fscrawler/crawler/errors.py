# =============================================================================
# fscrawler - 例外定義
# =============================================================================
# クローラー全体で使用する例外クラスを定義します。
#
# 例外の分類:
#   - RepositoryDocumentError: 1ファイル単位の回復可能なエラー（スキップして続行）
#   - RepositoryError: リポジトリ全体の障害（そのルートのパスを中断）
#   - DocumentAcceptorError: 登録先（シンク）の致命的エラー（パスを中断）
#   - DocumentRejectedError: シンクが1件のドキュメントを拒否（スキップして続行）
# =============================================================================


class CrawlerError(Exception):
    """クローラーが送出する例外の基底クラス"""


class RepositoryError(CrawlerError):
    """
    リポジトリへのアクセスに関する一般的なエラー

    ネットワーク共有がオフラインになった場合など、
    ルート全体の巡回を続行できない状況で送出されます。
    """


class RepositoryDocumentError(RepositoryError):
    """
    個々のファイルに関する回復可能なエラー

    このエラーはファイル単位で捕捉され、巡回は継続されます。
    """


class NonExistentResourceError(RepositoryDocumentError):
    """指定されたパスが存在しない"""


class DirectoryListingError(RepositoryDocumentError):
    """ディレクトリの一覧取得に失敗した"""


class InsufficientAccessError(RepositoryDocumentError):
    """アクセス権限が不足している"""


class UnknownFileSystemError(RepositoryError):
    """パスに一致するファイルシステム種別が登録されていない"""


class DocumentAcceptorError(CrawlerError):
    """
    ドキュメント登録先の致命的なエラー

    このエラーが発生するとルートの巡回は中断され、
    スケジューラーはエラー待機（15分）に入ります。
    """


class DocumentRejectedError(CrawlerError):
    """登録先が1件のドキュメントを拒否した（回復可能）"""
