# =============================================================================
# fscrawler - ドキュメント登録先インターフェース
# =============================================================================

from abc import ABC, abstractmethod
from typing import Any, Dict


class DocumentSink(ABC):
    """
    巡回で生成されたドキュメントを受け取る登録先

    accept() は複数のワーカースレッドから同時に呼び出されるため、
    実装はスレッドセーフである必要があります。
    """

    @abstractmethod
    def accept(self, document: Dict[str, Any]) -> None:
        """
        ドキュメントを1件受け取る

        Raises:
            DocumentRejectedError: このドキュメントのみを拒否する場合（巡回は継続）
            DocumentAcceptorError: 致命的なエラー（そのルートの巡回を中断）
        """

    @abstractmethod
    def flush(self) -> None:
        """バッファされたドキュメントを送信する（ルートの巡回ごとに必ず呼ばれる）"""

    @abstractmethod
    def cancel(self) -> None:
        """クロールの中止を通知する（スケジューラーの終了時に1度だけ呼ばれる）"""
