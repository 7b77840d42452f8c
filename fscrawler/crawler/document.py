# =============================================================================
# fscrawler - ドキュメント生成
# =============================================================================
# 巡回で見つかったファイルから、登録先に渡すドキュメント（辞書）を生成します。
# =============================================================================

import hashlib
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fscrawler.crawler.errors import RepositoryDocumentError
from fscrawler.crawler.filesystem import ReadonlyFile, RootSpecList
from fscrawler.crawler.mime import UNKNOWN_MIME_TYPE, MimeTypeDetector
from fscrawler.crawler.parser import ContentExtractor

logger = logging.getLogger(__name__)


def document_id(path: str) -> str:
    """パスの SHA256 ハッシュの先頭16文字をドキュメントIDとして返す"""
    return hashlib.sha256(path.encode("utf-8")).hexdigest()[:16]


class DocumentBuilder:
    """
    ReadonlyFile からドキュメントを生成するクラス

    生成されるドキュメントのフィールド:
        id, path, display_url, filename, extension, size, modified_at,
        mime_type, content, is_public, start_path, indexed_at

    Attributes:
        mime_type_detector: MIME タイプ判定器
        extractor: テキスト抽出器
        root_specs: 開始パスの一覧（start_path の判定に使用）
        mark_all_documents_public: 全ドキュメントを公開として登録するか
    """

    def __init__(
        self,
        mime_type_detector: MimeTypeDetector,
        extractor: ContentExtractor,
        root_specs: Optional[RootSpecList] = None,
        mark_all_documents_public: bool = False,
    ):
        self.mime_type_detector = mime_type_detector
        self.extractor = extractor
        self.root_specs = root_specs
        self.mark_all_documents_public = mark_all_documents_public

    def build(self, file: ReadonlyFile) -> Dict[str, Any]:
        """
        ドキュメントを生成する

        Raises:
            RepositoryDocumentError: ファイルの読み込みに失敗した場合
        """
        path = file.path
        name = file.name
        document: Dict[str, Any] = {
            "id": document_id(path),
            "path": path,
            "display_url": file.display_url,
            "filename": name,
            "extension": ("." + name.rsplit(".", 1)[-1].lower()) if "." in name else "",
            "is_public": self.mark_all_documents_public,
            "indexed_at": datetime.now().isoformat(),
        }

        if self.root_specs is not None:
            root = self.root_specs.find(path)
            document["start_path"] = root.path if root else None

        try:
            document["size"] = file.length()
        except OSError as e:
            raise RepositoryDocumentError(f"サイズを取得できません: {path}") from e

        try:
            document["modified_at"] = datetime.fromtimestamp(file.last_modified()).isoformat()
        except OSError as e:
            # 更新日時は必須ではないので警告のみ
            logger.warning(f"最終更新日時を取得できません: {path} - {e}")

        try:
            mime_type = self.mime_type_detector.get_mime_type(file)
        except OSError as e:
            logger.warning(f"MIME タイプを判定できません: {path} - {e}")
            mime_type = UNKNOWN_MIME_TYPE
        document["mime_type"] = mime_type

        try:
            content = self.extractor.extract(file, mime_type)
        except OSError as e:
            raise RepositoryDocumentError(f"ファイルを開けません: {path}") from e
        document["content"] = content or ""

        return document
