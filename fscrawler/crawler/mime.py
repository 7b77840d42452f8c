# =============================================================================
# fscrawler - MIME タイプ判定
# =============================================================================
# ファイル名（拡張子）から MIME タイプを判定し、判定できない場合は
# ファイル先頭の内容から推定します。
# =============================================================================

import logging
import mimetypes

import chardet

logger = logging.getLogger(__name__)

# 判定できない場合の MIME タイプ
UNKNOWN_MIME_TYPE = "application/octet-stream"

# 拡張子だけでは判定できない Office 形式を補完する
_EXTRA_TYPES = {
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".md": "text/markdown",
    ".yaml": "text/yaml",
    ".yml": "text/yaml",
}


class MimeTypeDetector:
    """
    ファイルの MIME タイプを判定するクラス

    1. 拡張子から判定する（mimetypes）
    2. 判定できない場合は先頭バイトを読み込み、
       NUL バイトを含まずエンコーディングが推定できればテキストとみなす（chardet）
    """

    def __init__(self, sample_size: int = 2048):
        self.sample_size = sample_size

    def get_mime_type(self, file) -> str:
        """
        MIME タイプを返す

        Args:
            file: ReadonlyFile

        Raises:
            OSError: 内容の読み込みに失敗した場合
        """
        ext = "." + file.name.rsplit(".", 1)[-1].lower() if "." in file.name else ""
        mime_type = _EXTRA_TYPES.get(ext) or mimetypes.guess_type(file.name)[0]
        if mime_type:
            return mime_type

        with file.open_stream() as stream:
            sample = stream.read(self.sample_size)
        return self._sniff(sample)

    @staticmethod
    def _sniff(sample: bytes) -> str:
        if not sample or b"\x00" in sample:
            return UNKNOWN_MIME_TYPE
        detected = chardet.detect(sample)
        if detected.get("encoding") and detected.get("confidence", 0) >= 0.5:
            return "text/plain"
        return UNKNOWN_MIME_TYPE
