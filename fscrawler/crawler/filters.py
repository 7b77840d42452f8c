# =============================================================================
# fscrawler - フィルター
# =============================================================================
# 巡回対象を絞り込むためのフィルターを提供します。
#
# 主な構成:
#   - FilePatternMatcher: インクルード/除外パターンによるパスの判定
#   - TraversalContext: 最大サイズと MIME タイプによる判定
#
# パターンの書式:
#   regexp:<正規表現>            大文字小文字を区別する正規表現
#   regexpIgnoreCase:<正規表現>  大文字小文字を区別しない正規表現
#   contains:<文字列>            パスに文字列を含む
#   ^<文字列>                    パスが文字列で始まる
#   <文字列>$                    パスが文字列で終わる
#   その他                       ワイルドカード（パス全体またはファイル名に一致）
# =============================================================================

import fnmatch
import os
import re
from typing import Callable, Iterable, List, Optional

_Predicate = Callable[[str], bool]


def _compile_pattern(pattern: str) -> _Predicate:
    """パターン文字列を判定関数に変換する"""
    if pattern.startswith("regexp:"):
        regex = re.compile(pattern[len("regexp:"):])
        return lambda path: regex.search(path) is not None
    if pattern.startswith("regexpIgnoreCase:"):
        regex = re.compile(pattern[len("regexpIgnoreCase:"):], re.IGNORECASE)
        return lambda path: regex.search(path) is not None
    if pattern.startswith("contains:"):
        text = pattern[len("contains:"):]
        return lambda path: text in path
    if pattern.startswith("^"):
        prefix = pattern[1:]
        return lambda path: path.startswith(prefix)
    if pattern.endswith("$"):
        suffix = pattern[:-1]
        return lambda path: path.endswith(suffix)

    # ワイルドカード: "*.tmp" や "node_modules" のように名前だけでも指定できる
    lowered = pattern.lower()

    def matches(path: str) -> bool:
        name = os.path.basename(path.rstrip("/\\"))
        return fnmatch.fnmatchcase(path.lower(), lowered) or fnmatch.fnmatchcase(
            name.lower(), lowered
        )

    return matches


class FilePatternMatcher:
    """
    インクルード/除外パターンによってパスを判定するクラス

    いずれかのインクルードパターンに一致し、かつどの除外パターンにも
    一致しないファイルパスを受理します。ディレクトリは除外パターンのみで判定します。
    スレッドセーフです。

    使用例:
        matcher = FilePatternMatcher(["*"], ["*.tmp", "node_modules"])
        matcher.accept_name("/data/report.pdf")   # True
        matcher.accept_directory("/data/node_modules/")  # False
    """

    def __init__(self, include_patterns: Iterable[str], exclude_patterns: Iterable[str] = ()):
        """
        Args:
            include_patterns: インクルードパターンのリスト
            exclude_patterns: 除外パターンのリスト

        Raises:
            ValueError: 空または空白のみのパターンが含まれる場合
        """
        self.include_patterns = list(include_patterns)
        self.exclude_patterns = list(exclude_patterns)
        self._include = self._compile_all(self.include_patterns)
        self._exclude = self._compile_all(self.exclude_patterns)

    @staticmethod
    def _compile_all(patterns: List[str]) -> List[_Predicate]:
        compiled = []
        for pattern in patterns:
            if pattern is None or not pattern.strip():
                raise ValueError(f"不正なパターンです: {patterns}")
            compiled.append(_compile_pattern(pattern.strip()))
        return compiled

    def accept_name(self, path: str) -> bool:
        return any(p(path) for p in self._include) and not any(
            p(path) for p in self._exclude
        )

    def accept_directory(self, path: str) -> bool:
        """ディレクトリを除外パターンのみで判定する（インクルードパターンはファイルにのみ適用）"""
        return not any(p(path) for p in self._exclude)


# ---------------------------------------------------------------------------
# サイズ・MIME タイプによる判定
# ---------------------------------------------------------------------------
class TraversalContext:
    """
    ファイルサイズと MIME タイプの制約を保持するクラス

    Attributes:
        max_document_size: 対象とする最大ファイルサイズ（バイト）
        supported_mime_types: 対象とする MIME タイプのパターン（空の場合は全て）
        excluded_mime_types: 除外する MIME タイプのパターン
        mime_type_detector: MIME タイプ判定器
    """

    def __init__(
        self,
        max_document_size: int,
        mime_type_detector,
        supported_mime_types: Optional[Iterable[str]] = None,
        excluded_mime_types: Optional[Iterable[str]] = None,
    ):
        self.max_document_size = max_document_size
        self.mime_type_detector = mime_type_detector
        self.supported_mime_types = [m.lower() for m in (supported_mime_types or [])]
        self.excluded_mime_types = [m.lower() for m in (excluded_mime_types or [])]

    def mime_type_support_level(self, mime_type: str) -> int:
        """
        MIME タイプの対応レベルを返す

        Returns:
            int: 0 以下は非対応、1 以上は対応
        """
        mime_type = (mime_type or "").lower()
        if any(fnmatch.fnmatchcase(mime_type, p) for p in self.excluded_mime_types):
            return 0
        if not self.supported_mime_types:
            return 1
        if any(fnmatch.fnmatchcase(mime_type, p) for p in self.supported_mime_types):
            return 1
        return 0
