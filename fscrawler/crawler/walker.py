# =============================================================================
# fscrawler - ツリーウォーカー
# =============================================================================
# 1つのディレクトリツリーを深さ優先・辞書順で巡回し、
# 条件を満たすファイルを1件ずつ返します。
#
# 主な機能:
#   - 遅延評価による巡回（has_more() / take_next()）
#   - 隠しディレクトリと除外パターンに一致するディレクトリの除外
#   - インクルード/除外パターンによるファイルの除外
#   - 読み取り権限、更新日時、サイズ、MIME タイプによるフィルタリング
#   - ディレクトリ単位・ファイル単位のエラーからの回復
# =============================================================================

import logging
from typing import Dict, Iterator, List, Optional

from fscrawler.crawler.errors import (
    DirectoryListingError,
    InsufficientAccessError,
    RepositoryDocumentError,
)
from fscrawler.crawler.filesystem import ReadonlyFile
from fscrawler.crawler.filters import FilePatternMatcher, TraversalContext

logger = logging.getLogger(__name__)


class _Frame:
    """
    巡回スタックの1階層

    同じディレクトリ内でまだ処理していない要素を保持します。
    要素の消費はリストからの削除ではなくインデックスで行います。
    """

    __slots__ = ("entries", "index")

    def __init__(self, entries: List[ReadonlyFile]):
        self.entries = entries
        self.index = 0

    def is_empty(self) -> bool:
        return self.index >= len(self.entries)

    def peek(self) -> ReadonlyFile:
        return self.entries[self.index]

    def advance(self) -> ReadonlyFile:
        entry = self.entries[self.index]
        self.index += 1
        return entry


class TreeWalker:
    """
    ディレクトリツリーを深さ優先で巡回するクラス

    各ディレクトリ内の要素はパスの辞書順で処理されます。
    ディレクトリ自体は返さず、含まれるファイルのみを返します。
    一度巡回し終えたインスタンスは再利用できません。

    使用例:
        walker = TreeWalker(root, FilePatternMatcher(["*"]))
        while walker.has_more():
            file = walker.take_next()
            print(file.path)

    Attributes:
        root: 巡回を開始するルート
        if_modified_since: この日時（エポック秒）より前に更新されたファイルを除外
                           0 の場合は除外しない
    """

    def __init__(
        self,
        root: ReadonlyFile,
        pattern_matcher: FilePatternMatcher,
        traversal_context: Optional[TraversalContext] = None,
        if_modified_since: float = 0.0,
    ):
        self.root = root
        self.pattern_matcher = pattern_matcher
        self.traversal_context = traversal_context
        self.if_modified_since = if_modified_since

        # 巡回状態のスタック（ルートのみを含む階層で開始）
        self._stack: List[_Frame] = [_Frame([root])]
        # スタック最上段の先頭要素が返却待ちのファイルかどうか
        self._positioned = False

        self._stats = {
            "files_returned": 0,
            "skipped_by_pattern": 0,
            "skipped_directories": 0,
            "skipped_not_regular": 0,
            "skipped_unreadable": 0,
            "skipped_unmodified": 0,
            "skipped_by_size": 0,
            "skipped_by_mime_type": 0,
            "skipped_by_error": 0,
            "listing_errors": 0,
        }

    def has_more(self) -> bool:
        """
        次の対象ファイルがあるかを返す

        I/O を伴う場合があります。True を返した場合、
        続く take_next() でそのファイルを取得できます。
        """
        if not self._positioned:
            self._position_to_next_file()
        return self._positioned

    def take_next(self) -> Optional[ReadonlyFile]:
        """
        次の対象ファイルを返す

        直前に has_more() が True を返していない場合は None を返します。
        """
        if not self._positioned:
            return None
        self._positioned = False
        self._stats["files_returned"] += 1
        return self._stack[-1].advance()

    def __iter__(self) -> Iterator[ReadonlyFile]:
        while self.has_more():
            yield self.take_next()

    def get_stats(self) -> Dict[str, int]:
        """巡回統計情報を返す"""
        return self._stats.copy()

    def _position_to_next_file(self) -> None:
        """スタックを進め、次の対象ファイルの位置で停止する"""
        while self._stack:
            frame = self._stack[-1]

            if frame.is_empty():
                # この階層を処理し終えたので親ディレクトリに戻る
                self._stack.pop()
                continue

            entry = frame.peek()
            if entry.is_directory():
                frame.advance()
                if entry is not self.root and entry.is_hidden():
                    self._stats["skipped_directories"] += 1
                    logger.debug(f"ディレクトリをスキップ（隠しディレクトリ）: {entry.path}")
                elif self.pattern_matcher.accept_directory(entry.path):
                    self._stack.append(_Frame(self._list_files(entry)))
                else:
                    self._stats["skipped_directories"] += 1
                    logger.debug(f"ディレクトリをスキップ（除外パターン）: {entry.path}")
            elif self._is_qualifying_file(entry):
                self._positioned = True
                return
            else:
                frame.advance()

    def _is_qualifying_file(self, file: ReadonlyFile) -> bool:
        """
        ファイルが巡回対象の条件を満たすかチェックする

        判定順:
        1. 通常ファイルである
        2. パターンに受理される
        3. 読み取り可能である
        4. 更新日時が閾値以降である
        5. サイズが上限以下である
        6. MIME タイプが対応している
        """
        try:
            if not file.is_regular_file():
                self._stats["skipped_not_regular"] += 1
                logger.debug(f"スキップ（通常ファイルではない）: {file.path}")
                return False

            if not file.accepted_by(self.pattern_matcher):
                self._stats["skipped_by_pattern"] += 1
                logger.debug(f"スキップ（パターン不一致）: {file.path}")
                return False

            if not file.can_read():
                self._stats["skipped_unreadable"] += 1
                logger.debug(f"スキップ（読み取り権限なし）: {file.path}")
                return False

            if self.if_modified_since > 0 and file.last_modified() < self.if_modified_since:
                self._stats["skipped_unmodified"] += 1
                logger.debug(f"スキップ（前回から未更新）: {file.path}")
                return False

            context = self.traversal_context
            if context is not None:
                if context.max_document_size < file.length():
                    self._stats["skipped_by_size"] += 1
                    logger.debug(f"スキップ（サイズ超過）: {file.path}")
                    return False

                mime_type = context.mime_type_detector.get_mime_type(file)
                if context.mime_type_support_level(mime_type) <= 0:
                    self._stats["skipped_by_mime_type"] += 1
                    logger.debug(f"スキップ（非対応の MIME タイプ {mime_type}）: {file.path}")
                    return False

            return True

        except (OSError, RepositoryDocumentError) as e:
            self._stats["skipped_by_error"] += 1
            logger.warning(f"スキップ（アクセスエラー）: {file.path} - {e}")
            return False

    def _list_files(self, directory: ReadonlyFile) -> List[ReadonlyFile]:
        """
        ディレクトリの子要素を取得する

        一覧取得に失敗した場合は空のリストを返し、巡回を継続します。
        """
        try:
            return list(directory.list_files())
        except InsufficientAccessError as e:
            logger.warning(f"権限不足のため一覧を取得できません: {directory.path} - {e}")
        except (DirectoryListingError, OSError) as e:
            logger.warning(f"一覧の取得に失敗しました: {directory.path} - {e}")
        self._stats["listing_errors"] += 1
        return []
