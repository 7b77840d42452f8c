# =============================================================================
# fscrawler - ファイルシステム抽象化
# =============================================================================
# クローラーが参照するファイル/ディレクトリの抽象インターフェースと、
# ローカルファイルシステム向けの実装を提供します。
#
# 主な構成:
#   - ReadonlyFile: ファイル/ディレクトリを表す読み取り専用ハンドル
#   - FileSystemType: パス文字列から ReadonlyFile を生成するファイルシステム種別
#   - FileSystemTypeRegistry: 登録済みファイルシステム種別の一覧
#   - PathResolver: 開始パスを解決してルートのハンドルを返す
#   - RootSpec / RootSpecList: 設定された開始パス（正規化・重複排除済み）
#
# SMB / NFS 等のマウント済み共有は OS 経由でローカルパスとして扱います。
# =============================================================================

import logging
import os
import stat
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Iterator, List, Optional

from fscrawler.crawler.errors import (
    DirectoryListingError,
    InsufficientAccessError,
    NonExistentResourceError,
    RepositoryDocumentError,
    UnknownFileSystemError,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# ファイルハンドルの抽象クラス
# ---------------------------------------------------------------------------
class ReadonlyFile(ABC):
    """
    読み取り専用のファイル/ディレクトリハンドル

    ディレクトリのパスは末尾に区切り文字を付けて返します。
    これにより、パスの辞書順ソートが深さ優先の巡回順と一致します。
    （例: "foo/" は "foo.bar" より後、"foo/x" より前に並ぶ）

    ハンドルは生成後に変更されません。
    """

    filesystem_type: str = ""

    @property
    @abstractmethod
    def path(self) -> str:
        """ファイルのフルパス（ディレクトリは末尾に区切り文字付き）"""

    @property
    def name(self) -> str:
        """パスの最後の要素（区切り文字は含まない）"""
        trimmed = self.path.rstrip("/\\")
        return os.path.basename(trimmed) if trimmed else ""

    @property
    def parent(self) -> Optional[str]:
        """親ディレクトリのパス、ルートの場合は None"""
        trimmed = self.path.rstrip("/\\")
        parent = os.path.dirname(trimmed)
        if not parent or parent == trimmed:
            return None
        return parent.rstrip("/\\") + os.sep

    @property
    def display_url(self) -> str:
        return self.path

    @abstractmethod
    def exists(self) -> bool: ...

    @abstractmethod
    def can_read(self) -> bool: ...

    @abstractmethod
    def is_directory(self) -> bool: ...

    @abstractmethod
    def is_regular_file(self) -> bool: ...

    @abstractmethod
    def is_hidden(self) -> bool: ...

    @abstractmethod
    def length(self) -> int:
        """ファイルサイズ（バイト）、通常ファイル以外は 0"""

    @abstractmethod
    def last_modified(self) -> float:
        """最終更新日時（エポック秒）"""

    @abstractmethod
    def list_files(self) -> List["ReadonlyFile"]:
        """
        直下の子要素をパスの辞書順で返す

        Raises:
            InsufficientAccessError: 一覧取得の権限がない場合
            DirectoryListingError: 一覧取得に失敗した場合
        """

    @abstractmethod
    def open_stream(self) -> BinaryIO:
        """ファイル内容を読み込むバイナリストリームを開く"""

    def accepted_by(self, matcher) -> bool:
        """パスがインクルード/除外パターンに受理されるかを返す"""
        return matcher.accept_name(self.path)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.path!r})"


# ---------------------------------------------------------------------------
# ローカルファイルシステムの実装
# ---------------------------------------------------------------------------
class LocalFile(ReadonlyFile):
    """
    OS のファイル API を使用する ReadonlyFile 実装

    ローカルディスク、マウント済みの NFS エクスポート、
    マップされた Windows 共有に対応します。

    Note:
        - ディレクトリへのシンボリックリンクは追跡しません（無限ループ防止）
        - 隠しファイルは読み取り不可として扱います
    """

    def __init__(self, path: str, filesystem_type: str = "local"):
        self.filesystem_type = filesystem_type
        self._abspath = os.path.abspath(path)
        self._is_dir: Optional[bool] = None

    @property
    def path(self) -> str:
        if self.is_directory() and not self._abspath.endswith(os.sep):
            return self._abspath + os.sep
        return self._abspath

    def exists(self) -> bool:
        return os.path.lexists(self._abspath)

    def can_read(self) -> bool:
        return (
            self.exists()
            and not self.is_hidden()
            and os.access(self._abspath, os.R_OK)
        )

    def is_directory(self) -> bool:
        if self._is_dir is None:
            self._is_dir = (
                os.path.isdir(self._abspath) and not os.path.islink(self._abspath)
            )
        return self._is_dir

    def is_regular_file(self) -> bool:
        return os.path.isfile(self._abspath)

    def is_hidden(self) -> bool:
        if self.name.startswith("."):
            return True
        try:
            attributes = getattr(os.stat(self._abspath), "st_file_attributes", 0)
        except OSError:
            return False
        return bool(attributes & getattr(stat, "FILE_ATTRIBUTE_HIDDEN", 0))

    def length(self) -> int:
        return os.path.getsize(self._abspath) if self.is_regular_file() else 0

    def last_modified(self) -> float:
        mtime = os.path.getmtime(self._abspath)
        if mtime == 0:
            raise OSError(f"最終更新日時を取得できません: {self.path}")
        return mtime

    def list_files(self) -> List[ReadonlyFile]:
        try:
            with os.scandir(self._abspath) as entries:
                names = [entry.name for entry in entries]
        except PermissionError as e:
            raise InsufficientAccessError(
                f"一覧取得の権限がありません: {self.path}"
            ) from e
        except OSError as e:
            raise DirectoryListingError(f"一覧取得に失敗しました: {self.path}") from e

        children = [
            LocalFile(os.path.join(self._abspath, name), self.filesystem_type)
            for name in names
        ]
        children.sort(key=lambda child: child.path)
        return children

    def open_stream(self) -> BinaryIO:
        if not self.is_regular_file():
            raise RepositoryDocumentError(f"通常ファイルではありません: {self.path}")
        return open(self._abspath, "rb")

    def __eq__(self, other) -> bool:
        return isinstance(other, LocalFile) and self._abspath == other._abspath

    def __hash__(self) -> int:
        return hash(self._abspath)


# ---------------------------------------------------------------------------
# ファイルシステム種別
# ---------------------------------------------------------------------------
class FileSystemType(ABC):
    """パス文字列を ReadonlyFile に変換するファイルシステム種別"""

    name: str = ""

    @abstractmethod
    def is_path(self, path: str) -> bool:
        """パスがこの種別の構文に従っているかを返す（存在は保証しない）"""

    @abstractmethod
    def get_file(self, path: str) -> ReadonlyFile: ...

    def get_readable_file(self, path: str) -> ReadonlyFile:
        """
        読み取り可能なファイルを返す

        Raises:
            NonExistentResourceError: パスが存在しない場合
            InsufficientAccessError: 読み取り権限がない場合
        """
        file = self.get_file(path)
        if not file.exists():
            raise NonExistentResourceError(f"パスが存在しません: {path}")
        if not file.can_read():
            raise InsufficientAccessError(f"読み取り権限がありません: {path}")
        return file


class LocalFileSystemType(FileSystemType):
    """OS から参照できる絶対パス（ドライブレター、UNC パスを含む）"""

    name = "local"

    def is_path(self, path: str) -> bool:
        return "://" not in path and os.path.isabs(path)

    def get_file(self, path: str) -> ReadonlyFile:
        return LocalFile(path, self.name)


class FileSystemTypeRegistry:
    """
    登録済みのファイルシステム種別を保持するクラス

    パスは登録順に各種別の is_path() で判定されます。
    """

    def __init__(self, types: Iterable[FileSystemType]):
        self._types = list(types)

    def __iter__(self) -> Iterator[FileSystemType]:
        return iter(self._types)

    def get(self, name: str) -> FileSystemType:
        for fs_type in self._types:
            if fs_type.name == name:
                return fs_type
        raise UnknownFileSystemError(f"未登録のファイルシステム種別です: {name}")

    def find(self, path: str) -> Optional[FileSystemType]:
        for fs_type in self._types:
            if fs_type.is_path(path):
                return fs_type
        return None


def default_registry() -> FileSystemTypeRegistry:
    return FileSystemTypeRegistry([LocalFileSystemType()])


# ---------------------------------------------------------------------------
# 開始パスの解決
# ---------------------------------------------------------------------------
class PathResolver:
    """
    開始パスを解決し、ルートディレクトリのハンドルを返すクラス

    使用例:
        resolver = PathResolver(default_registry())
        root = resolver.resolve("/mnt/share/")
        if root is None:
            ...  # 存在しない、または未登録の種別
    """

    def __init__(self, registry: FileSystemTypeRegistry):
        self.registry = registry

    def resolve(
        self, path: str, filesystem_type: Optional[str] = None
    ) -> Optional[ReadonlyFile]:
        """
        開始パスを解決する

        Args:
            path: 開始パス
            filesystem_type: 種別名（省略時はパスの構文から判定）

        Returns:
            ReadonlyFile: 読み取り可能なルート
                          存在しない場合、種別が見つからない場合は None

        Raises:
            InsufficientAccessError: ルートの読み取り権限がない場合
        """
        try:
            if filesystem_type:
                fs_type = self.registry.get(filesystem_type)
            else:
                fs_type = self.registry.find(path)
                if fs_type is None:
                    raise UnknownFileSystemError(
                        f"パスに一致するファイルシステムがありません: {path}"
                    )
            return fs_type.get_readable_file(path)
        except UnknownFileSystemError as e:
            logger.warning(f"開始パスを解決できません: {e}")
        except NonExistentResourceError as e:
            logger.warning(f"開始パスが見つかりません: {e}")
        return None


# ---------------------------------------------------------------------------
# 開始パス（ルート）の定義
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class RootSpec:
    """
    設定された開始パス

    Attributes:
        path: 末尾に区切り文字を付けて正規化されたパス
        filesystem_type: 解決されたファイルシステム種別名（未登録の場合は None）
    """
    path: str
    filesystem_type: Optional[str] = None


def normalize_start_path(path: str) -> str:
    """
    開始パスの前後の空白を除去し、末尾に区切り文字を付ける

    ローカルパスは LocalFile.path と一致するよう "." や重複した区切り文字を正規化します。
    """
    path = path.strip()
    if not path:
        return path
    if "://" not in path:
        path = os.path.normpath(path)
    if path.endswith(("/", "\\")):
        return path
    separator = "\\" if "\\" in path and "/" not in path else "/"
    return path + separator


class RootSpecList:
    """
    正規化・重複排除済みの開始パスの一覧

    反復は設定順で行います。
    find() はパス長の降順で照合し、最も長く一致する開始パスを返します。
    """

    def __init__(self, specs: Iterable[RootSpec]):
        self._specs = list(specs)
        self._by_length = sorted(self._specs, key=lambda s: len(s.path), reverse=True)

    @classmethod
    def from_paths(
        cls, paths: Iterable[str], registry: FileSystemTypeRegistry
    ) -> "RootSpecList":
        specs = []
        seen = set()
        for raw in paths:
            path = normalize_start_path(raw)
            if not path or path in seen:
                continue
            seen.add(path)
            fs_type = registry.find(path)
            if fs_type is None:
                logger.warning(f"ファイルシステム種別を判定できない開始パス: {path}")
            specs.append(RootSpec(path, fs_type.name if fs_type else None))
        return cls(specs)

    def find(self, path: str) -> Optional[RootSpec]:
        for spec in self._by_length:
            if path.startswith(spec.path):
                return spec
        return None

    def __iter__(self) -> Iterator[RootSpec]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)
