# =============================================================================
# fscrawler - コンテンツ抽出
# =============================================================================
# ファイルの内容（バイナリストリーム）からテキストを抽出します。
# 抽出器は MIME タイプで選択されます。
#
# サポートする形式:
#   - PDF: pdfplumber を使用
#   - Word (.docx): python-docx を使用
#   - Excel (.xlsx): openpyxl を使用
#   - テキスト全般 (text/*): chardet でエンコーディング検出
# =============================================================================

import io
import logging
from typing import BinaryIO, Callable, Dict, Optional

import chardet

logger = logging.getLogger(__name__)

DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def extract_pdf_text(stream: BinaryIO, max_pages: int = 100) -> Optional[str]:
    """
    PDF からテキストを抽出する

    画像のみの PDF やパスワード保護された PDF からは抽出できません。

    Args:
        stream: PDF の内容
        max_pages: 処理する最大ページ数
    """
    import pdfplumber

    texts = []
    with pdfplumber.open(stream) as pdf:
        for page in pdf.pages[:max_pages]:
            text = page.extract_text()
            if text:
                texts.append(text)
    return "\n".join(texts) if texts else None


def extract_docx_text(stream: BinaryIO) -> Optional[str]:
    """Word (.docx) の段落とテーブルのテキストを抽出する"""
    from docx import Document

    doc = Document(stream)
    texts = [p.text for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            texts.extend(cell.text for cell in row.cells if cell.text.strip())
    return "\n".join(texts) if texts else None


def extract_xlsx_text(stream: BinaryIO, max_rows: int = 10000) -> Optional[str]:
    """
    Excel (.xlsx) の全シートからテキストを抽出する

    セルはタブ区切り、行は改行区切りで返します。
    数式は計算結果が抽出されます。
    """
    from openpyxl import load_workbook

    # read_only モードはシーク可能なストリームを必要とする
    wb = load_workbook(io.BytesIO(stream.read()), read_only=True, data_only=True)
    try:
        texts = []
        for sheet in wb.worksheets:
            for row in sheet.iter_rows(values_only=True):
                if len(texts) >= max_rows:
                    break
                values = [str(v) for v in row if v is not None]
                if values:
                    texts.append("\t".join(values))
        return "\n".join(texts) if texts else None
    finally:
        wb.close()


def extract_plain_text(stream: BinaryIO, max_size: int = 1024 * 1024) -> Optional[str]:
    """
    テキストファイルの内容を読み込む

    chardet でエンコーディングを推定し、信頼度が低い場合は UTF-8 を使用します。
    """
    raw_data = stream.read(max_size)
    if not raw_data:
        return None

    detected = chardet.detect(raw_data[:10000])
    encoding = detected.get("encoding") or "utf-8"
    if detected.get("confidence", 0) < 0.5:
        encoding = "utf-8"

    try:
        return raw_data.decode(encoding, errors="replace")
    except LookupError:
        return raw_data.decode("utf-8", errors="replace")


class ContentExtractor:
    """
    MIME タイプに応じてテキストを抽出するクラス

    使用例:
        extractor = ContentExtractor(max_content_length=50000)
        text = extractor.extract(file, "application/pdf")

    Attributes:
        max_content_length: 抽出テキストの最大長（超えた分は切り詰め）
    """

    EXTRACTORS: Dict[str, Callable[[BinaryIO], Optional[str]]] = {
        "application/pdf": extract_pdf_text,
        DOCX_MIME_TYPE: extract_docx_text,
        XLSX_MIME_TYPE: extract_xlsx_text,
        "application/json": extract_plain_text,
        "application/xml": extract_plain_text,
        "application/javascript": extract_plain_text,
        "application/x-sh": extract_plain_text,
    }

    def __init__(self, max_content_length: int = 100000):
        self.max_content_length = max_content_length

    def _extractor_for(self, mime_type: str):
        if not mime_type:
            return None
        if mime_type.startswith("text/"):
            return extract_plain_text
        return self.EXTRACTORS.get(mime_type)

    def extract(self, file, mime_type: str) -> Optional[str]:
        """
        ファイルからテキストを抽出する

        Returns:
            str: 正規化・切り詰め済みのテキスト
                 非対応の形式または解析に失敗した場合は None

        Raises:
            OSError: ファイルを開けない場合
        """
        extractor = self._extractor_for(mime_type)
        if extractor is None:
            logger.debug(f"未サポートの MIME タイプ: {mime_type} ({file.path})")
            return None

        with file.open_stream() as stream:
            try:
                text = extractor(stream)
            except Exception as e:
                # 壊れたファイル等はテキストなしで登録する
                logger.debug(f"テキスト抽出エラー: {file.path} - {e}")
                return None

        if not text:
            return text
        if len(text) > self.max_content_length:
            text = text[:self.max_content_length]
            logger.debug(f"テキストを切り詰めました: {file.path}")
        return self._normalize_whitespace(text)

    @staticmethod
    def _normalize_whitespace(text: str) -> str:
        """各行の前後の空白を除去し、連続する空行を1行にまとめる"""
        normalized_lines = []
        prev_empty = False
        for line in text.splitlines():
            stripped = line.strip()
            if stripped:
                normalized_lines.append(stripped)
                prev_empty = False
            elif not prev_empty:
                normalized_lines.append("")
                prev_empty = True
        return "\n".join(normalized_lines)
