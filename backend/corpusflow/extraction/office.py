"""Office document extractors (Word, PowerPoint, Excel)."""

from pathlib import Path

from docx import Document as DocxDocument
from openpyxl import load_workbook
from pptx import Presentation

from corpusflow.core.exceptions import ExtractionError
from corpusflow.extraction.base import BaseExtractor


class DocxExtractor(BaseExtractor):
    """Non-empty paragraphs of a Word document, one per line."""

    extensions = frozenset({".docx"})

    @property
    def name(self) -> str:
        return "docx"

    def extract(self, file_path: Path) -> str:
        try:
            doc = DocxDocument(file_path)
        except Exception as e:
            raise ExtractionError(f"Failed to parse DOCX: {e}", file_path=str(file_path)) from e

        lines = [para.text for para in doc.paragraphs if para.text.strip()]
        return "\n".join(lines)


class PptxExtractor(BaseExtractor):
    """Shape text of every slide, slides separated by a blank line."""

    extensions = frozenset({".pptx"})

    @property
    def name(self) -> str:
        return "pptx"

    def extract(self, file_path: Path) -> str:
        try:
            prs = Presentation(file_path)
        except Exception as e:
            raise ExtractionError(f"Failed to parse PPTX: {e}", file_path=str(file_path)) from e

        slides = []
        for slide in prs.slides:
            texts = [
                shape.text.strip()
                for shape in slide.shapes
                if getattr(shape, "has_text_frame", False) and shape.text.strip()
            ]
            if texts:
                slides.append("\n".join(texts))

        return "\n\n".join(slides)


class XlsxExtractor(BaseExtractor):
    """Cell values of every sheet as tab-separated rows."""

    extensions = frozenset({".xlsx"})

    @property
    def name(self) -> str:
        return "xlsx"

    def extract(self, file_path: Path) -> str:
        try:
            wb = load_workbook(file_path, read_only=True, data_only=True)
        except Exception as e:
            raise ExtractionError(f"Failed to parse XLSX: {e}", file_path=str(file_path)) from e

        sheets = []
        try:
            for sheet_name in wb.sheetnames:
                rows = [f"# Sheet: {sheet_name}"]
                for row in wb[sheet_name].iter_rows(values_only=True):
                    values = ["" if v is None else _cell_text(v) for v in row]
                    if any(values):
                        rows.append("\t".join(values))
                sheets.append("\n".join(rows))
        finally:
            wb.close()

        return "\n\n".join(sheets)


def _cell_text(value: object) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return str(value)
