"""PDF text extraction using PyMuPDF."""

from pathlib import Path

import fitz  # PyMuPDF

from corpusflow.core.exceptions import ExtractionError
from corpusflow.extraction.base import BaseExtractor

PDF_SIGNATURE = b"%PDF-"


def is_likely_pdf(file_path: Path) -> bool:
    """Check the ``%PDF-`` signature at the start of the file."""
    try:
        with open(file_path, "rb") as f:
            head = f.read(6)
    except OSError:
        return False
    return len(head) >= 6 and head.startswith(PDF_SIGNATURE)


class PdfExtractor(BaseExtractor):
    """Page-by-page text of a PDF."""

    extensions = frozenset({".pdf"})

    @property
    def name(self) -> str:
        return "pymupdf"

    def extract(self, file_path: Path) -> str:
        if not is_likely_pdf(file_path):
            raise ExtractionError(
                f"File is not a valid PDF (missing %PDF- header): {Path(file_path).name}",
                file_path=str(file_path),
            )

        try:
            doc = fitz.open(file_path)
            try:
                pages = [page.get_text() for page in doc]
            finally:
                doc.close()
        except Exception as e:
            raise ExtractionError(f"Failed to parse PDF: {e}", file_path=str(file_path)) from e

        return "\n".join(pages)
