"""Text extraction for supported document formats."""

from corpusflow.extraction.base import BaseExtractor
from corpusflow.extraction.office import DocxExtractor, PptxExtractor, XlsxExtractor
from corpusflow.extraction.pdf import PdfExtractor, is_likely_pdf
from corpusflow.extraction.registry import TextExtractor
from corpusflow.extraction.text import PlainTextExtractor

__all__ = [
    "BaseExtractor",
    "TextExtractor",
    "PdfExtractor",
    "DocxExtractor",
    "PptxExtractor",
    "XlsxExtractor",
    "PlainTextExtractor",
    "is_likely_pdf",
]
