"""Extension-based dispatch to the registered extractors."""

from pathlib import Path
from typing import Dict, List, Optional, Union

import structlog

from corpusflow.core.exceptions import UnsupportedFormatError
from corpusflow.extraction.base import BaseExtractor
from corpusflow.extraction.office import DocxExtractor, PptxExtractor, XlsxExtractor
from corpusflow.extraction.pdf import PdfExtractor
from corpusflow.extraction.text import PlainTextExtractor

logger = structlog.get_logger()


class TextExtractor:
    """Extracts text from any supported file by its extension."""

    def __init__(self, extractors: Optional[List[BaseExtractor]] = None) -> None:
        """
        Initialize the dispatcher.

        Args:
            extractors: Extractors to register (defaults to all built-in ones)
        """
        self._by_extension: Dict[str, BaseExtractor] = {}
        for extractor in extractors if extractors is not None else _default_extractors():
            self.register(extractor)

    def register(self, extractor: BaseExtractor) -> None:
        """Register an extractor for its extensions (later ones win)."""
        for ext in extractor.extensions:
            self._by_extension[ext.lower()] = extractor

    @property
    def supported_extensions(self) -> List[str]:
        return sorted(self._by_extension)

    def supports(self, file_path: Union[str, Path]) -> bool:
        return Path(file_path).suffix.lower() in self._by_extension

    def extract(self, file_path: Union[str, Path]) -> str:
        """
        Extract the text of ``file_path``.

        Raises:
            FileNotFoundError: If the file does not exist
            UnsupportedFormatError: If no extractor handles the extension
            ExtractionError: If the extractor fails
        """
        path = Path(file_path)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")

        ext = path.suffix.lower()
        extractor = self._by_extension.get(ext)
        if extractor is None:
            raise UnsupportedFormatError(
                f"Unsupported file type: {ext or '(none)'}", file_path=str(path)
            )

        text = extractor.extract(path)
        logger.debug("text_extracted", file=path.name, extractor=extractor.name, chars=len(text))
        return text


def _default_extractors() -> List[BaseExtractor]:
    return [
        PdfExtractor(),
        DocxExtractor(),
        PptxExtractor(),
        XlsxExtractor(),
        PlainTextExtractor(),
    ]
