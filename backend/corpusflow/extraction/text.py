"""Plain text and Markdown extraction."""

from pathlib import Path

from corpusflow.core.exceptions import ExtractionError
from corpusflow.extraction.base import BaseExtractor

ENCODINGS = ("utf-8", "utf-8-sig", "cp1252", "latin-1")


class PlainTextExtractor(BaseExtractor):
    """Reads text files, trying several encodings."""

    extensions = frozenset({".txt", ".md"})

    @property
    def name(self) -> str:
        return "text"

    def extract(self, file_path: Path) -> str:
        data = Path(file_path).read_bytes()
        for encoding in ENCODINGS:
            try:
                return data.decode(encoding)
            except UnicodeDecodeError:
                continue

        raise ExtractionError(
            f"Could not decode file with any encoding: {file_path}",
            file_path=str(file_path),
        )
