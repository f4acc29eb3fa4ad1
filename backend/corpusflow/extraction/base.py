"""Extractor base interface."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import FrozenSet


class BaseExtractor(ABC):
    """Turns one file format into plain text."""

    extensions: FrozenSet[str] = frozenset()

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable extractor name."""
        pass

    @abstractmethod
    def extract(self, file_path: Path) -> str:
        """
        Extract the text of a file.

        Blocking; callers on the event loop run it in an executor.

        Args:
            file_path: Path to the file

        Returns:
            Extracted text (possibly empty)

        Raises:
            ExtractionError: If the file cannot be read
        """
        pass

    def supports(self, file_path: Path) -> bool:
        return Path(file_path).suffix.lower() in self.extensions
