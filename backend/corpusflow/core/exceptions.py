"""Custom exceptions for corpusflow."""


class CorpusflowError(Exception):
    """Base exception for corpusflow errors."""
    pass


class ConfigurationError(CorpusflowError):
    """Raised when configuration is invalid."""
    pass


class ExtractionError(CorpusflowError):
    """Raised when text cannot be extracted from a file."""

    def __init__(self, message: str, file_path: str = ""):
        super().__init__(message)
        self.file_path = file_path


class UnsupportedFormatError(ExtractionError):
    """Raised when no extractor handles a file extension."""
    pass


class EmbeddingDimensionError(CorpusflowError):
    """Raised when an embedding does not have the configured dimension."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}. "
            "Check the embedding model (e.g. 'text-embedding-3-large' for 3072)."
        )
        self.expected = expected
        self.actual = actual
