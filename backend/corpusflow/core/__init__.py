"""Core building blocks shared across corpusflow."""

from corpusflow.core.exceptions import (
    ConfigurationError,
    CorpusflowError,
    EmbeddingDimensionError,
    ExtractionError,
    UnsupportedFormatError,
)

__all__ = [
    "CorpusflowError",
    "ConfigurationError",
    "ExtractionError",
    "UnsupportedFormatError",
    "EmbeddingDimensionError",
]
