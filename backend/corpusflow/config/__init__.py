"""Configuration module for corpusflow."""

from corpusflow.config.logging import configure_logging
from corpusflow.config.settings import (
    ChunkingSettings,
    CorpusflowSettings,
    LLMSettings,
    RetrySettings,
    StorageSettings,
    get_chunking_settings,
    get_llm_settings,
    get_retry_settings,
    get_settings,
    get_storage_settings,
)

__all__ = [
    "CorpusflowSettings",
    "LLMSettings",
    "ChunkingSettings",
    "RetrySettings",
    "StorageSettings",
    "get_settings",
    "get_llm_settings",
    "get_chunking_settings",
    "get_retry_settings",
    "get_storage_settings",
    "configure_logging",
]
