"""Configuration settings for the corpusflow ingestion pipeline."""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CorpusflowSettings(BaseSettings):
    """Pipeline-wide settings."""

    model_config = SettingsConfigDict(
        env_prefix="CORPUSFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level",
    )

    # Ingestion settings
    default_folder_path: Optional[str] = Field(
        default=None,
        description="Folder scanned by batch imports when none is given",
    )
    min_delay_between_requests_ms: int = Field(
        default=0,
        ge=0,
        le=60000,
        description="Fixed pause between embedding calls for burst smoothing",
    )

    # Diagnostics
    enable_trace_logs: bool = Field(
        default=True,
        description="Write a per-document trace log for every import",
    )
    trace_dir: str = Field(
        default="./.diagnostics/traces",
        description="Directory for per-document trace logs",
    )
    show_stage_durations: bool = Field(
        default=False,
        description="Emit an extra progress event with elapsed time per stage",
    )

    # API settings
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="API server port",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log level."""
        return str(v).upper()


@lru_cache()
def get_settings() -> CorpusflowSettings:
    """Get cached settings instance.

    Returns:
        CorpusflowSettings instance
    """
    return CorpusflowSettings()


class LLMSettings(BaseSettings):
    """Chat and embedding model settings (any LiteLLM-compatible model)."""

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
    )

    chat_model: str = Field(
        default="gpt-4.1-mini",
        description="Model used to split documents into chunks",
    )
    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="Model used to embed chunks",
    )
    api_base: Optional[str] = Field(
        default=None,
        description="Custom API base URL for LiteLLM",
    )
    api_key: Optional[str] = Field(
        default=None,
        description="API key (falls back to the provider's own env variable)",
    )
    timeout: int = Field(
        default=120,
        ge=1,
        le=600,
        description="Timeout for LLM API calls in seconds",
    )
    embedding_dimensions: Optional[int] = Field(
        default=None,
        ge=1,
        description="Requested embedding size for models that support it",
    )

    @field_validator("chat_model", "embedding_model")
    @classmethod
    def validate_model(cls, v: str) -> str:
        """Validate that the model string is not empty."""
        if not v or not v.strip():
            raise ValueError("Model name cannot be empty")
        return v.strip()


@lru_cache()
def get_llm_settings() -> LLMSettings:
    """Get cached LLM settings instance.

    Returns:
        LLMSettings instance
    """
    return LLMSettings()


class ChunkingSettings(BaseSettings):
    """Token panelization and chunk-request settings."""

    model_config = SettingsConfigDict(
        env_prefix="CHUNKING_",
        env_file=".env",
        extra="ignore",
    )

    # Panelization
    enable_panelization: bool = Field(
        default=True,
        description="Split large documents into overlapping token panels",
    )
    target_panel_tokens: int = Field(
        default=3000,
        ge=1,
        description="Tokens per panel",
    )
    overlap_tokens: int = Field(
        default=400,
        ge=0,
        description="Tokens shared between consecutive panels",
    )
    single_window_budget: int = Field(
        default=3500,
        ge=1,
        description="Documents at or below this size are chunked in one call",
    )
    max_output_tokens: Optional[int] = Field(
        default=700,
        ge=1,
        description="Completion token cap per chunk request",
    )
    tpm: int = Field(
        default=50000,
        ge=1,
        description="Tokens-per-minute budget for chunk requests",
    )
    tokenizer_encoding: str = Field(
        default="o200k_base",
        description="tiktoken encoding used for budgeting",
    )

    # Target size of the chunks the model is asked to produce
    min_chunk_tokens: int = Field(
        default=400,
        ge=1,
        description="Lower bound of requested chunk size",
    )
    max_chunk_tokens: int = Field(
        default=600,
        ge=1,
        description="Upper bound of requested chunk size",
    )

    # Streaming / diagnostics
    stream_output: bool = Field(
        default=True,
        description="Stream chunking output and forward previews",
    )
    stream_preview_chars: int = Field(
        default=120,
        ge=10,
        le=2000,
        description="Characters of streamed tail shown in previews",
    )
    stream_update_interval_ms: int = Field(
        default=250,
        ge=0,
        description="Minimum interval between streamed preview updates",
    )
    prompt_dump_dir: Optional[str] = Field(
        default=None,
        description="Write every chunk prompt as JSON into this directory",
    )
    stream_dump_dir: Optional[str] = Field(
        default=None,
        description="Write every raw chunk response into this directory",
    )
    emit_panel_info: bool = Field(
        default=False,
        description="Emit @panel:info marker lines",
    )

    @model_validator(mode="after")
    def validate_chunk_bounds(self) -> "ChunkingSettings":
        """Ensure the requested chunk size range is ordered."""
        if self.min_chunk_tokens > self.max_chunk_tokens:
            raise ValueError("min_chunk_tokens must not exceed max_chunk_tokens")
        return self


@lru_cache()
def get_chunking_settings() -> ChunkingSettings:
    """Get cached chunking settings instance.

    Returns:
        ChunkingSettings instance
    """
    return ChunkingSettings()


class RetrySettings(BaseSettings):
    """Throttle retry/backoff settings."""

    model_config = SettingsConfigDict(
        env_prefix="RETRY_",
        env_file=".env",
        extra="ignore",
    )

    max_retries: int = Field(
        default=6,
        ge=0,
        le=50,
        description="Retries allowed after throttled calls",
    )
    base_delay_ms: int = Field(
        default=1500,
        ge=0,
        description="First fallback delay, doubled on every fallback wait",
    )
    max_delay_ms: int = Field(
        default=60000,
        ge=0,
        description="Cap for the exponential fallback delay",
    )
    jitter_ms: int = Field(
        default=250,
        ge=0,
        description="Random jitter added to every wait",
    )


@lru_cache()
def get_retry_settings() -> RetrySettings:
    """Get cached retry settings instance.

    Returns:
        RetrySettings instance
    """
    return RetrySettings()


class StorageSettings(BaseSettings):
    """Vector store settings."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        extra="ignore",
    )

    qdrant_url: Optional[str] = Field(
        default=None,
        description="Qdrant URL (overrides host/port; ':memory:' for local)",
    )
    qdrant_host: str = Field(
        default="localhost",
        description="Qdrant host",
    )
    qdrant_port: int = Field(
        default=6333,
        ge=1,
        le=65535,
        description="Qdrant port",
    )
    collection: str = Field(
        default="corpus_chunks",
        description="Qdrant collection holding chunk vectors",
    )
    desired_embedding_dim: Optional[int] = Field(
        default=None,
        ge=1,
        description="Reject embeddings of any other dimension",
    )


@lru_cache()
def get_storage_settings() -> StorageSettings:
    """Get cached storage settings instance.

    Returns:
        StorageSettings instance
    """
    return StorageSettings()
