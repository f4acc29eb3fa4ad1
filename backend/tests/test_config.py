"""Tests for settings, logging setup and core types."""

import dataclasses

import pytest
from pydantic import ValidationError

from corpusflow.config import configure_logging
from corpusflow.config.settings import (
    ChunkingSettings,
    CorpusflowSettings,
    LLMSettings,
    RetrySettings,
)
from corpusflow.types import Chunk, ImportProgress, ImportStage, TokenPanel


class TestSettings:
    """Test pydantic settings."""

    def test_chunking_defaults(self, monkeypatch):
        """Test the default panel budget."""
        for name in ("CHUNKING_TARGET_PANEL_TOKENS", "CHUNKING_OVERLAP_TOKENS", "CHUNKING_TPM"):
            monkeypatch.delenv(name, raising=False)

        settings = ChunkingSettings(_env_file=None)

        assert settings.target_panel_tokens == 3000
        assert settings.overlap_tokens == 400
        assert settings.single_window_budget == 3500
        assert settings.max_output_tokens == 700
        assert settings.tpm == 50000

    def test_env_overrides(self, monkeypatch):
        """Test values are read from prefixed environment variables."""
        monkeypatch.setenv("CHUNKING_TARGET_PANEL_TOKENS", "2000")
        monkeypatch.setenv("RETRY_MAX_RETRIES", "3")
        monkeypatch.setenv("CORPUSFLOW_ENABLE_TRACE_LOGS", "false")

        assert ChunkingSettings(_env_file=None).target_panel_tokens == 2000
        assert RetrySettings(_env_file=None).max_retries == 3
        assert CorpusflowSettings(_env_file=None).enable_trace_logs is False

    def test_chunk_bounds_validated(self):
        """Test the requested chunk size range must be ordered."""
        with pytest.raises(ValidationError):
            ChunkingSettings(min_chunk_tokens=800, max_chunk_tokens=600)

    def test_log_level_normalized(self):
        """Test log levels are upper-cased."""
        assert CorpusflowSettings(log_level="debug").log_level == "DEBUG"

    def test_empty_model_rejected(self):
        """Test model names cannot be blank."""
        with pytest.raises(ValidationError):
            LLMSettings(chat_model="  ")

    def test_configure_logging(self):
        """Test logging can be configured at any level."""
        configure_logging("DEBUG")
        configure_logging("WARNING")


class TestTypes:
    """Test core value types."""

    def test_chunk_is_immutable(self):
        """Test chunks cannot be modified in place."""
        chunk = Chunk(index=0, content="text", document_path="a.txt")

        with pytest.raises(dataclasses.FrozenInstanceError):
            chunk.content = "other"

    def test_chunk_copies(self):
        """Test embedding and renumbering build new chunks."""
        chunk = Chunk(index=0, content="text", document_path="a.txt")

        embedded = chunk.with_embedding([0.1, 0.2])
        moved = embedded.with_index(4)

        assert not chunk.has_embedding
        assert embedded.embedding == (0.1, 0.2)
        assert (moved.index, moved.content, moved.embedding) == (4, "text", (0.1, 0.2))

    def test_panel_token_count(self):
        """Test panel size."""
        assert TokenPanel(text="x", start_token_index=1600, end_token_index=3600).token_count == 2000

    def test_stage_values(self):
        """Test the stage names seen by progress consumers."""
        assert [s.value for s in ImportStage] == [
            "Start", "Extract", "Chunk", "429 wait", "Embed+Save", "Embed", "Save", "Done", "Error",
        ]

    def test_progress_to_dict(self):
        """Test event serialization."""
        event = ImportProgress(1, 2, "a.pdf", ImportStage.THROTTLE_WAIT, "30s (embed retry 1/6)")

        assert event.to_dict() == {
            "current": 1,
            "total": 2,
            "file_name": "a.pdf",
            "stage": "429 wait",
            "info": "30s (embed retry 1/6)",
            "stage_elapsed_ms": None,
        }
