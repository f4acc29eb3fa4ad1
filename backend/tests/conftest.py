"""Shared fixtures for corpusflow tests."""

import random
from typing import Optional

import pytest

from corpusflow.chunking.service import PanelChunkingService
from corpusflow.config.settings import (
    ChunkingSettings,
    CorpusflowSettings,
    StorageSettings,
)
from corpusflow.llm.client import MockEmbeddingClient, MockLLMClient
from corpusflow.llm.rate_limiter import TokenRateLimiter
from corpusflow.llm.retry import RetryOrchestrator, RetryPolicy
from corpusflow.pipeline.importer import ImportPipeline
from tests.fakes import CharTokenizer, FakeClock, RecordingSink


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tokenizer() -> CharTokenizer:
    return CharTokenizer()


@pytest.fixture
def chunking_settings() -> ChunkingSettings:
    return ChunkingSettings(
        enable_panelization=True,
        target_panel_tokens=100,
        overlap_tokens=20,
        single_window_budget=150,
        max_output_tokens=50,
        tpm=1_000_000,
        stream_output=True,
        stream_preview_chars=20,
        stream_update_interval_ms=0,
    )


@pytest.fixture
def pipeline_settings(tmp_path) -> CorpusflowSettings:
    return CorpusflowSettings(
        enable_trace_logs=False,
        trace_dir=str(tmp_path / "traces"),
        min_delay_between_requests_ms=0,
        show_stage_durations=False,
    )


@pytest.fixture
def storage_settings() -> StorageSettings:
    return StorageSettings(desired_embedding_dim=None)


@pytest.fixture
def retry(fake_clock) -> RetryOrchestrator:
    policy = RetryPolicy(max_attempts=6, base_delay=1.5, max_delay=60.0, jitter=0.25)
    return RetryOrchestrator(policy, sleep=fake_clock.sleep, rng=random.Random(7))


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def make_chunking(chunking_settings, retry, tokenizer, fake_clock):
    """Factory for a chunking service around a scripted chat client."""

    def factory(client: MockLLMClient, settings: Optional[ChunkingSettings] = None, rate_limiter=None):
        return PanelChunkingService(
            client,
            settings=settings or chunking_settings,
            retry=retry,
            rate_limiter=rate_limiter
            or TokenRateLimiter(1_000_000, clock=fake_clock, sleep=fake_clock.sleep),
            tokenizer=tokenizer,
        )

    return factory


@pytest.fixture
def make_pipeline(make_chunking, retry, sink, pipeline_settings, storage_settings, fake_clock):
    """Factory for an import pipeline with in-memory collaborators."""

    def factory(
        client: Optional[MockLLMClient] = None,
        embedder: Optional[MockEmbeddingClient] = None,
        settings: Optional[CorpusflowSettings] = None,
        storage: Optional[StorageSettings] = None,
    ) -> ImportPipeline:
        chat = client or MockLLMClient(responder=lambda prompt: "First part.\n---CHUNK---\nSecond part.")
        return ImportPipeline(
            chunking=make_chunking(chat),
            embedder=embedder or MockEmbeddingClient(dimensions=8),
            sink=sink,
            retry=retry,
            settings=settings or pipeline_settings,
            storage_settings=storage or storage_settings,
            sleep=fake_clock.sleep,
        )

    return factory
