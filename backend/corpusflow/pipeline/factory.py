"""Builds an ImportPipeline wired from settings."""

from typing import Optional

from corpusflow.chunking.service import PanelChunkingService
from corpusflow.config.settings import get_chunking_settings
from corpusflow.llm.client import LiteLLMClient, LiteLLMEmbeddingClient
from corpusflow.llm.interface import EmbeddingClientInterface, LLMClientInterface
from corpusflow.llm.rate_limiter import create_rate_limiter
from corpusflow.llm.retry import RetryOrchestrator
from corpusflow.pipeline.importer import ImportPipeline
from corpusflow.storage.base import ChunkSink
from corpusflow.storage.qdrant import QdrantChunkStore


def create_pipeline(
    chat_client: Optional[LLMClientInterface] = None,
    embedder: Optional[EmbeddingClientInterface] = None,
    sink: Optional[ChunkSink] = None,
) -> ImportPipeline:
    """
    Create a pipeline; missing collaborators come from LLM_* / STORAGE_* settings.

    The chunking service and the embedding stage share one retry policy and
    the pipeline owns its own rate limiter.
    """
    chunking_settings = get_chunking_settings()
    retry = RetryOrchestrator()

    chunking = PanelChunkingService(
        chat_client or LiteLLMClient(),
        settings=chunking_settings,
        retry=retry,
        rate_limiter=create_rate_limiter(chunking_settings.tpm),
    )

    return ImportPipeline(
        chunking=chunking,
        embedder=embedder or LiteLLMEmbeddingClient(),
        sink=sink or QdrantChunkStore(),
        retry=retry,
    )
