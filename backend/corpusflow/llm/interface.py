"""Interfaces for the remote model collaborators used during ingestion."""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, List, Optional

from corpusflow.types import LLMResponse


class LLMClientInterface(ABC):
    """Abstract interface for text-generation clients.

    The chunking stage only needs a prompt-in, text-out call, optionally
    streamed, so any provider can sit behind this interface.
    """

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate a completion from the LLM.

        Args:
            prompt: The user prompt
            system_prompt: Optional system prompt
            temperature: Sampling temperature (0.0 - 2.0)
            max_tokens: Maximum tokens to generate
            **kwargs: Additional provider-specific parameters

        Returns:
            LLMResponse with content and metadata
        """
        ...

    @abstractmethod
    def generate_stream(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        **kwargs: Any,
    ) -> AsyncIterator[str]:
        """Generate a streaming completion from the LLM.

        Args:
            prompt: The user prompt
            system_prompt: Optional system prompt
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            **kwargs: Additional provider-specific parameters

        Yields:
            Pieces of the generated text
        """
        ...

    @abstractmethod
    def get_model_name(self) -> str:
        """Get the name of the model being used."""
        ...


class EmbeddingClientInterface(ABC):
    """Abstract interface for embedding clients."""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Embed a single text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector
        """
        ...

    @abstractmethod
    def get_model_name(self) -> str:
        """Get the name of the embedding model."""
        ...
