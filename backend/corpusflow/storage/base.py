"""Storage sink interface."""

from abc import ABC, abstractmethod
from typing import Sequence

from corpusflow.types import Chunk


class ChunkSink(ABC):
    """Receives the embedded chunks of one document in a single batch."""

    async def initialize(self) -> None:
        """Prepare the backing store (create collections, tables, ...)."""
        return None

    @abstractmethod
    async def save_chunks(self, chunks: Sequence[Chunk]) -> None:
        """
        Persist a document's chunks.

        Args:
            chunks: Chunks in index order, every one carrying an embedding
        """
        pass
