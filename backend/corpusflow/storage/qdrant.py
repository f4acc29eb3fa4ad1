"""Qdrant-backed chunk sink."""

import asyncio
import uuid
from typing import Any, Dict, List, Optional, Sequence

import structlog
from qdrant_client import QdrantClient
from qdrant_client.models import Distance, PointStruct, VectorParams

from corpusflow.config.settings import StorageSettings, get_storage_settings
from corpusflow.storage.base import ChunkSink
from corpusflow.types import Chunk

logger = structlog.get_logger()

# Namespace for deterministic point ids, so re-importing a document overwrites its points
_POINT_NAMESPACE = uuid.UUID("6f1c2a3e-8d4b-4c6e-9a57-2b1e0f3d9c48")


def point_id(document_path: str, index: int) -> str:
    return str(uuid.uuid5(_POINT_NAMESPACE, f"{document_path}#{index}"))


class QdrantChunkStore(ChunkSink):
    """Stores one Qdrant point per chunk.

    The collection is created on ``initialize()`` when the vector size is
    known up front, otherwise on the first save using the size of the
    first embedding.

    Example:
        ```python
        store = QdrantChunkStore(QdrantClient(":memory:"), vector_size=1536)
        await store.initialize()
        await store.save_chunks(chunks)
        ```
    """

    def __init__(
        self,
        client: Optional[QdrantClient] = None,
        collection_name: Optional[str] = None,
        vector_size: Optional[int] = None,
        settings: Optional[StorageSettings] = None,
    ) -> None:
        """Initialize the store.

        Args:
            client: Qdrant client (created from STORAGE_* settings if None)
            collection_name: Collection holding chunk points
            vector_size: Embedding dimension, if known in advance
            settings: Storage settings
        """
        self.settings = settings or get_storage_settings()

        if client is not None:
            self.client = client
        elif self.settings.qdrant_url:
            self.client = QdrantClient(self.settings.qdrant_url)
        else:
            self.client = QdrantClient(host=self.settings.qdrant_host, port=self.settings.qdrant_port)

        self.collection_name = collection_name or self.settings.collection
        self.vector_size = vector_size or self.settings.desired_embedding_dim
        self._collection_ready = False

    async def initialize(self) -> None:
        if self.vector_size:
            await self._run(self._ensure_collection, self.vector_size)

    async def save_chunks(self, chunks: Sequence[Chunk]) -> None:
        if not chunks:
            return

        missing = [c.index for c in chunks if not c.has_embedding]
        if missing:
            raise ValueError(f"Chunks without embeddings cannot be saved: {missing}")

        if not self._collection_ready:
            await self._run(self._ensure_collection, len(chunks[0].embedding))

        points = [
            PointStruct(
                id=point_id(chunk.document_path, chunk.index),
                vector=list(chunk.embedding),
                payload=self._payload(chunk),
            )
            for chunk in chunks
        ]

        try:
            await self._run(self._upsert, points)
        except Exception as e:
            logger.error(
                "failed_to_save_chunks",
                collection=self.collection_name,
                document=chunks[0].document_path,
                error=str(e),
            )
            raise

        logger.info(
            "chunks_saved",
            collection=self.collection_name,
            document=chunks[0].document_path,
            chunk_count=len(points),
        )

    def count(self) -> int:
        """Number of points in the collection."""
        return self.client.count(self.collection_name).count

    def _payload(self, chunk: Chunk) -> Dict[str, Any]:
        return {
            "document_path": chunk.document_path,
            "chunk_index": chunk.index,
            "content": chunk.content,
            "char_count": len(chunk.content),
        }

    def _ensure_collection(self, size: int) -> None:
        names = [c.name for c in self.client.get_collections().collections]
        if self.collection_name not in names:
            self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=VectorParams(size=size, distance=Distance.COSINE),
            )
            logger.info(
                "qdrant_collection_created",
                collection=self.collection_name,
                vector_size=size,
            )
        self.vector_size = size
        self._collection_ready = True

    def _upsert(self, points: List[PointStruct]) -> None:
        self.client.upsert(collection_name=self.collection_name, points=points)

    async def _run(self, fn, *args):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, fn, *args)
