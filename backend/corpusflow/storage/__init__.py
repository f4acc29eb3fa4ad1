"""Chunk storage sinks."""

from corpusflow.storage.base import ChunkSink
from corpusflow.storage.qdrant import QdrantChunkStore, point_id

__all__ = [
    "ChunkSink",
    "QdrantChunkStore",
    "point_id",
]
