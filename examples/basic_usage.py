"""
Example: Basic corpusflow Usage

This example imports a small text document and a folder through the
pipeline using mock clients and an in-memory Qdrant, printing every
progress event. Swap in LiteLLMClient / LiteLLMEmbeddingClient for real
models.
"""

import asyncio
import tempfile
from pathlib import Path

from qdrant_client import QdrantClient

from corpusflow.chunking import PanelChunkingService
from corpusflow.config import ChunkingSettings, CorpusflowSettings, configure_logging
from corpusflow.llm import MockEmbeddingClient, MockLLMClient, RetryOrchestrator
from corpusflow.pipeline import ImportPipeline
from corpusflow.storage import QdrantChunkStore
from corpusflow.types import ImportProgress


def print_progress(event: ImportProgress) -> None:
    info = f" {event.info}" if event.info else ""
    print(f"[{event.current}/{event.total}] {event.file_name} {event.stage.value}{info}")


def split_paragraphs(prompt: str) -> str:
    """Stand-in for the chat model: one chunk per paragraph."""
    paragraphs = [p.strip() for p in prompt.split("\n\n") if p.strip()]
    return "\n---CHUNK---\n".join(paragraphs)


def build_pipeline() -> ImportPipeline:
    retry = RetryOrchestrator()
    chunking = PanelChunkingService(
        MockLLMClient(responder=split_paragraphs),
        settings=ChunkingSettings(stream_update_interval_ms=0),
        retry=retry,
    )
    return ImportPipeline(
        chunking=chunking,
        embedder=MockEmbeddingClient(dimensions=16),
        sink=QdrantChunkStore(QdrantClient(":memory:"), collection_name="example"),
        retry=retry,
        settings=CorpusflowSettings(enable_trace_logs=False),
    )


async def text_example():
    """Import raw text."""
    print("=" * 60)
    print("Text Import Example")
    print("=" * 60)

    document = """
    Rate limits are enforced per minute and per request.

    Large documents are split into overlapping panels, each chunked
    separately and stitched back together.

    Every chunk is embedded and saved to the vector store.
    """

    pipeline = build_pipeline()
    chunks = await pipeline.import_text(document, "notes/limits.txt", on_progress=print_progress)

    print(f"\n✓ Chunks saved: {len(chunks)}")
    for chunk in chunks:
        print(f"  #{chunk.index}: {chunk.content[:60]}")


async def folder_example():
    """Import every supported file in a folder."""
    print("\n" + "=" * 60)
    print("Folder Import Example")
    print("=" * 60)

    with tempfile.TemporaryDirectory() as tmp:
        folder = Path(tmp)
        (folder / "a.txt").write_text("First file.\n\nIt has two paragraphs.", encoding="utf-8")
        (folder / "b.md").write_text("# Second file\n\nMarkdown works too.", encoding="utf-8")

        pipeline = build_pipeline()
        pipeline.set_folder_path(folder)
        count = await pipeline.import_folder(on_progress=print_progress)

        print(f"\n✓ Documents imported: {count}")
        print(f"✓ Points stored: {pipeline.sink.count()}")


async def main():
    configure_logging("WARNING")
    await text_example()
    await folder_example()


if __name__ == "__main__":
    asyncio.run(main())
