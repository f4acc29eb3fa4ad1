"""Document import pipeline: Extract -> Chunk -> Embed+Save."""

import asyncio
import time
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Union

import structlog

from corpusflow.chunking.executor import is_marker
from corpusflow.chunking.service import PanelChunkingService
from corpusflow.config.settings import (
    CorpusflowSettings,
    StorageSettings,
    get_settings,
    get_storage_settings,
)
from corpusflow.core.exceptions import ConfigurationError, EmbeddingDimensionError
from corpusflow.diagnostics.trace import NullTraceLog, TraceLog
from corpusflow.extraction.registry import TextExtractor
from corpusflow.llm.interface import EmbeddingClientInterface
from corpusflow.llm.outcomes import guard
from corpusflow.llm.retry import RetryOrchestrator
from corpusflow.pipeline.progress import ProgressReporter, sanitize_preview
from corpusflow.storage.base import ChunkSink
from corpusflow.types import Chunk, ImportStage, ProgressSink, WaitCallback

logger = structlog.get_logger()

PathLike = Union[str, Path]


def format_wait_info(seconds: float, operation: str, attempt: int, max_attempts: int) -> str:
    """Info text of a ``429 wait`` event, e.g. ``"60s (chunk retry 2/6)"``."""
    return f"{seconds:.0f}s ({operation} retry {attempt}/{max_attempts})"


def _error_line(exc: BaseException) -> str:
    return sanitize_preview(str(exc)) or type(exc).__name__


def _require_file(path: PathLike) -> Path:
    file_path = Path(path)
    if not str(path).strip() or not file_path.is_file():
        raise FileNotFoundError(f"File not found: {file_path}")
    return file_path


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class ImportPipeline:
    """Imports documents into the retrieval corpus.

    Every document runs Extract, Chunk and Embed+Save in order; batches run
    documents strictly one after another and stop at the first failure.

    Example:
        ```python
        pipeline = ImportPipeline(
            chunking=PanelChunkingService(LiteLLMClient()),
            embedder=LiteLLMEmbeddingClient(),
            sink=QdrantChunkStore(),
        )
        await pipeline.import_files(["a.pdf", "b.docx"], on_progress=print)
        ```
    """

    def __init__(
        self,
        chunking: PanelChunkingService,
        embedder: EmbeddingClientInterface,
        sink: ChunkSink,
        extractor: Optional[TextExtractor] = None,
        retry: Optional[RetryOrchestrator] = None,
        settings: Optional[CorpusflowSettings] = None,
        storage_settings: Optional[StorageSettings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            chunking: Chunking service
            embedder: Embedding client
            sink: Storage sink receiving each document's chunks
            extractor: Text extractor (defaults to all supported formats)
            retry: Retry orchestrator for embedding calls
            settings: Pipeline settings
            storage_settings: Storage settings (for the dimension guard)
            sleep: Coroutine used for the pause between embedding calls
        """
        self.chunking = chunking
        self.embedder = embedder
        self.sink = sink
        self.extractor = extractor or TextExtractor()
        self.retry = retry or chunking.retry
        self.settings = settings or get_settings()
        storage_settings = storage_settings or get_storage_settings()
        self.desired_embedding_dim = storage_settings.desired_embedding_dim
        self._sleep = sleep
        self._sink_ready = False

        self._folder_path: Optional[Path] = None
        if self.settings.default_folder_path:
            self._folder_path = Path(self.settings.default_folder_path).expanduser().resolve()

    async def _ensure_sink(self) -> None:
        # Initialized once, before the first save
        if not self._sink_ready:
            await self.sink.initialize()
            self._sink_ready = True

    # ------------------------------------------------------------------
    # Folder handling
    # ------------------------------------------------------------------

    @property
    def folder_path(self) -> Optional[Path]:
        return self._folder_path

    def set_folder_path(self, path: PathLike) -> None:
        """
        Set the folder scanned by ``import_folder``.

        Raises:
            FileNotFoundError: If the path does not exist
            NotADirectoryError: If the path is not a directory
        """
        folder = Path(path).expanduser()
        if not str(path).strip() or not folder.exists():
            raise FileNotFoundError(f"Folder not found: {path}")
        if not folder.is_dir():
            raise NotADirectoryError(f"Not a folder: {path}")
        self._folder_path = folder.resolve()

    def list_supported_files(self, folder: Optional[PathLike] = None) -> List[Path]:
        """Supported files under ``folder`` (recursive, sorted)."""
        root = Path(folder) if folder is not None else self._folder_path
        if root is None:
            raise ConfigurationError("Default folder path is not set")
        if not root.exists():
            raise FileNotFoundError(f"Folder not found: {root}")
        if not root.is_dir():
            raise NotADirectoryError(f"Not a folder: {root}")

        return sorted(
            p for p in root.rglob("*") if p.is_file() and self.extractor.supports(p)
        )

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def import_folder(
        self,
        on_progress: Optional[ProgressSink] = None,
        folder: Optional[PathLike] = None,
    ) -> int:
        """
        Import every supported file in the default (or given) folder.

        Returns:
            Number of documents imported
        """
        files = self.list_supported_files(folder)
        logger.info(
            "importing_folder",
            folder=str(folder or self._folder_path),
            file_count=len(files),
        )
        await self.import_files(files, on_progress=on_progress)
        return len(files)

    async def import_files(
        self,
        paths: Sequence[PathLike],
        on_progress: Optional[ProgressSink] = None,
    ) -> None:
        """
        Import files one at a time.

        ``Start`` and ``Done`` bracket every document. The first failure
        emits ``Error`` with a one-line message and is re-raised; later
        files are not touched.
        """
        total = len(paths)
        for i, path in enumerate(paths, start=1):
            reporter = self._reporter(Path(path).name, i, total, on_progress)
            await self._with_envelope(
                reporter, lambda path=path, i=i: self._import_document(path, on_progress, i, total)
            )

    async def import_file(
        self,
        path: PathLike,
        on_progress: Optional[ProgressSink] = None,
        current: int = 1,
        total: int = 1,
    ) -> List[Chunk]:
        """
        Import a single file and return its saved chunks.

        A missing file raises ``FileNotFoundError`` before any event is emitted.
        """
        _require_file(path)
        reporter = self._reporter(Path(path).name, current, total, on_progress)
        return await self._with_envelope(
            reporter, lambda: self._import_document(path, on_progress, current, total)
        )

    async def import_text(
        self,
        text: str,
        synthetic_path: str,
        on_progress: Optional[ProgressSink] = None,
        current: int = 1,
        total: int = 1,
    ) -> List[Chunk]:
        """
        Import raw text (no extraction) under ``synthetic_path``.

        Returns:
            The saved chunks
        """
        name = Path(synthetic_path).name or synthetic_path
        reporter = self._reporter(name, current, total, on_progress)

        async def run() -> List[Chunk]:
            trace = await self._open_trace(name, f"ingestion text trace for {name}")
            return await self._traced(
                trace, lambda: self._chunk_embed_save(text, synthetic_path, reporter, trace)
            )

        return await self._with_envelope(reporter, run)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _import_document(
        self,
        path: PathLike,
        on_progress: Optional[ProgressSink],
        current: int,
        total: int,
    ) -> List[Chunk]:
        file_path = _require_file(path)
        name = file_path.name
        reporter = self._reporter(name, current, total, on_progress)
        trace = await self._open_trace(name, f"ingestion trace for {name}")

        async def run() -> List[Chunk]:
            text = await self._extract(file_path, reporter, trace)
            return await self._chunk_embed_save(text, str(file_path), reporter, trace)

        return await self._traced(trace, run)

    async def _extract(
        self, file_path: Path, reporter: ProgressReporter, trace: TraceLog
    ) -> str:
        started = time.perf_counter()
        reporter.report(ImportStage.EXTRACT)

        loop = asyncio.get_event_loop()
        text = await loop.run_in_executor(None, self.extractor.extract, file_path)

        tokens = self.chunking.count_tokens(text)
        await trace.write_line(f"EXTRACT ok chars={len(text):,} tok={tokens:,}")
        if self.settings.show_stage_durations:
            reporter.report(ImportStage.EXTRACT, stage_elapsed_ms=_elapsed_ms(started))
        return text

    async def _chunk_embed_save(
        self,
        text: str,
        document_path: str,
        reporter: ProgressReporter,
        trace: TraceLog,
    ) -> List[Chunk]:
        chunks = await self._chunk(text, document_path, reporter, trace)
        return await self._embed_and_save(chunks, reporter, trace)

    async def _chunk(
        self,
        text: str,
        document_path: str,
        reporter: ProgressReporter,
        trace: TraceLog,
    ) -> List[Chunk]:
        started = time.perf_counter()
        estimate = self.chunking.count_tokens(text)
        reporter.report(ImportStage.CHUNK, f"~{estimate:,} prompt tok (est)")

        def on_stream(chars: int, preview: str) -> None:
            if not preview:
                return
            if is_marker(preview):
                trace.write_line_nowait(preview)
                logger.debug("chunk_stream_marker", file=reporter.file_name, marker=preview)
                return
            clean = sanitize_preview(preview)
            if clean:
                reporter.report(ImportStage.CHUNK, clean)

        chunks = await self.chunking.chunk(
            text,
            document_path=document_path,
            on_stream=on_stream,
            on_wait=self._wait_handler(reporter, trace),
        )
        await trace.drain()
        await trace.write_line(f"CHUNK ok chunks={len(chunks):,}")

        if self.settings.show_stage_durations:
            reporter.report(ImportStage.CHUNK, stage_elapsed_ms=_elapsed_ms(started))
        return chunks

    async def _embed_and_save(
        self, chunks: List[Chunk], reporter: ProgressReporter, trace: TraceLog
    ) -> List[Chunk]:
        started = time.perf_counter()
        total = len(chunks)
        reporter.report(ImportStage.EMBED_SAVE, f"chunks={total}")

        on_wait = self._wait_handler(reporter, trace)
        delay = self.settings.min_delay_between_requests_ms / 1000.0
        embedded: List[Chunk] = []

        for i, chunk in enumerate(chunks):
            if delay > 0 and i > 0:
                await self._sleep(delay)

            tokens = self.chunking.count_tokens(chunk.content)
            chunk_started = time.perf_counter()
            vector = await self.retry.execute(
                guard(lambda content=chunk.content: self.embedder.embed(content)),
                on_wait=on_wait,
                operation_name="embed",
            )

            if self.desired_embedding_dim and len(vector) != self.desired_embedding_dim:
                raise EmbeddingDimensionError(self.desired_embedding_dim, len(vector))

            embedded.append(chunk.with_embedding(vector))
            reporter.report(
                ImportStage.EMBED,
                f"chunk {i + 1}/{total} tok={tokens} emb_dim={len(vector)} "
                f"{_elapsed_ms(chunk_started)}ms",
            )

        await trace.drain()
        await trace.write_line(f"EMBED ok chunks={total:,}")

        reporter.report(ImportStage.SAVE, f"writing {total} chunks...")
        await self._ensure_sink()
        await self.sink.save_chunks(embedded)
        reporter.report(ImportStage.SAVE, f"saved {total} chunks")
        await trace.write_line(f"SAVE ok chunks={total:,}")

        if self.settings.show_stage_durations:
            reporter.report(ImportStage.EMBED_SAVE, stage_elapsed_ms=_elapsed_ms(started))
        return embedded

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _reporter(
        self, name: str, current: int, total: int, on_progress: Optional[ProgressSink]
    ) -> ProgressReporter:
        return ProgressReporter(name, current, total, [on_progress] if on_progress else None)

    def _wait_handler(self, reporter: ProgressReporter, trace: TraceLog) -> WaitCallback:
        max_attempts = self.retry.policy.max_attempts

        def on_wait(seconds: float, attempt: int, operation: str) -> None:
            info = format_wait_info(seconds, operation, attempt, max_attempts)
            reporter.report(ImportStage.THROTTLE_WAIT, info)
            trace.write_line_nowait(f"429 wait {info}")

        return on_wait

    async def _open_trace(self, name: str, header: str):
        if not self.settings.enable_trace_logs:
            return NullTraceLog()
        trace = TraceLog(self.settings.trace_dir, name)
        await trace.init(header)
        return trace

    async def _traced(self, trace, run: Callable[[], Awaitable[List[Chunk]]]) -> List[Chunk]:
        try:
            return await run()
        except Exception as e:
            await trace.drain()
            await trace.write_line(f"ERROR {type(e).__name__}: {_error_line(e)}")
            raise

    async def _with_envelope(
        self, reporter: ProgressReporter, run: Callable[[], Awaitable[List[Chunk]]]
    ) -> List[Chunk]:
        reporter.report(ImportStage.START)
        try:
            result = await run()
        except Exception as e:
            logger.error(
                "import_failed",
                file=reporter.file_name,
                current=reporter.current,
                total=reporter.total,
                error=str(e),
            )
            reporter.report(ImportStage.ERROR, _error_line(e))
            raise

        reporter.report(ImportStage.DONE)
        logger.info("import_complete", file=reporter.file_name, chunks=len(result))
        return result


