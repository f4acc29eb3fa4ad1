"""Token-budget-aware chunking of whole documents."""

from typing import List, Optional

import structlog

from corpusflow.chunking.executor import MARKER_PREFIX, ChunkRequestExecutor
from corpusflow.chunking.panels import build_token_panels
from corpusflow.chunking.prompts import ChunkPrompt, build_panel_prompt, build_single_window_prompt
from corpusflow.chunking.stitcher import PanelStitcher
from corpusflow.chunking.tokenizer import TokenCounter
from corpusflow.config.settings import ChunkingSettings, get_chunking_settings
from corpusflow.llm.interface import LLMClientInterface
from corpusflow.llm.outcomes import guard
from corpusflow.llm.rate_limiter import TokenRateLimiter
from corpusflow.llm.retry import RetryOrchestrator
from corpusflow.types import Chunk, StreamSink, WaitCallback

logger = structlog.get_logger()


class PanelChunkingService:
    """Splits documents into semantic chunks with the chat model.

    Documents within the single-window budget are chunked in one request.
    Larger ones are cut into overlapping token panels that are chunked one
    after another, each behind the rate limiter and the retry orchestrator,
    and the per-panel results are stitched together.

    Example:
        ```python
        service = PanelChunkingService(LiteLLMClient())
        chunks = await service.chunk(text, document_path="policy.pdf")
        ```
    """

    def __init__(
        self,
        client: LLMClientInterface,
        settings: Optional[ChunkingSettings] = None,
        retry: Optional[RetryOrchestrator] = None,
        rate_limiter: Optional[TokenRateLimiter] = None,
        tokenizer: Optional[TokenCounter] = None,
        executor: Optional[ChunkRequestExecutor] = None,
    ) -> None:
        """
        Initialize the chunking service.

        Args:
            client: Chat model client
            settings: Chunking settings (defaults from CHUNKING_* env)
            retry: Retry orchestrator wrapping every chunk request
            rate_limiter: Per-minute token budget shared by chunk requests
            tokenizer: Token counter used for budgeting and panels
            executor: Chunk request executor
        """
        self.settings = settings or get_chunking_settings()
        self.retry = retry or RetryOrchestrator()
        self.rate_limiter = rate_limiter or TokenRateLimiter(self.settings.tpm)
        self.tokenizer = tokenizer or TokenCounter(self.settings.tokenizer_encoding)
        self.executor = executor or ChunkRequestExecutor.from_settings(client, self.settings)
        self._config_reported = False

    def count_tokens(self, text: str) -> int:
        return self.tokenizer.count(text)

    def _config_marker(self) -> str:
        s = self.settings
        return (
            f"{MARKER_PREFIX}config target={s.target_panel_tokens} "
            f"overlap={s.overlap_tokens} maxOut={s.max_output_tokens} "
            f"tpm={s.tpm} singleWin={s.single_window_budget}"
        )

    def _request_estimate(self, prompt_tokens: int) -> int:
        return prompt_tokens + (self.settings.max_output_tokens or 0)

    async def _send(
        self,
        prompt: ChunkPrompt,
        estimate: int,
        panel_number: int,
        panel_count: int,
        document_path: Optional[str],
        on_stream: Optional[StreamSink],
    ) -> List[Chunk]:
        # Every attempt, retries included, is charged against the budget
        await self.rate_limiter.acquire(estimate)
        return await self.executor.execute(
            prompt, panel_number, panel_count, document_path, on_stream
        )

    async def chunk(
        self,
        text: str,
        document_path: Optional[str] = None,
        on_stream: Optional[StreamSink] = None,
        on_wait: Optional[WaitCallback] = None,
    ) -> List[Chunk]:
        """
        Chunk a document.

        Args:
            text: Extracted document text
            document_path: Path recorded on every chunk
            on_stream: Sink for streamed previews and ``@panel:`` markers
            on_wait: Called before every throttle wait

        Returns:
            Chunks with contiguous indices starting at 0
        """
        if on_stream is not None and not self._config_reported:
            self._config_reported = True
            on_stream(0, self._config_marker())
            if self.settings.emit_panel_info:
                cap = self.settings.max_output_tokens
                on_stream(
                    0,
                    f"{MARKER_PREFIX}info "
                    + (f"using max_tokens={cap}" if cap else "omitting max tokens"),
                )

        tokens = self.tokenizer.encode(text)
        total = len(tokens)
        s = self.settings

        if not s.enable_panelization or total <= s.single_window_budget:
            return await self._chunk_single_window(
                text, total, document_path, on_stream, on_wait
            )

        panels = build_token_panels(
            tokens, s.target_panel_tokens, s.overlap_tokens, self.tokenizer.decode
        )
        logger.info(
            "panelized_document",
            document=document_path,
            tokens=total,
            panels=len(panels),
        )

        stitcher = PanelStitcher()
        for i, panel in enumerate(panels, start=1):
            if on_stream is not None:
                on_stream(
                    0,
                    f"{MARKER_PREFIX}start {i}/{len(panels)} "
                    f"in={panel.token_count} out={s.max_output_tokens}",
                )

            prompt = build_panel_prompt(
                panel.text,
                panel_number=i,
                panel_count=len(panels),
                overlap_tokens=s.overlap_tokens,
                min_chunk_tokens=s.min_chunk_tokens,
                max_chunk_tokens=s.max_chunk_tokens,
            )
            estimate = self._request_estimate(panel.token_count)
            panel_chunks = await self.retry.execute(
                guard(
                    lambda prompt=prompt, i=i, estimate=estimate: self._send(
                        prompt, estimate, i, len(panels), document_path, on_stream
                    )
                ),
                on_wait=on_wait,
                operation_name="chunk",
            )
            stitcher.add(panel_chunks)

        chunks = stitcher.result()
        logger.info(
            "chunking_complete",
            document=document_path,
            panels=len(panels),
            chunks=len(chunks),
        )
        return chunks

    async def _chunk_single_window(
        self,
        text: str,
        total_tokens: int,
        document_path: Optional[str],
        on_stream: Optional[StreamSink],
        on_wait: Optional[WaitCallback],
    ) -> List[Chunk]:
        s = self.settings
        if on_stream is not None:
            on_stream(0, f"{MARKER_PREFIX}start 1/1 in={total_tokens} out={s.max_output_tokens}")

        prompt = build_single_window_prompt(text, s.min_chunk_tokens, s.max_chunk_tokens)
        chunks = await self.retry.execute(
            guard(
                lambda: self._send(
                    prompt,
                    self._request_estimate(total_tokens),
                    1,
                    1,
                    document_path,
                    on_stream,
                )
            ),
            on_wait=on_wait,
            operation_name="chunk",
        )

        logger.info(
            "chunking_complete",
            document=document_path,
            panels=1,
            chunks=len(chunks),
        )
        return chunks
