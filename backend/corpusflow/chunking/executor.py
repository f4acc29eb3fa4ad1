"""Executes a single chunk request against the chat model."""

import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

import aiofiles
import structlog

from corpusflow.chunking.prompts import ChunkPrompt, prompt_dump_payload
from corpusflow.chunking.stitcher import parse_chunks
from corpusflow.config.settings import ChunkingSettings, get_chunking_settings
from corpusflow.diagnostics.trace import make_file_safe
from corpusflow.llm.interface import LLMClientInterface
from corpusflow.types import Chunk, StreamSink

logger = structlog.get_logger()

MARKER_PREFIX = "@panel:"


def is_marker(line: str) -> bool:
    """True for internal status lines that must not reach the user."""
    return line.startswith(MARKER_PREFIX)


def tail(text: str, max_chars: int) -> str:
    """Last ``max_chars`` characters of ``text``, prefixed with an ellipsis when cut."""
    if len(text) <= max_chars:
        return text
    return "…" + text[-max_chars:]


class ChunkRequestExecutor:
    """Sends one chunk prompt and parses the reply into chunks.

    With streaming enabled and a sink supplied, partial output is forwarded
    as ``(chars_so_far, "[p i/N] <tail>")`` at most once per update
    interval, bracketed by ``@panel:accepted`` and ``@panel:done`` markers.
    """

    def __init__(
        self,
        client: LLMClientInterface,
        max_output_tokens: Optional[int] = 700,
        stream_output: bool = True,
        stream_preview_chars: int = 120,
        stream_update_interval_ms: int = 250,
        prompt_dump_dir: Optional[str] = None,
        stream_dump_dir: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the executor.

        Args:
            client: Chat model client
            max_output_tokens: Completion cap per request (None for no cap)
            stream_output: Stream responses when a sink is supplied
            stream_preview_chars: Tail length of streamed previews
            stream_update_interval_ms: Minimum spacing of previews
            prompt_dump_dir: Directory for JSON prompt dumps
            stream_dump_dir: Directory for raw response dumps
            clock: Monotonic clock in seconds
        """
        self.client = client
        self.max_output_tokens = max_output_tokens
        self.stream_output = stream_output
        self.stream_preview_chars = stream_preview_chars
        self.stream_update_interval = stream_update_interval_ms / 1000.0
        self.prompt_dump_dir = prompt_dump_dir
        self.stream_dump_dir = stream_dump_dir
        self._clock = clock

    @classmethod
    def from_settings(
        cls, client: LLMClientInterface, settings: Optional[ChunkingSettings] = None
    ) -> "ChunkRequestExecutor":
        settings = settings or get_chunking_settings()
        return cls(
            client,
            max_output_tokens=settings.max_output_tokens,
            stream_output=settings.stream_output,
            stream_preview_chars=settings.stream_preview_chars,
            stream_update_interval_ms=settings.stream_update_interval_ms,
            prompt_dump_dir=settings.prompt_dump_dir,
            stream_dump_dir=settings.stream_dump_dir,
        )

    async def execute(
        self,
        prompt: ChunkPrompt,
        panel_number: int = 1,
        panel_count: int = 1,
        document_path: Optional[str] = None,
        on_stream: Optional[StreamSink] = None,
    ) -> List[Chunk]:
        """
        Run one chunk request and parse its reply.

        Remote failures propagate unchanged so the caller's retry wrapper
        can classify them.

        Args:
            prompt: Prompt to send
            panel_number: 1-based panel number
            panel_count: Total panels for the document
            document_path: Path recorded on the chunks
            on_stream: Optional sink for previews and markers

        Returns:
            Parsed chunks numbered from 0
        """
        text = await self.request_text(
            prompt, panel_number, panel_count, document_path, on_stream
        )
        chunks = parse_chunks(text, document_path)

        logger.debug(
            "chunk_request_complete",
            document=document_path,
            window=f"{panel_number}/{panel_count}",
            response_chars=len(text),
            chunks=len(chunks),
        )
        return chunks

    async def request_text(
        self,
        prompt: ChunkPrompt,
        panel_number: int = 1,
        panel_count: int = 1,
        document_path: Optional[str] = None,
        on_stream: Optional[StreamSink] = None,
    ) -> str:
        """Send the prompt and return the raw reply text."""
        window = f"{panel_number}/{panel_count}"
        dump_name = make_file_safe(f"{document_path or 'doc'}.p{panel_number - 1:02d}")

        if self.prompt_dump_dir:
            await self._dump_prompt(prompt, document_path, window, dump_name)

        if not (self.stream_output and on_stream is not None):
            response = await self.client.generate(
                prompt.user,
                system_prompt=prompt.system,
                max_tokens=self.max_output_tokens,
            )
            if self.stream_dump_dir:
                await self._dump_stream(dump_name, document_path, window, response.content)
            return response.content

        return await self._stream(prompt, window, document_path, dump_name, on_stream)

    async def _stream(
        self,
        prompt: ChunkPrompt,
        window: str,
        document_path: Optional[str],
        dump_name: str,
        on_stream: StreamSink,
    ) -> str:
        parts: List[str] = []
        length = 0
        accepted = False
        last_update = self._clock()

        async for piece in self.client.generate_stream(
            prompt.user,
            system_prompt=prompt.system,
            max_tokens=self.max_output_tokens,
        ):
            if not piece:
                continue
            parts.append(piece)
            length += len(piece)

            if not accepted:
                accepted = True
                on_stream(length, f"{MARKER_PREFIX}accepted {window}")

            now = self._clock()
            if now - last_update >= self.stream_update_interval:
                last_update = now
                preview = tail("".join(parts), self.stream_preview_chars)
                on_stream(length, f"[p {window}] {preview}")

        text = "".join(parts)
        if text:
            on_stream(length, f"[p {window}] {tail(text, self.stream_preview_chars)}")
        on_stream(length, f"{MARKER_PREFIX}done {window} chars={length}")

        if self.stream_dump_dir:
            await self._dump_stream(dump_name, document_path, window, text)
        return text

    async def _dump_prompt(
        self,
        prompt: ChunkPrompt,
        document_path: Optional[str],
        window: str,
        dump_name: str,
    ) -> None:
        directory = Path(self.prompt_dump_dir)
        directory.mkdir(parents=True, exist_ok=True)
        payload = prompt_dump_payload(
            prompt, document_path, window, datetime.now(timezone.utc).isoformat()
        )
        async with aiofiles.open(
            directory / f"{dump_name}.prompt.json", "w", encoding="utf-8"
        ) as f:
            await f.write(json.dumps(payload, indent=2, ensure_ascii=False))

    async def _dump_stream(
        self,
        dump_name: str,
        document_path: Optional[str],
        window: str,
        text: str,
    ) -> None:
        directory = Path(self.stream_dump_dir)
        directory.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(
            directory / f"{dump_name}.chunk-stream.txt", "w", encoding="utf-8"
        ) as f:
            await f.write(f"# stream for: {document_path} [panel {window}]\n")
            await f.write(text)
            await f.write(f"\n# utc end: {datetime.now(timezone.utc).isoformat()}\n")
