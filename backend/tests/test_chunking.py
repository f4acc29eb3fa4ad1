"""Tests for chunk prompts, the request executor and the chunking service."""

import json

import pytest

from corpusflow.chunking.executor import ChunkRequestExecutor, is_marker, tail
from corpusflow.chunking.prompts import (
    CHUNK_DELIMITER,
    build_panel_prompt,
    build_single_window_prompt,
)
from corpusflow.chunking.tokenizer import TokenCounter
from corpusflow.llm.client import MockLLMClient
from tests.fakes import FakeClock, FatalRemoteError, RecordingRateLimiter, ThrottleError


def two_chunks(prompt: str) -> str:
    return f"A\n{CHUNK_DELIMITER}\nB"


class StreamLog:
    """Collects stream callback calls."""

    def __init__(self):
        self.calls = []

    def __call__(self, chars, text):
        self.calls.append((chars, text))

    @property
    def markers(self):
        return [t for _, t in self.calls if is_marker(t)]

    @property
    def previews(self):
        return [t for _, t in self.calls if not is_marker(t)]


class TestPrompts:
    """Test chunk prompt construction."""

    def test_single_window_prompt(self):
        """Test the whole document is sent without a window header."""
        prompt = build_single_window_prompt("Some text.", 100, 200)

        assert prompt.user == "Some text."
        assert CHUNK_DELIMITER in prompt.system
        assert "~100-200 tokens" in prompt.system
        assert "[Window" not in prompt.user

    def test_panel_prompt(self):
        """Test panel prompts carry the window header and footer."""
        prompt = build_panel_prompt("panel text", 2, 5, overlap_tokens=400)

        assert prompt.user.startswith("[Window 2/5] Begin window text below:\n")
        assert prompt.user.endswith("panel text\n[End of window]")
        assert "THIS WINDOW ONLY" in prompt.system
        assert "~400 tokens" in prompt.system

    def test_first_panel_has_no_overlap_note(self):
        """Test only later panels mention the repeated context."""
        first = build_panel_prompt("text", 1, 3, overlap_tokens=400)
        assert "repeat the end of the previous window" not in first.system

    def test_messages(self):
        """Test conversion to chat messages."""
        messages = build_single_window_prompt("body").to_messages()

        assert [m["role"] for m in messages] == ["system", "user"]
        assert messages[1]["content"] == "body"


class TestTail:
    """Test preview tails."""

    def test_short_text_unchanged(self):
        """Test text within the limit."""
        assert tail("abc", 5) == "abc"

    def test_long_text_cut(self):
        """Test long text keeps its end behind an ellipsis."""
        assert tail("abcdef", 3) == "…def"


class TestChunkRequestExecutor:
    """Test single chunk requests."""

    @pytest.mark.asyncio
    async def test_non_streamed_request(self):
        """Test a plain completion is parsed into chunks."""
        client = MockLLMClient(responder=two_chunks)
        executor = ChunkRequestExecutor(client, stream_output=False)
        prompt = build_single_window_prompt("text")
        stream = StreamLog()

        chunks = await executor.execute(prompt, document_path="doc.txt", on_stream=stream)

        assert [c.content for c in chunks] == ["A", "B"]
        assert client.system_prompts == [prompt.system]
        assert stream.calls == []

    @pytest.mark.asyncio
    async def test_streamed_request_markers_and_previews(self):
        """Test streaming emits accepted, previews and done."""
        reply = f"First chunk text\n{CHUNK_DELIMITER}\nSecond chunk text"
        client = MockLLMClient(responses=[reply], stream_piece_size=5)
        executor = ChunkRequestExecutor(
            client, stream_preview_chars=10, stream_update_interval_ms=0
        )
        stream = StreamLog()

        chunks = await executor.execute(
            build_panel_prompt("x", 2, 3, 0), 2, 3, "doc.txt", on_stream=stream
        )

        assert [c.content for c in chunks] == ["First chunk text", "Second chunk text"]
        assert stream.calls[0][1] == "@panel:accepted 2/3"
        assert stream.calls[-1] == (len(reply), f"@panel:done 2/3 chars={len(reply)}")
        assert stream.markers == ["@panel:accepted 2/3", f"@panel:done 2/3 chars={len(reply)}"]
        assert all(p.startswith("[p 2/3] ") for p in stream.previews)
        assert stream.previews[-1] == "[p 2/3] …chunk text"

    @pytest.mark.asyncio
    async def test_preview_updates_are_throttled(self):
        """Test no intermediate previews are sent within the update interval."""
        clock = FakeClock()
        client = MockLLMClient(responses=["a" * 100], stream_piece_size=10)
        executor = ChunkRequestExecutor(client, stream_update_interval_ms=250, clock=clock)
        stream = StreamLog()

        await executor.execute(build_single_window_prompt("x"), on_stream=stream)

        assert len(stream.previews) == 1
        assert [t.split()[0] for t in stream.markers] == ["@panel:accepted", "@panel:done"]

    @pytest.mark.asyncio
    async def test_dumps(self, tmp_path):
        """Test prompt and response dumps are written."""
        prompt_dir = tmp_path / "prompts"
        stream_dir = tmp_path / "streams"
        client = MockLLMClient(responder=two_chunks)
        executor = ChunkRequestExecutor(
            client,
            prompt_dump_dir=str(prompt_dir),
            stream_dump_dir=str(stream_dir),
        )

        await executor.execute(
            build_single_window_prompt("body"), document_path="docs/report.txt", on_stream=StreamLog()
        )

        payload = json.loads((prompt_dir / "report.txt.p00.prompt.json").read_text(encoding="utf-8"))
        assert payload["kind"] == "chunk_prompt"
        assert payload["doc"] == "docs/report.txt"
        assert payload["window"] == "1/1"
        assert payload["messages"][1]["content"] == "body"

        dumped = (stream_dir / "report.txt.p00.chunk-stream.txt").read_text(encoding="utf-8")
        assert dumped.startswith("# stream for: docs/report.txt [panel 1/1]\n")
        assert two_chunks("") in dumped


class TestPanelChunkingService:
    """Test document chunking."""

    @pytest.mark.asyncio
    async def test_small_document_single_call(self, make_chunking):
        """Test a document within the single-window budget takes one request."""
        client = MockLLMClient(responder=two_chunks)
        service = make_chunking(client)
        text = "word " * 20

        chunks = await service.chunk(text, document_path="small.txt")

        assert client.call_count == 1
        assert client.prompts == [text]
        assert [c.index for c in chunks] == [0, 1]
        assert all(c.document_path == "small.txt" for c in chunks)

    @pytest.mark.asyncio
    async def test_large_document_panelized(self, make_chunking, fake_clock):
        """Test panels are chunked in order and stitched."""
        client = MockLLMClient(responder=two_chunks)
        limiter = RecordingRateLimiter(clock=fake_clock, sleep=fake_clock.sleep)
        service = make_chunking(client, rate_limiter=limiter)
        text = "".join(chr(ord("a") + i % 26) for i in range(300))

        chunks = await service.chunk(text, document_path="large.txt")

        assert client.call_count == 4
        assert [p.splitlines()[0] for p in client.prompts] == [
            f"[Window {i}/4] Begin window text below:" for i in range(1, 5)
        ]
        assert client.prompts[1].splitlines()[1] == text[80:180]
        assert [c.content for c in chunks] == ["A", "A", "A", "A", "B"]
        assert [c.index for c in chunks] == [0, 1, 2, 3, 4]
        assert limiter.requests == [150, 150, 150, 110]

    @pytest.mark.asyncio
    async def test_overlap_note_on_later_panels(self, make_chunking):
        """Test later panels are told about the repeated context."""
        client = MockLLMClient(responder=two_chunks)
        service = make_chunking(client)

        await service.chunk("z" * 300)

        assert "previous window" not in client.system_prompts[0]
        assert all("previous window" in s for s in client.system_prompts[1:])

    @pytest.mark.asyncio
    async def test_panelization_disabled(self, make_chunking, chunking_settings):
        """Test a large document goes out in one request when panels are off."""
        client = MockLLMClient(responder=two_chunks)
        settings = chunking_settings.model_copy(update={"enable_panelization": False})
        service = make_chunking(client, settings=settings)

        await service.chunk("z" * 300)

        assert client.call_count == 1

    @pytest.mark.asyncio
    async def test_markers(self, make_chunking):
        """Test config is reported once and every request is bracketed."""
        client = MockLLMClient(responder=two_chunks)
        service = make_chunking(client)
        stream = StreamLog()

        await service.chunk("short", on_stream=stream)
        await service.chunk("also short", on_stream=stream)

        kinds = [m.split()[0] for m in stream.markers]
        assert kinds == [
            "@panel:config",
            "@panel:start", "@panel:accepted", "@panel:done",
            "@panel:start", "@panel:accepted", "@panel:done",
        ]
        assert stream.markers[0] == (
            "@panel:config target=100 overlap=20 maxOut=50 tpm=1000000 singleWin=150"
        )
        assert stream.markers[1] == "@panel:start 1/1 in=5 out=50"

    @pytest.mark.asyncio
    async def test_panel_info_marker(self, make_chunking, chunking_settings):
        """Test the optional info marker."""
        settings = chunking_settings.model_copy(update={"emit_panel_info": True})
        service = make_chunking(MockLLMClient(responder=two_chunks), settings=settings)
        stream = StreamLog()

        await service.chunk("short", on_stream=stream)

        assert stream.markers[1] == "@panel:info using max_tokens=50"

    @pytest.mark.asyncio
    async def test_throttled_request_retried(self, make_chunking, fake_clock):
        """Test a throttled chunk request waits and is sent again."""
        client = MockLLMClient(
            responses=[ThrottleError(headers={"retry-after": "5"}), "only chunk"]
        )
        service = make_chunking(client)
        waits = []

        chunks = await service.chunk(
            "short", on_stream=StreamLog(), on_wait=lambda s, n, op: waits.append((s, n, op))
        )

        assert [c.content for c in chunks] == ["only chunk"]
        assert client.call_count == 2
        assert len(waits) == 1
        assert 5.0 <= waits[0][0] < 5.25
        assert waits[0][1:] == (1, "chunk")
        assert fake_clock.sleeps == [waits[0][0]]

    @pytest.mark.asyncio
    async def test_retried_request_charged_again(self, make_chunking, fake_clock):
        """Test every attempt of a throttled request counts against the token budget."""
        client = MockLLMClient(
            responses=[ThrottleError(headers={"retry-after": "1"}), "only chunk"]
        )
        limiter = RecordingRateLimiter(clock=fake_clock, sleep=fake_clock.sleep)
        service = make_chunking(client, rate_limiter=limiter)

        await service.chunk("short")

        assert client.call_count == 2
        assert limiter.requests == [55, 55]

    @pytest.mark.asyncio
    async def test_fatal_error_propagates(self, make_chunking):
        """Test non-throttle failures are not retried."""
        client = MockLLMClient(responses=[FatalRemoteError()])
        service = make_chunking(client)

        with pytest.raises(FatalRemoteError):
            await service.chunk("short")

        assert client.call_count == 1


@pytest.fixture
def counter():
    try:
        return TokenCounter()
    except Exception as e:
        pytest.skip(f"tiktoken encoding unavailable: {e}")


class TestTokenCounter:
    """Test tiktoken-backed token counting."""

    def test_round_trip(self, counter):
        """Test decoding the encoded text restores it."""
        text = "Rate limits apply per minute."
        assert counter.decode(counter.encode(text)) == text

    def test_count(self, counter):
        """Test counting tokens."""
        assert counter.count("") == 0
        assert counter.count("hello world") == len(counter.encode("hello world"))

    def test_special_token_text(self, counter):
        """Test special-token text in documents is encoded as plain text."""
        assert counter.count("<|endoftext|>") > 1

    def test_unknown_model_falls_back(self, counter):
        """Test unknown models use the default encoding."""
        assert TokenCounter.for_model("azure/my-deployment").encoding_name == "o200k_base"
