"""Tests for per-document trace logs."""

import pytest

from corpusflow.diagnostics.trace import NullTraceLog, TraceLog, make_file_safe


class TestMakeFileSafe:
    """Test file name sanitizing."""

    def test_keeps_base_name(self):
        """Test directories are stripped."""
        assert make_file_safe("docs/2024/report.pdf") == "report.pdf"
        assert make_file_safe("C:\\docs\\report.pdf") == "report.pdf"

    def test_replaces_unsafe_characters(self):
        """Test reserved characters are replaced."""
        assert make_file_safe('what?*"now".txt') == "what___now_.txt"

    def test_empty(self):
        """Test blank names."""
        assert make_file_safe("") == "untitled"
        assert make_file_safe("   ") == "untitled"


class TestTraceLog:
    """Test trace log writing."""

    @pytest.mark.asyncio
    async def test_header_and_lines(self, tmp_path):
        """Test the header and timestamped lines."""
        trace = TraceLog(tmp_path / "traces", "docs/report.pdf")

        await trace.init("ingestion trace for report.pdf")
        await trace.write_line("EXTRACT ok chars=10 tok=3")

        lines = trace.path.read_text(encoding="utf-8").splitlines()
        assert trace.path.name == "report.pdf.log"
        assert lines[0] == "# ingestion trace for report.pdf"
        assert lines[1].startswith("# start=")
        assert lines[2].endswith("  EXTRACT ok chars=10 tok=3")

    @pytest.mark.asyncio
    async def test_init_truncates(self, tmp_path):
        """Test a new import of the same document starts a fresh trace."""
        trace = TraceLog(tmp_path, "a.txt")
        await trace.init("first")
        await trace.write_line("old line")

        await TraceLog(tmp_path, "a.txt").init("second")

        content = trace.path.read_text(encoding="utf-8")
        assert "old line" not in content
        assert content.startswith("# second\n")

    @pytest.mark.asyncio
    async def test_nowait_lines_in_order(self, tmp_path):
        """Test lines scheduled from callbacks keep their order once drained."""
        trace = TraceLog(tmp_path, "a.txt")
        await trace.init("header")

        for i in range(20):
            trace.write_line_nowait(f"line {i}")
        await trace.drain()

        lines = trace.path.read_text(encoding="utf-8").splitlines()[2:]
        assert [line.split("  ", 1)[1] for line in lines] == [f"line {i}" for i in range(20)]

    @pytest.mark.asyncio
    async def test_null_trace(self):
        """Test the disabled trace accepts everything."""
        trace = NullTraceLog()

        await trace.init("header")
        await trace.write_line("line")
        trace.write_line_nowait("line")
        await trace.drain()

        assert trace.path is None
