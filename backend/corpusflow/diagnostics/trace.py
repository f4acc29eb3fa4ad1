"""Per-document trace logs for ingestion runs."""

import asyncio
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Union

import aiofiles

# Characters not allowed in file names on common filesystems
_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def make_file_safe(name: str) -> str:
    """Reduce a path or label to a file name safe on common filesystems."""
    if not name or not name.strip():
        return "untitled"
    base = re.split(r"[\\/]", name.strip())[-1] or "untitled"
    return _UNSAFE_CHARS.sub("_", base)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class TraceLog:
    """Append-only log file recording what happened to one document.

    Each line is prefixed with a UTC ISO-8601 timestamp. Writes are
    serialized so interleaved stream callbacks cannot tear lines.
    """

    def __init__(self, directory: Union[str, Path], base_name: str) -> None:
        """
        Create a trace log.

        Args:
            directory: Directory holding trace files (created if missing)
            base_name: Document name; sanitized into the file name
        """
        self.directory = Path(directory)
        self.path = self.directory / f"{make_file_safe(base_name)}.log"
        self._lock = asyncio.Lock()
        self._pending: List["asyncio.Future[None]"] = []

    async def init(self, header: str) -> None:
        """Truncate the file and write the header lines."""
        self.directory.mkdir(parents=True, exist_ok=True)
        async with self._lock:
            async with aiofiles.open(self.path, "w", encoding="utf-8") as f:
                await f.write(f"# {header}\n")
                await f.write(f"# start={_timestamp()}\n")

    async def write_line(self, line: str) -> None:
        """Append one timestamped line."""
        async with self._lock:
            async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
                await f.write(f"{_timestamp()}  {line}\n")

    def write_line_nowait(self, line: str) -> None:
        """Schedule a line from synchronous callbacks; ``drain()`` awaits it."""
        self._pending.append(asyncio.ensure_future(self.write_line(line)))

    async def drain(self) -> None:
        """Wait for every line scheduled with ``write_line_nowait``."""
        pending, self._pending = self._pending, []
        if pending:
            await asyncio.gather(*pending)


class NullTraceLog:
    """Stand-in used when trace logs are disabled."""

    path = None

    async def init(self, header: str) -> None:
        return None

    async def write_line(self, line: str) -> None:
        return None

    def write_line_nowait(self, line: str) -> None:
        return None

    async def drain(self) -> None:
        return None
