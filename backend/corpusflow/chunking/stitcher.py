"""Parsing chunk responses and stitching per-panel chunk lists together."""

import re
from typing import Iterable, List, Optional, Sequence

from corpusflow.chunking.prompts import CHUNK_DELIMITER
from corpusflow.types import Chunk

# The delimiter must sit on a line of its own
_DELIMITER_LINE = re.compile(rf"^[ \t]*{re.escape(CHUNK_DELIMITER)}[ \t]*$", re.MULTILINE)


def parse_chunks(response: str, document_path: Optional[str] = None) -> List[Chunk]:
    """
    Split a chunk response into chunks.

    Segments between delimiter lines are trimmed and empty ones dropped.
    A non-empty response without usable segments becomes a single chunk;
    an empty or whitespace-only response yields no chunks.

    Args:
        response: Raw model output
        document_path: Path recorded on every chunk

    Returns:
        Chunks numbered from 0
    """
    path = document_path or ""
    segments = [s.strip() for s in _DELIMITER_LINE.split(response)]
    segments = [s for s in segments if s]

    if not segments:
        whole = response.strip()
        # Only delimiter lines: nothing worth keeping
        if not whole or _DELIMITER_LINE.sub("", whole).strip() == "":
            return []
        segments = [whole]

    return [Chunk(index=i, content=text, document_path=path) for i, text in enumerate(segments)]


class PanelStitcher:
    """Accumulates chunks panel by panel.

    The last chunk taken from a panel is dropped when the next panel
    contributes chunks, since the overlap region is chunked again there.
    A panel without chunks leaves the accumulated list untouched, and the
    panel after it drops nothing since it does not overlap earlier panels.
    """

    def __init__(self) -> None:
        self._chunks: List[Chunk] = []
        self._panels = 0
        self._last_added = 0

    @property
    def panel_count(self) -> int:
        return self._panels

    def add(self, chunks: Sequence[Chunk]) -> None:
        """Add the parsed chunks of the next panel."""
        if self._last_added > 0 and chunks:
            self._chunks.pop()
        self._chunks.extend(chunks)
        self._last_added = len(chunks)
        self._panels += 1

    def result(self) -> List[Chunk]:
        """Stitched chunks renumbered contiguously from 0."""
        return [chunk.with_index(i) for i, chunk in enumerate(self._chunks)]


def stitch(panel_chunk_lists: Iterable[Sequence[Chunk]]) -> List[Chunk]:
    """Stitch per-panel chunk lists in panel order."""
    stitcher = PanelStitcher()
    for chunks in panel_chunk_lists:
        stitcher.add(chunks)
    return stitcher.result()
