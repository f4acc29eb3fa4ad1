"""Token-budget-aware semantic chunking."""

from corpusflow.chunking.executor import ChunkRequestExecutor, is_marker, tail
from corpusflow.chunking.panels import build_token_panels, expected_panel_count, panel_ranges
from corpusflow.chunking.prompts import (
    CHUNK_DELIMITER,
    ChunkPrompt,
    build_panel_prompt,
    build_single_window_prompt,
)
from corpusflow.chunking.service import PanelChunkingService
from corpusflow.chunking.stitcher import PanelStitcher, parse_chunks, stitch
from corpusflow.chunking.tokenizer import TokenCounter

__all__ = [
    "TokenCounter",
    "panel_ranges",
    "build_token_panels",
    "expected_panel_count",
    "CHUNK_DELIMITER",
    "ChunkPrompt",
    "build_panel_prompt",
    "build_single_window_prompt",
    "ChunkRequestExecutor",
    "is_marker",
    "tail",
    "parse_chunks",
    "PanelStitcher",
    "stitch",
    "PanelChunkingService",
]
