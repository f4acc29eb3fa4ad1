"""Prompt construction for chunk requests."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

CHUNK_DELIMITER = "---CHUNK---"


@dataclass(frozen=True)
class ChunkPrompt:
    """System directive plus user message for one chunk request."""

    system: str
    user: str

    def to_messages(self) -> List[Dict[str, Any]]:
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]


def build_single_window_prompt(
    text: str, min_chunk_tokens: int = 400, max_chunk_tokens: int = 600
) -> ChunkPrompt:
    """Prompt for chunking a whole document in one call (no window header)."""
    system = (
        "You split the input into semantically coherent chunks "
        f"(~{min_chunk_tokens}-{max_chunk_tokens} tokens). "
        f"Return ONLY the chunks separated by the exact line '{CHUNK_DELIMITER}' "
        "(no numbering, no extra text)."
    )
    return ChunkPrompt(system=system, user=text)


def build_panel_prompt(
    text: str,
    panel_number: int,
    panel_count: int,
    overlap_tokens: int,
    min_chunk_tokens: int = 400,
    max_chunk_tokens: int = 600,
) -> ChunkPrompt:
    """
    Prompt for chunking one panel of a larger document.

    Args:
        text: Decoded panel text
        panel_number: 1-based panel number
        panel_count: Total number of panels
        overlap_tokens: Tokens shared with the previous panel
        min_chunk_tokens: Lower bound of the requested chunk size
        max_chunk_tokens: Upper bound of the requested chunk size

    Returns:
        ChunkPrompt for the panel
    """
    system = (
        "You split THIS WINDOW ONLY into semantically coherent chunks "
        f"(~{min_chunk_tokens}-{max_chunk_tokens} tokens). "
        f"Return ONLY the chunk texts separated by the exact line '{CHUNK_DELIMITER}'. "
        "Do not include any text that is not inside this window."
    )
    if panel_number > 1 and overlap_tokens > 0:
        system += (
            f" The first ~{overlap_tokens} tokens of this window repeat the end of "
            "the previous window as context. Do not start a new chunk inside that "
            "repeated context."
        )

    user = (
        f"[Window {panel_number}/{panel_count}] Begin window text below:\n"
        f"{text}\n"
        "[End of window]"
    )
    return ChunkPrompt(system=system, user=user)


def prompt_dump_payload(
    prompt: ChunkPrompt, document_path: Optional[str], window: str, utc: str
) -> Dict[str, Any]:
    """JSON document written when prompt dumps are enabled."""
    return {
        "kind": "chunk_prompt",
        "doc": document_path,
        "window": window,
        "utc": utc,
        "messages": prompt.to_messages(),
    }
