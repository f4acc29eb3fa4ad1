"""Type definitions for the corpusflow ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple


class ImportStage(str, Enum):
    """Stages reported by the import pipeline.

    The string values are matched by progress consumers and must not change.
    """

    START = "Start"
    EXTRACT = "Extract"
    CHUNK = "Chunk"
    THROTTLE_WAIT = "429 wait"
    EMBED_SAVE = "Embed+Save"
    EMBED = "Embed"
    SAVE = "Save"
    DONE = "Done"
    ERROR = "Error"


@dataclass(frozen=True)
class TokenPanel:
    """A contiguous, possibly overlapping slice of a document's tokens."""

    text: str
    start_token_index: int
    end_token_index: int

    @property
    def token_count(self) -> int:
        return self.end_token_index - self.start_token_index


@dataclass(frozen=True)
class Chunk:
    """A semantically bounded span of document text.

    Chunks are immutable: attaching an embedding or renumbering builds a
    new value.
    """

    index: int
    content: str
    document_path: str = ""
    embedding: Optional[Tuple[float, ...]] = None

    def with_embedding(self, embedding: List[float]) -> Chunk:
        """Return a copy of this chunk carrying ``embedding``."""
        return replace(self, embedding=tuple(embedding))

    def with_index(self, index: int) -> Chunk:
        """Return a copy of this chunk renumbered to ``index``."""
        return replace(self, index=index)

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None


@dataclass(frozen=True)
class ImportProgress:
    """Progress event emitted while importing documents."""

    current: int
    total: int
    file_name: str
    stage: ImportStage
    info: Optional[str] = None
    stage_elapsed_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON transports."""
        return {
            "current": self.current,
            "total": self.total,
            "file_name": self.file_name,
            "stage": self.stage.value,
            "info": self.info,
            "stage_elapsed_ms": self.stage_elapsed_ms,
        }


@dataclass
class LLMResponse:
    """Response from an LLM call."""

    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)
    finish_reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


# (chars_so_far, preview_or_marker)
StreamSink = Callable[[int, str], None]

ProgressSink = Callable[[ImportProgress], None]

# (seconds, attempt, operation_name)
WaitCallback = Callable[[float, int, str], None]
