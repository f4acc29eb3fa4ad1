"""Progress reporting for document imports."""

import re
from typing import Callable, Dict, List, Optional

import structlog

from corpusflow.types import ImportProgress, ImportStage, ProgressSink

logger = structlog.get_logger()

MAX_PREVIEW_CHARS = 200

_WHITESPACE = re.compile(r"\s+")


def sanitize_preview(text: Optional[str], max_chars: int = MAX_PREVIEW_CHARS) -> str:
    """
    Reduce streamed text to a single display line.

    Line breaks and tabs become spaces, other control characters are
    dropped, whitespace runs collapse, and long text is cut with `` …``.
    """
    if not text:
        return ""

    kept = []
    for ch in text:
        if ch in "\n\r\t":
            kept.append(" ")
        elif ord(ch) < 32 or 127 <= ord(ch) < 160:
            continue
        else:
            kept.append(ch)

    line = _WHITESPACE.sub(" ", "".join(kept)).strip()
    if len(line) <= max_chars:
        return line
    return line[:max_chars] + " …"


class ProgressReporter:
    """Emits ImportProgress events for one document to its subscribers.

    Subscriber failures are logged and never interrupt the import.
    """

    def __init__(
        self,
        file_name: str,
        current: int = 1,
        total: int = 1,
        sinks: Optional[List[ProgressSink]] = None,
    ) -> None:
        """
        Initialize the reporter.

        Args:
            file_name: File name shown in events (not the full path)
            current: 1-based position of the document in its batch
            total: Number of documents in the batch
            sinks: Event subscribers
        """
        self.file_name = file_name
        self.current = current
        self.total = total
        self._sinks: List[ProgressSink] = [s for s in (sinks or []) if s is not None]

    def report(
        self,
        stage: ImportStage,
        info: Optional[str] = None,
        stage_elapsed_ms: Optional[int] = None,
    ) -> ImportProgress:
        """Build an event and deliver it to every subscriber."""
        event = ImportProgress(
            current=self.current,
            total=self.total,
            file_name=self.file_name,
            stage=stage,
            info=info,
            stage_elapsed_ms=stage_elapsed_ms,
        )
        self._notify(event)
        return event

    def _notify(self, event: ImportProgress) -> None:
        for sink in list(self._sinks):
            try:
                sink(event)
            except Exception as e:
                logger.warning(
                    "progress_callback_failed",
                    file=event.file_name,
                    stage=event.stage.value,
                    error=str(e),
                )


class ProgressRecorder:
    """Progress sink keeping every event, with optional fan-out listeners."""

    def __init__(self) -> None:
        self.events: List[ImportProgress] = []
        self._listeners: List[Callable[[ImportProgress], None]] = []

    def __call__(self, event: ImportProgress) -> None:
        self.events.append(event)
        for listener in list(self._listeners):
            listener(event)

    def add_listener(self, listener: Callable[[ImportProgress], None]) -> None:
        self._listeners.append(listener)

    def stages(self) -> List[str]:
        return [e.stage.value for e in self.events]

    def last(self) -> Optional[ImportProgress]:
        return self.events[-1] if self.events else None

    def to_dicts(self) -> List[Dict]:
        return [e.to_dict() for e in self.events]
