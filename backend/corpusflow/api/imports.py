"""Bookkeeping for imports started through the API."""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import structlog

from corpusflow.pipeline.importer import ImportPipeline
from corpusflow.pipeline.progress import ProgressRecorder
from corpusflow.types import ImportProgress

logger = structlog.get_logger()


class ImportStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ImportRecord:
    """State of one batch import."""

    import_id: str
    folder_path: Optional[str]
    status: ImportStatus = ImportStatus.RUNNING
    error: Optional[str] = None
    document_count: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    recorder: ProgressRecorder = field(default_factory=ProgressRecorder)

    @property
    def events(self) -> List[ImportProgress]:
        return self.recorder.events


class ImportManager:
    """Starts batch imports and keeps their progress history.

    Example:
        ```python
        record = manager.create(folder_path="./docs")
        await manager.run(record.import_id, pipeline)
        print(manager.get(record.import_id).status)
        ```
    """

    def __init__(self) -> None:
        self._imports: Dict[str, ImportRecord] = {}
        self._lock = asyncio.Lock()

    def create(self, folder_path: Optional[str] = None) -> ImportRecord:
        record = ImportRecord(import_id=str(uuid.uuid4()), folder_path=folder_path)
        self._imports[record.import_id] = record
        logger.info("import_created", import_id=record.import_id, folder=folder_path)
        return record

    def get(self, import_id: str) -> Optional[ImportRecord]:
        return self._imports.get(import_id)

    def list(self) -> List[ImportRecord]:
        return sorted(self._imports.values(), key=lambda r: r.created_at, reverse=True)

    def is_running(self) -> bool:
        return any(r.status == ImportStatus.RUNNING for r in self._imports.values())

    async def run(self, import_id: str, pipeline: ImportPipeline) -> None:
        """
        Run a batch import to completion.

        Imports share one upstream quota, so only one runs at a time.
        The failure is recorded on the import; the pipeline has already
        emitted the Error event.
        """
        record = self._imports[import_id]
        folder = Path(record.folder_path) if record.folder_path else None

        async with self._lock:
            try:
                record.document_count = await pipeline.import_folder(
                    on_progress=record.recorder, folder=folder
                )
            except Exception as e:
                record.status = ImportStatus.FAILED
                record.error = str(e) or type(e).__name__
                logger.error("import_run_failed", import_id=import_id, error=record.error)
            else:
                record.status = ImportStatus.COMPLETED
                logger.info(
                    "import_run_completed",
                    import_id=import_id,
                    documents=record.document_count,
                )
            finally:
                record.completed_at = datetime.now(timezone.utc)


import_manager = ImportManager()
