"""Import API endpoints."""

from pathlib import Path
from typing import List, Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel, Field

from corpusflow.api.imports import ImportManager, ImportRecord, import_manager
from corpusflow.api.websocket import websocket_manager
from corpusflow.pipeline.factory import create_pipeline
from corpusflow.pipeline.importer import ImportPipeline

logger = structlog.get_logger()

router = APIRouter(prefix="/imports", tags=["imports"])

# Global pipeline (initialized on first use)
_pipeline: Optional[ImportPipeline] = None


def get_pipeline() -> ImportPipeline:
    """Get or create the shared import pipeline."""
    global _pipeline
    if _pipeline is None:
        _pipeline = create_pipeline()
    return _pipeline


def get_import_manager() -> ImportManager:
    return import_manager


# Request/Response models
class ImportRequest(BaseModel):
    """Start-import request."""

    folder_path: Optional[str] = Field(
        default=None,
        description="Folder to import (defaults to the configured folder)",
    )


class ImportStartResponse(BaseModel):
    import_id: str
    status: str


class ProgressEventResponse(BaseModel):
    current: int
    total: int
    file_name: str
    stage: str
    info: Optional[str] = None
    stage_elapsed_ms: Optional[int] = None


class ImportStatusResponse(BaseModel):
    """Status of an import with its recorded progress events."""

    import_id: str
    status: str
    folder_path: Optional[str] = None
    error: Optional[str] = None
    document_count: Optional[int] = None
    created_at: str
    completed_at: Optional[str] = None
    events: List[ProgressEventResponse] = Field(default_factory=list)


def _status_response(record: ImportRecord, include_events: bool = True) -> ImportStatusResponse:
    return ImportStatusResponse(
        import_id=record.import_id,
        status=record.status.value,
        folder_path=record.folder_path,
        error=record.error,
        document_count=record.document_count,
        created_at=record.created_at.isoformat(),
        completed_at=record.completed_at.isoformat() if record.completed_at else None,
        events=(
            [ProgressEventResponse(**e.to_dict()) for e in record.events]
            if include_events
            else []
        ),
    )


@router.post("", response_model=ImportStartResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_import(
    request: ImportRequest,
    background_tasks: BackgroundTasks,
    pipeline: ImportPipeline = Depends(get_pipeline),
    manager: ImportManager = Depends(get_import_manager),
) -> ImportStartResponse:
    """
    Start importing a folder in the background.

    Returns:
        Import id to poll or subscribe to over WebSocket
    """
    if request.folder_path:
        folder = Path(request.folder_path)
        if not folder.is_dir():
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Folder not found: {request.folder_path}",
            )
    elif pipeline.folder_path is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No folder_path given and no default folder configured",
        )

    record = manager.create(request.folder_path or str(pipeline.folder_path))
    websocket_manager.attach(record)
    background_tasks.add_task(manager.run, record.import_id, pipeline)

    return ImportStartResponse(import_id=record.import_id, status=record.status.value)


@router.get("", response_model=List[ImportStatusResponse])
async def list_imports(
    manager: ImportManager = Depends(get_import_manager),
) -> List[ImportStatusResponse]:
    """List imports, newest first (without their events)."""
    return [_status_response(r, include_events=False) for r in manager.list()]


@router.get("/{import_id}", response_model=ImportStatusResponse)
async def get_import(
    import_id: str,
    manager: ImportManager = Depends(get_import_manager),
) -> ImportStatusResponse:
    """Get the status and recorded events of an import."""
    record = manager.get(import_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Import {import_id} not found",
        )
    return _status_response(record)
