"""WebSocket routes for live import progress."""

from fastapi import APIRouter, Depends, WebSocket

from corpusflow.api.imports import ImportManager
from corpusflow.api.routes.imports import get_import_manager
from corpusflow.api.websocket import handle_import_websocket

router = APIRouter(prefix="/ws", tags=["websocket"])


@router.websocket("/imports/{import_id}")
async def import_websocket(
    websocket: WebSocket,
    import_id: str,
    manager: ImportManager = Depends(get_import_manager),
) -> None:
    """WebSocket endpoint streaming the progress events of an import.

    Example:
        ```javascript
        const ws = new WebSocket('ws://localhost:8000/ws/imports/<import_id>');
        ws.onmessage = (event) => console.log(JSON.parse(event.data));
        ```
    """
    await handle_import_websocket(websocket, import_id, manager)
