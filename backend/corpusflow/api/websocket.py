"""WebSocket streaming of import progress events."""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, Set

import structlog
from fastapi import WebSocket, WebSocketDisconnect

from corpusflow.api.imports import ImportManager, ImportRecord, ImportStatus, import_manager
from corpusflow.types import ImportProgress

logger = structlog.get_logger()

KEEPALIVE_SECONDS = 30.0


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def progress_message(import_id: str, event: ImportProgress) -> Dict[str, Any]:
    return {
        "type": "progress",
        "import_id": import_id,
        "timestamp": _now(),
        "data": event.to_dict(),
    }


class ImportWebSocketManager:
    """Tracks WebSocket subscribers per import and fans out events."""

    def __init__(self) -> None:
        self._connections: Dict[str, Set[WebSocket]] = {}
        self._websocket_imports: Dict[WebSocket, str] = {}

    async def connect(self, websocket: WebSocket, record: ImportRecord) -> None:
        """
        Accept a subscriber and replay the events recorded so far.

        The socket joins the broadcast set only once the replay has caught
        up, with no suspension in between, so each event is delivered once
        and in order.
        """
        import_id = record.import_id
        await websocket.accept()

        await websocket.send_json({
            "type": "connection_established",
            "import_id": import_id,
            "timestamp": _now(),
        })

        sent = 0
        while sent < len(record.events):
            for event in record.events[sent:]:
                await websocket.send_json(progress_message(import_id, event))
                sent += 1

        self._connections.setdefault(import_id, set()).add(websocket)
        self._websocket_imports[websocket] = import_id

        logger.info(
            "websocket_connected",
            import_id=import_id,
            replayed=sent,
            total_connections=len(self._connections[import_id]),
        )

    def disconnect(self, websocket: WebSocket) -> None:
        import_id = self._websocket_imports.pop(websocket, None)

        if import_id and import_id in self._connections:
            self._connections[import_id].discard(websocket)
            if not self._connections[import_id]:
                del self._connections[import_id]

            logger.info("websocket_disconnected", import_id=import_id)

    async def broadcast(self, import_id: str, message: Dict[str, Any]) -> None:
        """Send ``message`` to every subscriber of ``import_id``."""
        disconnected = []

        for websocket in list(self._connections.get(import_id, ())):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.warning(
                    "websocket_send_failed",
                    import_id=import_id,
                    error=str(e),
                )
                disconnected.append(websocket)

        for websocket in disconnected:
            self.disconnect(websocket)

    def attach(self, record: ImportRecord) -> None:
        """Forward every future event of ``record`` to its subscribers."""

        def forward(event: ImportProgress) -> None:
            if record.import_id in self._connections:
                asyncio.ensure_future(
                    self.broadcast(record.import_id, progress_message(record.import_id, event))
                )

        record.recorder.add_listener(forward)


websocket_manager = ImportWebSocketManager()


async def handle_import_websocket(
    websocket: WebSocket,
    import_id: str,
    manager: ImportManager = import_manager,
) -> None:
    """
    Serve one WebSocket subscriber of an import.

    Events recorded before the client connected are replayed first. A
    ``finished`` message is sent once the import is no longer running.
    """
    record = manager.get(import_id)
    if record is None:
        await websocket.close(code=4404)
        return

    try:
        await websocket_manager.connect(websocket, record)

        if record.status != ImportStatus.RUNNING:
            await websocket.send_json(_finished_message(record))
            return

        while True:
            try:
                data = await asyncio.wait_for(websocket.receive_text(), timeout=KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                if record.status != ImportStatus.RUNNING:
                    await websocket.send_json(_finished_message(record))
                    return
                await websocket.send_json({"type": "keepalive"})
                continue

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning("websocket_invalid_message", import_id=import_id, data=data)
                continue

            if message.get("type") == "ping":
                await websocket.send_json({"type": "pong", "status": record.status.value})

    except WebSocketDisconnect:
        logger.info("websocket_client_disconnected", import_id=import_id)

    finally:
        websocket_manager.disconnect(websocket)


def _finished_message(record: ImportRecord) -> Dict[str, Any]:
    return {
        "type": "finished",
        "import_id": record.import_id,
        "status": record.status.value,
        "error": record.error,
        "timestamp": _now(),
    }
