"""HTTP and WebSocket surface for starting imports and following their progress."""

from corpusflow.api.routes import imports_router, websocket_router

__all__ = [
    "imports_router",
    "websocket_router",
]
