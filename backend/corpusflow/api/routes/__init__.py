"""API routes for corpusflow."""

from corpusflow.api.routes.imports import router as imports_router
from corpusflow.api.routes.websocket import router as websocket_router

__all__ = [
    "imports_router",
    "websocket_router",
]
