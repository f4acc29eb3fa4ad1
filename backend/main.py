"""Main FastAPI application entry point for corpusflow.

This module initializes the FastAPI application, configures logging and
middleware, and includes the import API and WebSocket routes.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from corpusflow import __version__
from corpusflow.api.routes import imports_router, websocket_router
from corpusflow.config import configure_logging, get_settings

logger = structlog.get_logger()

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager.

    Args:
        app: FastAPI application instance

    Yields:
        None
    """
    configure_logging(settings.log_level)
    logger.info("corpusflow_starting", version=__version__)

    if settings.enable_trace_logs:
        Path(settings.trace_dir).mkdir(parents=True, exist_ok=True)

    yield

    logger.info("corpusflow_stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="corpusflow",
        description="Document ingestion into a retrieval corpus",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(imports_router, prefix="/api/v1")
    app.include_router(websocket_router)

    @app.get("/api/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__,
            "service": "corpusflow",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower(),
    )
