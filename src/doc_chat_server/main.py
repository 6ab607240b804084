"""
Document Chat Server Application Entry Point

This module defines the FastAPI application instance, registers all routers,
configures global exception handling, and owns the lifecycle of the storage
backend and the background document worker.

Design Goals
------------
- Deterministic startup
- Explicit dependency initialization order
- Centralized router registration
- Test-friendly via create_app()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from .config import settings
from .core.errors import (
    ChatServiceError,
    service_error_handler,
    unhandled_exception_handler,
)
from .core.logging import configure_logging
from .embeddings.queue import DocumentQueue, process_documents_worker_task

from .api import (
    auth_routes,
    chat_routes,
    dependencies,
    document_routes,
    health_routes,
    realtime_routes,
)


logger = logging.getLogger("chat.app")


def _resolve(app: FastAPI, dependency):
    """Call a zero-argument dependency, honouring app.dependency_overrides."""
    return app.dependency_overrides.get(dependency, dependency)()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Startup
    -------
    1. Configure logging and validate critical secrets.
    2. Initialize the storage backend (creates tables for SQL).
    3. Create the document queue and start its worker.

    Shutdown
    --------
    Cancel the worker, then release the storage backend.
    """
    configure_logging(settings.log_level)
    logger.info("Starting doc-chat-server")

    # Touch critical secrets to force validation now (not at first use)
    _ = settings.openai_api_key.get_secret_value()
    _ = settings.jwt_secret.get_secret_value()
    if settings.vector_backend == "pinecone":
        _ = settings.pinecone_api_key.get_secret_value()

    storage = _resolve(app, dependencies.get_storage)
    pipeline = _resolve(app, dependencies.get_pipeline)

    await storage.initialize()

    queue = DocumentQueue()
    app.state.document_queue = queue
    worker = asyncio.create_task(
        process_documents_worker_task(queue, pipeline, storage),
        name="document-worker",
    )
    logger.info("Startup complete (storage=%s, vector index=%s)",
                settings.storage_backend, settings.vector_backend)

    try:
        yield
    finally:
        logger.info("Shutting down doc-chat-server")
        worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker
        await storage.close()


# ---------------------------------------------------------------------
# Application Factory (Test-Friendly)
# ---------------------------------------------------------------------

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns
    -------
    FastAPI
        Fully configured FastAPI application.
    """
    app = FastAPI(
        title="doc-chat-server",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # --------------------------------------------------------------
    # Global Exception Handling
    # --------------------------------------------------------------

    app.add_exception_handler(ChatServiceError, service_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --------------------------------------------------------------
    # Router Registration
    # --------------------------------------------------------------

    app.include_router(health_routes.router)
    app.include_router(auth_routes.router)
    app.include_router(document_routes.router)
    app.include_router(chat_routes.router)
    app.include_router(realtime_routes.router)

    return app


# ---------------------------------------------------------------------
# Default Application Instance (for Uvicorn/Gunicorn)
# ---------------------------------------------------------------------

app = create_app()
