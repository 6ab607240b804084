"""
Error Taxonomy and Global Error Handling

This module defines the exception hierarchy shared by the document pipeline,
the RAG components and the realtime gateway, plus the FastAPI handlers that
turn those exceptions into HTTP responses.

Taxonomy
--------
- ValidationError: bad uploads or unusable document content. Never retried.
- AuthorizationError: a user acting on a resource they do not own.
- NotFoundError: a resource that does not exist (or is hidden from the user).
- UpstreamFailure: an embedding, chat-completion or vector-index call failed.
  Not retried automatically.

Design Goals
------------
- Never leak internal exception details to clients
- Always return deterministic, machine-readable error responses
- Log full stack traces internally for debugging
"""

from __future__ import annotations

import logging
from typing import Dict, Any

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("chat.errors")


# ---------------------------------------------------------------------
# Exception Hierarchy
# ---------------------------------------------------------------------

class ChatServiceError(Exception):
    """Base class for all service-level errors."""

    status_code: int = 500
    error_code: str = "internal_server_error"


class ValidationError(ChatServiceError):
    """Raised for rejected input (upload type/size, empty document text)."""

    status_code = 400
    error_code = "validation_error"


class EmptyDocument(ValidationError):
    """Raised when extracted document text is blank after trimming."""

    error_code = "empty_document"


class UnsupportedMediaType(ValidationError):
    status_code = 415
    error_code = "unsupported_media_type"


class PayloadTooLarge(ValidationError):
    status_code = 413
    error_code = "payload_too_large"


class AuthorizationError(ChatServiceError):
    """Raised when a user does not own the session or document they address."""

    status_code = 403
    error_code = "forbidden"


class NotFoundError(ChatServiceError):
    status_code = 404
    error_code = "not_found"


class UpstreamFailure(ChatServiceError):
    """Raised when an external API (LLM, embeddings, vector index) fails."""

    status_code = 502
    error_code = "upstream_failure"


class EmbeddingError(UpstreamFailure):
    """Raised when embedding generation fails."""


class VectorIndexError(UpstreamFailure):
    """Raised when the vector index rejects or fails a request."""


class CompletionFailure(UpstreamFailure):
    """Raised when the chat-completion API fails or returns an unusable body."""


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

async def service_error_handler(
    request: Request,
    exc: ChatServiceError,
) -> JSONResponse:
    """
    Map a ChatServiceError onto its HTTP status.

    Upstream failures are logged with their traceback; client errors are
    logged at warning level only.
    """
    if isinstance(exc, UpstreamFailure):
        logger.error(
            "Upstream failure during request: %s %s (%s)",
            request.method,
            request.url.path,
            type(exc).__name__,
            exc_info=exc,
        )
        detail = "Upstream service failure"
    else:
        logger.warning(
            "Request rejected: %s %s (%s: %s)",
            request.method,
            request.url.path,
            type(exc).__name__,
            exc,
        )
        detail = str(exc) or exc.error_code

    payload: Dict[str, Any] = {
        "error": exc.error_code,
        "detail": detail,
    }

    return JSONResponse(
        status_code=exc.status_code,
        content=payload,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for uncaught exceptions.

    Behavior
    --------
    - Logs the full exception stack trace for internal diagnostics.
    - Returns a generic 500 error to the client with no internal details.
    """
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )

    payload: Dict[str, Any] = {
        "error": "internal_server_error",
        "detail": "Internal server error",
    }

    return JSONResponse(
        status_code=500,
        content=payload,
    )
