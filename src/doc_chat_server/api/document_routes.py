"""
Document Routes

Upload, list, inspect and delete a user's documents.

Uploads are accepted synchronously (type and size checks, file stored,
record created with status ``processing``) and processed in the background
by the document worker. Clients poll ``GET /api/documents/{id}`` to see the
terminal status.
"""

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, File, UploadFile, status

from .dependencies import get_document_queue, get_storage, get_vector_index
from .models import OperationResult
from ..auth.models import UserContext
from ..auth.security import get_current_user
from ..config import settings
from ..core.errors import (
    NotFoundError,
    PayloadTooLarge,
    UnsupportedMediaType,
    ValidationError,
)
from ..embeddings.extract import SUPPORTED_MIME_TYPES
from ..embeddings.index import VectorIndex
from ..embeddings.queue import DocumentJob, DocumentQueue
from ..storage import Document, Storage

logger = logging.getLogger("chat.documents")

router = APIRouter(prefix="/api/documents", tags=["documents"])


# ---------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------

async def _get_owned_document(storage: Storage, document_id: int, user: UserContext) -> Document:
    document = await storage.get_document(document_id)
    if document is None or document.user_id != user.user_id:
        raise NotFoundError("Document not found")
    return document


def _store_upload(contents: bytes) -> Path:
    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    path = upload_dir / uuid.uuid4().hex
    path.write_bytes(contents)
    return path


# ---------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------

@router.get(
    "",
    response_model=List[Document],
    summary="List the current user's documents",
)
async def list_documents(
    user: Annotated[UserContext, Depends(get_current_user)],
    storage: Annotated[Storage, Depends(get_storage)],
) -> List[Document]:
    return await storage.list_documents(user.user_id)


@router.get(
    "/{document_id}",
    response_model=Document,
    summary="Get one document (poll this for processing status)",
)
async def get_document(
    document_id: int,
    user: Annotated[UserContext, Depends(get_current_user)],
    storage: Annotated[Storage, Depends(get_storage)],
) -> Document:
    return await _get_owned_document(storage, document_id, user)


@router.post(
    "/upload",
    response_model=Document,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a document for RAG processing",
)
async def upload_document(
    user: Annotated[UserContext, Depends(get_current_user)],
    storage: Annotated[Storage, Depends(get_storage)],
    queue: Annotated[DocumentQueue, Depends(get_document_queue)],
    file: Optional[UploadFile] = File(default=None),
) -> Document:
    """
    Workflow
    --------
    1. Validate content type and size (nothing is persisted on rejection).
    2. Store the file under the upload directory.
    3. Create the document record with status ``processing``.
    4. Enqueue the processing job and return immediately.
    """
    if file is None:
        raise ValidationError("No file uploaded")

    if file.content_type not in SUPPORTED_MIME_TYPES:
        raise UnsupportedMediaType(
            "Invalid file type. Only PDF, DOCX, and TXT files are allowed."
        )

    contents = await file.read(settings.max_upload_bytes + 1)
    if len(contents) > settings.max_upload_bytes:
        raise PayloadTooLarge(
            f"File exceeds the maximum upload size of {settings.max_upload_bytes} bytes."
        )

    path = await asyncio.to_thread(_store_upload, contents)
    filename = file.filename or path.name

    document = await storage.create_document(
        user_id=user.user_id,
        name=filename,
        original_name=filename,
        size=len(contents),
        mime_type=file.content_type,
        file_path=str(path),
    )

    await queue.enqueue(DocumentJob(
        document_id=document.id,
        document_name=document.name,
        user_id=user.user_id,
        file_path=document.file_path,
        mime_type=document.mime_type,
    ))

    logger.info(
        "Document %d uploaded by user %d (%s, %d bytes)",
        document.id,
        user.user_id,
        document.mime_type,
        document.size,
    )
    return document


@router.delete(
    "/{document_id}",
    response_model=OperationResult,
    summary="Delete a document and its indexed chunks",
)
async def delete_document(
    document_id: int,
    user: Annotated[UserContext, Depends(get_current_user)],
    storage: Annotated[Storage, Depends(get_storage)],
    vector_index: Annotated[VectorIndex, Depends(get_vector_index)],
) -> OperationResult:
    document = await _get_owned_document(storage, document_id, user)

    await vector_index.delete_document(document.id)
    Path(document.file_path).unlink(missing_ok=True)
    await storage.delete_document(document.id)

    logger.info("Document %d deleted by user %d", document.id, user.user_id)
    return OperationResult(status="deleted", details={"documentId": document.id})
