"""
Async queue for background document processing.

Uploads return immediately with status ``processing``. The upload route
enqueues a DocumentJob; the worker started in the application lifespan runs
the pipeline and records the terminal status (``processed`` or ``failed``).
Clients observe the outcome by re-fetching the document.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..storage import DocumentStatus, Storage
from .pipeline import DocumentPipeline

logger = logging.getLogger("chat.jobs")


@dataclass
class DocumentJob:
    """Represents a request to process one uploaded document."""
    document_id: int
    document_name: str
    user_id: int
    file_path: str
    mime_type: str


class DocumentQueue:
    """FIFO of pending document jobs."""
    def __init__(self):
        self._queue: asyncio.Queue[DocumentJob] = asyncio.Queue()

    async def enqueue(self, job: DocumentJob) -> int:
        """Add a job to the queue. Returns current queue size."""
        await self._queue.put(job)
        qsize = self._queue.qsize()
        logger.info("Job enqueued: document %d (queue size: %d)", job.document_id, qsize)
        return qsize

    async def get_next_job(self) -> DocumentJob:
        return await self._queue.get()

    def task_done(self):
        self._queue.task_done()

    async def join(self):
        await self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()


async def run_document_job(
    job: DocumentJob,
    pipeline: DocumentPipeline,
    storage: Storage,
) -> Optional[DocumentStatus]:
    """
    Process one document and persist its terminal status.

    Failures are terminal for the document: they are logged and recorded as
    ``failed``; nothing is retried. Returns None when the document was
    deleted before processing finished.
    """
    try:
        result = await pipeline.process(
            job.file_path,
            job.document_id,
            job.document_name,
            job.user_id,
            job.mime_type,
        )
    except Exception as exc:
        logger.exception("Document %d processing failed", job.document_id)
        await storage.update_document_status(
            job.document_id,
            DocumentStatus.FAILED,
            error=str(exc) or type(exc).__name__,
        )
        return DocumentStatus.FAILED

    stored = await storage.update_document_status(
        job.document_id,
        DocumentStatus.PROCESSED,
        page_count=result.page_count,
    )
    if stored is None:
        # Deleted while processing; the upsert above re-added its chunks
        logger.info("Document %d deleted during processing; removing its chunks", job.document_id)
        await pipeline.vector_index.delete_document(job.document_id)
        return None

    logger.info(
        "Document %d processed (%d chunks)",
        job.document_id,
        result.chunk_count,
    )
    return DocumentStatus.PROCESSED


async def process_documents_worker_task(
    queue: DocumentQueue,
    pipeline: DocumentPipeline,
    storage: Storage,
):
    """
    Background worker that consumes jobs from the queue until cancelled.
    """
    logger.info("Document worker started.")

    while True:
        try:
            job = await queue.get_next_job()
        except asyncio.CancelledError:
            logger.info("Document worker cancelled.")
            break

        try:
            await run_document_job(job, pipeline, storage)
        except asyncio.CancelledError:
            logger.info("Document worker cancelled.")
            break
        except Exception:
            # Status update itself failed; keep the worker alive
            logger.exception("Unexpected error in document worker")
        finally:
            queue.task_done()
