"""
Document Pipeline

Turns one uploaded file into searchable chunk vectors:

1. Extract text according to the mime type.
2. Reject blank documents (EmptyDocument).
3. Split into overlapping chunks.
4. Embed every chunk, one call per chunk, with bounded concurrency.
5. Upsert all (id, vector, metadata) records as one batch.

The pipeline never touches document status; the caller (the processing
job) records success or failure.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from .chunker import DocumentChunker
from .embedder import Embedder
from .extract import ExtractedText, extract_text
from .index import VectorIndex
from .models import ChunkMetadata, VectorRecord, chunk_id
from ..core.errors import EmptyDocument

logger = logging.getLogger("chat.pipeline")


@dataclass(frozen=True)
class ProcessedDocument:
    chunk_count: int
    page_count: Optional[int]


class DocumentPipeline:
    def __init__(
        self,
        embedder: Embedder,
        vector_index: VectorIndex,
        chunker: Optional[DocumentChunker] = None,
        concurrency: int = 8,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1; got {concurrency}")

        self.embedder = embedder
        self.vector_index = vector_index
        self.chunker = chunker or DocumentChunker()
        self.concurrency = concurrency

    async def process(
        self,
        file_path: str,
        document_id: int,
        document_name: str,
        user_id: int,
        mime_type: str,
    ) -> ProcessedDocument:
        # pypdf / python-docx are blocking; keep them off the event loop
        extracted: ExtractedText = await asyncio.to_thread(extract_text, file_path, mime_type)

        if not extracted.text.strip():
            raise EmptyDocument("Document appears to be empty or unreadable")

        chunks = self.chunker.split_with_offsets(extracted.text)
        logger.info(
            "Document %d (%s): %d chars -> %d chunks",
            document_id,
            document_name,
            len(extracted.text),
            len(chunks),
        )

        vectors = await self._embed_all([chunk.text for chunk in chunks])

        records = [
            VectorRecord(
                id=chunk_id(document_id, chunk.index),
                values=vector,
                metadata=ChunkMetadata(
                    document_id=document_id,
                    document_name=document_name,
                    user_id=user_id,
                    chunk_index=chunk.index,
                    page_number=extracted.page_at(chunk.start),
                    text=chunk.text,
                ),
            )
            for chunk, vector in zip(chunks, vectors)
        ]

        await self.vector_index.ensure_collection()
        written = await self.vector_index.upsert(records)
        logger.info("Document %d: upserted %d vectors", document_id, written)

        return ProcessedDocument(
            chunk_count=len(records),
            page_count=extracted.page_count,
        )

    async def _embed_all(self, texts: List[str]) -> List[List[float]]:
        """
        One embedding call per chunk, at most ``concurrency`` in flight.

        Results keep input order. The first failure cancels the rest.
        """
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _embed(text: str) -> List[float]:
            async with semaphore:
                return await self.embedder.embed_one(text)

        tasks = [asyncio.ensure_future(_embed(text)) for text in texts]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
