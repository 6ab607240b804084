"""
Context Retriever

Finds the chunks of a user's documents that are relevant to a chat query and
renders them as one context string for the chat responder.

Retrieval is best-effort: any failure (embedding API down, vector index
unreachable, malformed response) is logged and yields an empty context, so
an outage degrades answer quality but never blocks a chat response.
"""

from __future__ import annotations

import logging
from typing import List

from ..embeddings.embedder import Embedder
from ..embeddings.index import VectorIndex
from ..embeddings.models import VectorMatch

logger = logging.getLogger("chat.retriever")


def format_match(match: VectorMatch) -> str:
    meta = match.metadata
    page = meta.page_number if meta.page_number is not None else "unknown"
    return f"[{meta.document_name}, page {page}]: {meta.text}"


class ContextRetriever:
    def __init__(
        self,
        embedder: Embedder,
        vector_index: VectorIndex,
        top_k: int = 5,
        score_threshold: float = 0.7,
    ) -> None:
        self.embedder = embedder
        self.vector_index = vector_index
        self.top_k = top_k
        self.score_threshold = score_threshold

    async def retrieve(self, query: str, user_id: int) -> str:
        """
        Return the formatted context for ``query``, or "" when nothing
        relevant is found or retrieval fails.
        """
        try:
            vector = await self.embedder.embed_one(query)
            matches = await self.vector_index.query(vector, user_id=user_id, top_k=self.top_k)
        except Exception:
            logger.exception("Context retrieval failed for user %d", user_id)
            return ""

        relevant: List[VectorMatch] = [
            m for m in matches
            if m.score > self.score_threshold and m.metadata.user_id == user_id
        ]

        logger.debug(
            "User %d: %d matches, %d above threshold %.2f",
            user_id,
            len(matches),
            len(relevant),
            self.score_threshold,
        )

        return "\n\n".join(format_match(m) for m in relevant)
