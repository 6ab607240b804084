"""
Vector Index

This module defines the vector-index interface used by the document pipeline
and the context retriever, and an in-process implementation of it.

Key Properties
--------------
- Collections are created lazily on first use (``ensure_collection``)
- Every query is filtered by owning user; the filter is never optional
- Scores are cosine similarities, returned in descending order
- The in-process index is thread-safe and fully deterministic, which makes
  it suitable for local development and tests
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from threading import RLock
from typing import Dict, List, Sequence, Tuple

import numpy as np

from .models import ChunkMetadata, VectorMatch, VectorRecord
from ..core.errors import VectorIndexError


# ---------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------

class VectorIndex(ABC):
    """
    Upsert / query / delete-by-filter over chunk vectors.
    """

    @abstractmethod
    async def ensure_collection(self) -> None:
        """Create the collection if absent and wait until it accepts writes."""

    @abstractmethod
    async def upsert(self, records: Sequence[VectorRecord]) -> int:
        """Write all records as one batch. Returns the number written."""

    @abstractmethod
    async def query(
        self,
        vector: List[float],
        user_id: int,
        top_k: int = 5,
    ) -> List[VectorMatch]:
        """Return the ``top_k`` nearest chunks owned by ``user_id``."""

    @abstractmethod
    async def delete_document(self, document_id: int) -> None:
        """Remove every chunk whose metadata carries ``document_id``."""


# ---------------------------------------------------------------------
# In-process implementation
# ---------------------------------------------------------------------

class InMemoryVectorIndex(VectorIndex):
    """
    Brute-force cosine-similarity index held in process memory.
    """

    def __init__(self, dimension: int) -> None:
        self._dimension = dimension
        self._vectors: Dict[str, Tuple[np.ndarray, ChunkMetadata]] = {}
        self._lock = RLock()

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    def _normalize(self, values: List[float]) -> np.ndarray:
        vector = np.asarray(values, dtype="float32")
        if vector.shape != (self._dimension,):
            raise VectorIndexError(
                f"Vector dimension {vector.shape[0] if vector.ndim == 1 else vector.shape} "
                f"does not match index dimension {self._dimension}."
            )
        norm = float(np.linalg.norm(vector))
        return vector / norm if norm > 0 else vector

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ensure_collection(self) -> None:
        return None

    async def upsert(self, records: Sequence[VectorRecord]) -> int:
        # Validate the whole batch before writing any of it
        prepared = [(r.id, self._normalize(r.values), r.metadata) for r in records]

        with self._lock:
            for record_id, vector, metadata in prepared:
                self._vectors[record_id] = (vector, metadata)

        return len(prepared)

    async def query(
        self,
        vector: List[float],
        user_id: int,
        top_k: int = 5,
    ) -> List[VectorMatch]:
        q = self._normalize(vector)

        with self._lock:
            candidates = [
                (record_id, float(np.dot(q, stored)), metadata)
                for record_id, (stored, metadata) in self._vectors.items()
                if metadata.user_id == user_id
            ]

        candidates.sort(key=lambda c: c[1], reverse=True)

        return [
            VectorMatch(id=record_id, score=score, metadata=metadata)
            for record_id, score, metadata in candidates[:top_k]
        ]

    async def delete_document(self, document_id: int) -> None:
        with self._lock:
            for record_id in [
                rid
                for rid, (_, metadata) in self._vectors.items()
                if metadata.document_id == document_id
            ]:
                del self._vectors[record_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._vectors)
