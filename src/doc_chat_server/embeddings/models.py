"""
Embedding Data Models

This module defines the canonical data model used to represent a single
document chunk stored in the vector index.

Each VectorRecord corresponds to ONE embedding vector and ONE chunk of text.
Metadata keys are camelCase because they are stored verbatim in the hosted
index and used there as filter fields (``userId``, ``documentId``).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel


class ChunkMetadata(BaseModel):
    """
    Metadata stored alongside every chunk vector.

    ``user_id`` must equal the owning document's user; searches filter on it.
    """

    document_id: int
    document_name: str = Field(..., min_length=1)
    user_id: int
    chunk_index: int = Field(..., ge=0)
    page_number: Optional[int] = Field(
        default=None,
        ge=1,
        description="1-based page the chunk starts on, when the source format has pages.",
    )
    text: str = Field(..., min_length=1)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    def to_index_metadata(self) -> Dict[str, Any]:
        # Hosted indexes reject null metadata values
        return self.model_dump(by_alias=True, exclude_none=True)


class VectorRecord(BaseModel):
    """
    A single (id, vector, metadata) triple to upsert.
    """

    id: str = Field(..., min_length=1)
    values: List[float] = Field(..., min_length=1)
    metadata: ChunkMetadata

    model_config = ConfigDict(extra="forbid", frozen=True)


class VectorMatch(BaseModel):
    """
    A single similarity-search hit, in descending score order.
    """

    id: str
    score: float
    metadata: ChunkMetadata

    model_config = ConfigDict(extra="forbid", frozen=True)


def chunk_id(document_id: int, chunk_index: int) -> str:
    return f"{document_id}-{chunk_index}"
