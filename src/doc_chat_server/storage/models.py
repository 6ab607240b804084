"""
Domain Records

Pydantic models for the entities persisted by a Storage implementation:
users, uploaded documents, chat sessions and their messages.

All records serialize with camelCase keys (``userId``, ``lastMessage``,
``createdAt``) since that is the shape the browser client and the realtime
channel exchange. They accept snake_case on construction.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Record(BaseModel):
    """Base for persisted records: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class DocumentStatus(str, Enum):
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


class User(Record):
    id: int
    username: str = Field(..., min_length=1)
    # Never serialized; empty on records rebuilt from API output
    password_hash: str = Field(default="", exclude=True, repr=False)
    created_at: datetime = Field(default_factory=utcnow)


class Document(Record):
    """
    An uploaded file owned by one user.

    Created with status ``processing``; the processing job moves it once to
    ``processed`` or ``failed``.
    """
    id: int
    user_id: int
    name: str
    original_name: str
    size: int = Field(..., ge=0)
    mime_type: str
    status: DocumentStatus = DocumentStatus.PROCESSING
    page_count: Optional[int] = None
    file_path: str
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class ChatSession(Record):
    id: int
    user_id: int
    title: str
    last_message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Message(Record):
    """A single append-only message within a chat session."""
    id: int
    session_id: int
    role: Literal["user", "assistant"]
    content: str
    sources: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=utcnow)
