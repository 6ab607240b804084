"""
Storage Interface

The capability set every persistence backend provides: get/create/update/
delete per entity. The realtime gateway, the HTTP routes and the document
job worker depend only on this interface, so the in-memory backend can be
swapped for the SQL one (or any other durable store) without touching them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import ChatSession, Document, DocumentStatus, Message, User


class Storage(ABC):
    """Abstract async persistence for users, documents, sessions and messages."""

    async def initialize(self) -> None:
        """Prepare the backend (create tables, open pools). No-op by default."""

    async def close(self) -> None:
        """Release backend resources. No-op by default."""

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    async def create_user(self, username: str, password_hash: str) -> User: ...

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_document(self, document_id: int) -> Optional[Document]: ...

    @abstractmethod
    async def list_documents(self, user_id: int) -> List[Document]: ...

    @abstractmethod
    async def create_document(
        self,
        user_id: int,
        name: str,
        original_name: str,
        size: int,
        mime_type: str,
        file_path: str,
    ) -> Document: ...

    @abstractmethod
    async def update_document_status(
        self,
        document_id: int,
        status: DocumentStatus,
        page_count: Optional[int] = None,
        error: Optional[str] = None,
    ) -> Optional[Document]:
        """
        Move a document to a new status.

        ``page_count`` is only overwritten when provided. Returns None when the
        document does not exist (e.g. it was deleted while processing).
        """

    @abstractmethod
    async def delete_document(self, document_id: int) -> bool: ...

    # ------------------------------------------------------------------
    # Chat sessions
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_chat_session(self, session_id: int) -> Optional[ChatSession]: ...

    @abstractmethod
    async def list_chat_sessions(self, user_id: int) -> List[ChatSession]:
        """Return the user's sessions, most recently updated first."""

    @abstractmethod
    async def create_chat_session(self, user_id: int, title: str) -> ChatSession: ...

    @abstractmethod
    async def update_chat_session(
        self,
        session_id: int,
        updates: Dict[str, Any],
    ) -> Optional[ChatSession]:
        """Apply field updates (``title``, ``last_message``) and bump ``updated_at``."""

    @abstractmethod
    async def delete_chat_session(self, session_id: int) -> bool:
        """Delete the session and every message in it."""

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_messages(self, session_id: int) -> List[Message]:
        """Return the session's messages ordered by creation time."""

    @abstractmethod
    async def create_message(
        self,
        session_id: int,
        role: str,
        content: str,
        sources: Optional[Dict[str, Any]] = None,
    ) -> Message: ...


UPDATABLE_SESSION_FIELDS = frozenset({"title", "last_message"})
