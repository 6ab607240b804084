"""
In-Memory Storage

Dictionary-backed implementation of the Storage interface.

Design choices
--------------
- In-memory only (no persistence across process restarts).
- Sequential integer IDs per entity, starting at 1.
- Thread-safe access using a re-entrant lock.
- Copy-on-read semantics (callers cannot mutate internal state).
"""

from __future__ import annotations

from itertools import count
from threading import RLock
from typing import Any, Dict, List, Optional

from .base import Storage, UPDATABLE_SESSION_FIELDS
from .models import ChatSession, Document, DocumentStatus, Message, User, utcnow


class MemoryStorage(Storage):
    """
    In-memory store for a single server process.

    For horizontally scaled or persistent deployments use ``SqlStorage``,
    which exposes the same interface.
    """

    def __init__(self) -> None:
        self._users: Dict[int, User] = {}
        self._documents: Dict[int, Document] = {}
        self._sessions: Dict[int, ChatSession] = {}
        self._messages: Dict[int, Message] = {}

        self._user_ids = count(1)
        self._document_ids = count(1)
        self._session_ids = count(1)
        self._message_ids = count(1)

        self._lock = RLock()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: int) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return user.model_copy() if user else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        with self._lock:
            for user in self._users.values():
                if user.username == username:
                    return user.model_copy()
            return None

    async def create_user(self, username: str, password_hash: str) -> User:
        with self._lock:
            user = User(
                id=next(self._user_ids),
                username=username,
                password_hash=password_hash,
            )
            self._users[user.id] = user
            return user.model_copy()

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def get_document(self, document_id: int) -> Optional[Document]:
        with self._lock:
            document = self._documents.get(document_id)
            return document.model_copy() if document else None

    async def list_documents(self, user_id: int) -> List[Document]:
        with self._lock:
            return [
                doc.model_copy()
                for doc in self._documents.values()
                if doc.user_id == user_id
            ]

    async def create_document(
        self,
        user_id: int,
        name: str,
        original_name: str,
        size: int,
        mime_type: str,
        file_path: str,
    ) -> Document:
        with self._lock:
            document = Document(
                id=next(self._document_ids),
                user_id=user_id,
                name=name,
                original_name=original_name,
                size=size,
                mime_type=mime_type,
                file_path=file_path,
            )
            self._documents[document.id] = document
            return document.model_copy()

    async def update_document_status(
        self,
        document_id: int,
        status: DocumentStatus,
        page_count: Optional[int] = None,
        error: Optional[str] = None,
    ) -> Optional[Document]:
        with self._lock:
            document = self._documents.get(document_id)
            if document is None:
                return None

            updated = document.model_copy(update={
                "status": status,
                "page_count": page_count if page_count is not None else document.page_count,
                "error": error,
            })
            self._documents[document_id] = updated
            return updated.model_copy()

    async def delete_document(self, document_id: int) -> bool:
        with self._lock:
            return self._documents.pop(document_id, None) is not None

    # ------------------------------------------------------------------
    # Chat sessions
    # ------------------------------------------------------------------

    async def get_chat_session(self, session_id: int) -> Optional[ChatSession]:
        with self._lock:
            session = self._sessions.get(session_id)
            return session.model_copy() if session else None

    async def list_chat_sessions(self, user_id: int) -> List[ChatSession]:
        with self._lock:
            sessions = [s for s in self._sessions.values() if s.user_id == user_id]
            sessions.sort(key=lambda s: (s.updated_at, s.id), reverse=True)
            return [s.model_copy() for s in sessions]

    async def create_chat_session(self, user_id: int, title: str) -> ChatSession:
        with self._lock:
            now = utcnow()
            session = ChatSession(
                id=next(self._session_ids),
                user_id=user_id,
                title=title,
                created_at=now,
                updated_at=now,
            )
            self._sessions[session.id] = session
            return session.model_copy()

    async def update_chat_session(
        self,
        session_id: int,
        updates: Dict[str, Any],
    ) -> Optional[ChatSession]:
        unknown = set(updates) - UPDATABLE_SESSION_FIELDS
        if unknown:
            raise ValueError(f"Cannot update session field(s): {', '.join(sorted(unknown))}")

        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None

            updated = session.model_copy(update={**updates, "updated_at": utcnow()})
            self._sessions[session_id] = updated
            return updated.model_copy()

    async def delete_chat_session(self, session_id: int) -> bool:
        with self._lock:
            for message_id in [
                m.id for m in self._messages.values() if m.session_id == session_id
            ]:
                del self._messages[message_id]

            return self._sessions.pop(session_id, None) is not None

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def list_messages(self, session_id: int) -> List[Message]:
        with self._lock:
            messages = [m for m in self._messages.values() if m.session_id == session_id]
            messages.sort(key=lambda m: (m.created_at, m.id))
            return [m.model_copy() for m in messages]

    async def create_message(
        self,
        session_id: int,
        role: str,
        content: str,
        sources: Optional[Dict[str, Any]] = None,
    ) -> Message:
        with self._lock:
            message = Message(
                id=next(self._message_ids),
                session_id=session_id,
                role=role,
                content=content,
                sources=sources,
            )
            self._messages[message.id] = message
            return message.model_copy()
