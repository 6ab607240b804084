"""
SQL Storage

SQLAlchemy-backed implementation of the Storage interface. Each operation
runs in its own short-lived AsyncSession and commits before returning, so
the store can be shared by concurrent request handlers and the background
document worker.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar

from sqlalchemy import delete, select

from ..db import Base, ChatSessionRow, DocumentRow, MessageRow, UserRow
from ..db import create_engine_and_sessionmaker
from .base import Storage, UPDATABLE_SESSION_FIELDS
from .models import ChatSession, Document, DocumentStatus, Message, Record, User, utcnow

logger = logging.getLogger("chat.storage")

R = TypeVar("R", bound=Record)


def _to_record(model: Type[R], row: Base) -> R:
    """Convert an ORM row into its pydantic record."""
    values = {}
    for column in row.__table__.columns:
        value = getattr(row, column.key)
        # SQLite hands back naive datetimes even for timezone-aware columns
        if isinstance(value, datetime) and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        values[column.key] = value
    return model(**values)


class SqlStorage(Storage):
    """
    Durable storage on any SQLAlchemy async URL
    (``sqlite+aiosqlite://...``, ``postgresql+asyncpg://...``).
    """

    def __init__(self, database_url: str) -> None:
        self._engine, self._session_factory = create_engine_and_sessionmaker(database_url)

    async def initialize(self) -> None:
        """Create missing tables. Schema migrations are out of scope."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("SQL storage initialized")

    async def close(self) -> None:
        await self._engine.dispose()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: int) -> Optional[User]:
        async with self._session_factory() as session:
            row = await session.get(UserRow, user_id)
            return _to_record(User, row) if row else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserRow).where(UserRow.username == username)
            )
            row = result.scalar_one_or_none()
            return _to_record(User, row) if row else None

    async def create_user(self, username: str, password_hash: str) -> User:
        async with self._session_factory() as session:
            row = UserRow(username=username, password_hash=password_hash)
            session.add(row)
            await session.commit()
            return _to_record(User, row)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def get_document(self, document_id: int) -> Optional[Document]:
        async with self._session_factory() as session:
            row = await session.get(DocumentRow, document_id)
            return _to_record(Document, row) if row else None

    async def list_documents(self, user_id: int) -> List[Document]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(DocumentRow)
                .where(DocumentRow.user_id == user_id)
                .order_by(DocumentRow.id)
            )
            return [_to_record(Document, row) for row in result.scalars()]

    async def create_document(
        self,
        user_id: int,
        name: str,
        original_name: str,
        size: int,
        mime_type: str,
        file_path: str,
    ) -> Document:
        async with self._session_factory() as session:
            row = DocumentRow(
                user_id=user_id,
                name=name,
                original_name=original_name,
                size=size,
                mime_type=mime_type,
                status=DocumentStatus.PROCESSING.value,
                file_path=file_path,
            )
            session.add(row)
            await session.commit()
            return _to_record(Document, row)

    async def update_document_status(
        self,
        document_id: int,
        status: DocumentStatus,
        page_count: Optional[int] = None,
        error: Optional[str] = None,
    ) -> Optional[Document]:
        async with self._session_factory() as session:
            row = await session.get(DocumentRow, document_id)
            if row is None:
                return None

            row.status = DocumentStatus(status).value
            if page_count is not None:
                row.page_count = page_count
            row.error = error

            await session.commit()
            return _to_record(Document, row)

    async def delete_document(self, document_id: int) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(DocumentRow).where(DocumentRow.id == document_id)
            )
            await session.commit()
            return result.rowcount > 0

    # ------------------------------------------------------------------
    # Chat sessions
    # ------------------------------------------------------------------

    async def get_chat_session(self, session_id: int) -> Optional[ChatSession]:
        async with self._session_factory() as session:
            row = await session.get(ChatSessionRow, session_id)
            return _to_record(ChatSession, row) if row else None

    async def list_chat_sessions(self, user_id: int) -> List[ChatSession]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ChatSessionRow)
                .where(ChatSessionRow.user_id == user_id)
                .order_by(ChatSessionRow.updated_at.desc(), ChatSessionRow.id.desc())
            )
            return [_to_record(ChatSession, row) for row in result.scalars()]

    async def create_chat_session(self, user_id: int, title: str) -> ChatSession:
        async with self._session_factory() as session:
            row = ChatSessionRow(user_id=user_id, title=title)
            session.add(row)
            await session.commit()
            return _to_record(ChatSession, row)

    async def update_chat_session(
        self,
        session_id: int,
        updates: Dict[str, Any],
    ) -> Optional[ChatSession]:
        unknown = set(updates) - UPDATABLE_SESSION_FIELDS
        if unknown:
            raise ValueError(f"Cannot update session field(s): {', '.join(sorted(unknown))}")

        async with self._session_factory() as session:
            row = await session.get(ChatSessionRow, session_id)
            if row is None:
                return None

            for key, value in updates.items():
                setattr(row, key, value)
            # onupdate only fires when a column value actually changes
            row.updated_at = utcnow()

            await session.commit()
            await session.refresh(row)
            return _to_record(ChatSession, row)

    async def delete_chat_session(self, session_id: int) -> bool:
        async with self._session_factory() as session:
            # SQLite does not enforce ON DELETE CASCADE unless asked to
            await session.execute(
                delete(MessageRow).where(MessageRow.session_id == session_id)
            )
            result = await session.execute(
                delete(ChatSessionRow).where(ChatSessionRow.id == session_id)
            )
            await session.commit()
            return result.rowcount > 0

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def list_messages(self, session_id: int) -> List[Message]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(MessageRow)
                .where(MessageRow.session_id == session_id)
                .order_by(MessageRow.created_at, MessageRow.id)
            )
            return [_to_record(Message, row) for row in result.scalars()]

    async def create_message(
        self,
        session_id: int,
        role: str,
        content: str,
        sources: Optional[Dict[str, Any]] = None,
    ) -> Message:
        async with self._session_factory() as session:
            row = MessageRow(
                session_id=session_id,
                role=role,
                content=content,
                sources=sources,
            )
            session.add(row)
            await session.commit()
            return _to_record(Message, row)
