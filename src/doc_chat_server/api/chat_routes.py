"""
Chat Session Routes

REST management of a user's chat sessions. Messages are created over the
realtime channel (``/ws``); these routes list, create and delete sessions
and read a session's message history.

Every route is scoped to the authenticated user: sessions owned by someone
else are reported as not found.
"""

from fastapi import APIRouter, Depends, status
from typing import Annotated, List

from .dependencies import get_storage
from .models import CreateSessionRequest, OperationResult
from ..auth.models import UserContext
from ..auth.security import get_current_user
from ..core.errors import NotFoundError
from ..storage import ChatSession, Message, Storage

router = APIRouter(prefix="/api/chat/sessions", tags=["chat"])


async def _get_owned_session(storage: Storage, session_id: int, user: UserContext) -> ChatSession:
    session = await storage.get_chat_session(session_id)
    if session is None or session.user_id != user.user_id:
        raise NotFoundError("Chat session not found")
    return session


@router.get(
    "",
    response_model=List[ChatSession],
    summary="List chat sessions, most recently updated first",
)
async def list_sessions(
    user: Annotated[UserContext, Depends(get_current_user)],
    storage: Annotated[Storage, Depends(get_storage)],
) -> List[ChatSession]:
    return await storage.list_chat_sessions(user.user_id)


@router.post(
    "",
    response_model=ChatSession,
    status_code=status.HTTP_201_CREATED,
    summary="Create a chat session",
)
async def create_session(
    req: CreateSessionRequest,
    user: Annotated[UserContext, Depends(get_current_user)],
    storage: Annotated[Storage, Depends(get_storage)],
) -> ChatSession:
    return await storage.create_chat_session(user.user_id, req.title)


@router.get(
    "/{session_id}/messages",
    response_model=List[Message],
    summary="List a session's messages in order",
)
async def list_messages(
    session_id: int,
    user: Annotated[UserContext, Depends(get_current_user)],
    storage: Annotated[Storage, Depends(get_storage)],
) -> List[Message]:
    session = await _get_owned_session(storage, session_id, user)
    return await storage.list_messages(session.id)


@router.delete(
    "/{session_id}",
    response_model=OperationResult,
    summary="Delete a session and all of its messages",
)
async def delete_session(
    session_id: int,
    user: Annotated[UserContext, Depends(get_current_user)],
    storage: Annotated[Storage, Depends(get_storage)],
) -> OperationResult:
    session = await _get_owned_session(storage, session_id, user)
    await storage.delete_chat_session(session.id)
    return OperationResult(status="deleted", details={"sessionId": session.id})
