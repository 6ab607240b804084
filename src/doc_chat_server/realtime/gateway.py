"""
Realtime Gateway

Handles the ``/ws`` chat channel. Each connection runs a small state machine:

    OPEN --(inbound message)--> PROCESSING --(reply sent)--> OPEN
    any state --(disconnect)--> CLOSED

A connection handles one message to completion before reading the next, so
a burst from one client is processed in receipt order. Replies go to the
originating connection only.

Message Flow (``chat_message``)
-------------------------------
1. Check that the session exists and belongs to ``userId``.
2. Persist the user message.
3. Retrieve document context (never fails; may be empty).
4. Load the session history and keep the most recent messages.
5. Generate the assistant reply.
6. Persist the assistant message, marking sources when context was used.
7. Update the session's last-message preview.
8. Reply with ``chat_response`` carrying both stored messages.

Errors in steps 2-7 are logged and reported as an ``error`` message; they
never close the connection.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Dict, List

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError
from starlette.websockets import WebSocketState

from ..api.models import ChatMessageEvent, ChatResponseEvent, ErrorEvent
from ..core.errors import AuthorizationError
from ..rag.responder import ChatResponder
from ..rag.retriever import ContextRetriever
from ..storage import ChatSession, Storage

logger = logging.getLogger("chat.gateway")

ELLIPSIS = "..."


def make_preview(content: str, limit: int = 100) -> str:
    """Cap a message for the session list: first ``limit`` chars plus "..." if cut."""
    if len(content) > limit:
        return content[:limit] + ELLIPSIS
    return content


def error_event(message: str) -> Dict[str, Any]:
    return ErrorEvent(message=message).to_wire()


class ChatGateway:
    """
    Transport-independent handler for inbound realtime messages.
    """

    def __init__(
        self,
        storage: Storage,
        retriever: ContextRetriever,
        responder: ChatResponder,
        history_limit: int = 10,
        preview_length: int = 100,
    ) -> None:
        self.storage = storage
        self.retriever = retriever
        self.responder = responder
        self.history_limit = history_limit
        self.preview_length = preview_length

    async def dispatch(self, payload: Any) -> Dict[str, Any]:
        """
        Route one decoded inbound message and return the reply to send.
        """
        if not isinstance(payload, dict) or "type" not in payload:
            return error_event("Invalid message")

        if payload["type"] != "chat_message":
            return error_event("Unsupported message type")

        try:
            event = ChatMessageEvent.model_validate(payload)
        except PydanticValidationError:
            return error_event("Invalid message")

        return await self.handle_chat_message(event)

    async def handle_chat_message(self, event: ChatMessageEvent) -> Dict[str, Any]:
        try:
            session = await self._authorize(event)
        except AuthorizationError:
            logger.warning(
                "Rejected chat_message: session %d not owned by user %d",
                event.session_id,
                event.user_id,
            )
            return error_event("Unauthorized")
        except Exception:
            logger.exception("Session lookup failed for session %d", event.session_id)
            return error_event("Failed to process message")

        try:
            return await self._respond(session, event)
        except Exception:
            logger.exception("Failed to process chat_message for session %d", session.id)
            return error_event("Failed to process message")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _authorize(self, event: ChatMessageEvent) -> ChatSession:
        session = await self.storage.get_chat_session(event.session_id)
        if session is None or session.user_id != event.user_id:
            raise AuthorizationError("Unauthorized")
        return session

    async def _respond(self, session: ChatSession, event: ChatMessageEvent) -> Dict[str, Any]:
        user_message = await self.storage.create_message(
            session.id,
            role="user",
            content=event.content,
        )

        context = await self.retriever.retrieve(event.content, event.user_id)

        messages = await self.storage.list_messages(session.id)
        history: List[Dict[str, str]] = [
            {"role": m.role, "content": m.content}
            for m in messages[-self.history_limit:]
        ]

        completion = await self.responder.respond(history, context)
        if completion.usage:
            logger.info("Session %d completion usage: %s", session.id, completion.usage)

        ai_message = await self.storage.create_message(
            session.id,
            role="assistant",
            content=completion.text,
            sources={"hasContext": True} if context else None,
        )

        await self.storage.update_chat_session(
            session.id,
            {"last_message": make_preview(event.content, self.preview_length)},
        )

        return ChatResponseEvent(
            user_message=user_message,
            ai_message=ai_message,
        ).to_wire()


class ConnectionState(str, Enum):
    OPEN = "open"
    PROCESSING = "processing"
    CLOSED = "closed"


class RealtimeConnection:
    """
    One accepted WebSocket and its receive loop.
    """

    def __init__(self, websocket: WebSocket, gateway: ChatGateway) -> None:
        self.websocket = websocket
        self.gateway = gateway
        self.state = ConnectionState.CLOSED

    async def serve(self) -> None:
        await self.websocket.accept()
        self.state = ConnectionState.OPEN
        logger.info("WebSocket connection established")

        try:
            while True:
                message = await self.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                self.state = ConnectionState.PROCESSING

                raw = message.get("text")
                if raw is None:
                    # Binary frames carry no JSON text
                    reply = error_event("Invalid message")
                else:
                    try:
                        payload = json.loads(raw)
                    except ValueError:
                        reply = error_event("Invalid message")
                    else:
                        reply = await self.gateway.dispatch(payload)

                await self._send(reply)
                self.state = ConnectionState.OPEN
        except WebSocketDisconnect:
            pass
        finally:
            self.state = ConnectionState.CLOSED
            logger.info("WebSocket connection closed")

    async def _send(self, reply: Dict[str, Any]) -> None:
        if self.websocket.application_state != WebSocketState.CONNECTED:
            return
        await self.websocket.send_json(reply)
