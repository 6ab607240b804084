"""
API Models

This module defines the Pydantic models used for request/response validation
on the HTTP routes and for the JSON events exchanged on the realtime channel.

Design Goals
------------
- Strong typing
- camelCase on the wire, snake_case in Python
- Unknown fields rejected on inbound payloads
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel

from ..storage.models import Message, User


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------
# Auth Models
# ---------------------------------------------------------------------

class CredentialsRequest(WireModel):
    """
    Username/password pair for register and login.
    """
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=1024)


class AuthResponse(WireModel):
    token: str
    user: User


# ---------------------------------------------------------------------
# Chat Session Models
# ---------------------------------------------------------------------

class CreateSessionRequest(WireModel):
    title: str = Field(default="New Chat", min_length=1, max_length=255)


class OperationResult(WireModel):
    """
    Standardized mutation operation result.
    """
    status: Literal["deleted", "ok"]
    details: Optional[Dict[str, Any]] = None


# ---------------------------------------------------------------------
# Realtime Events
# ---------------------------------------------------------------------

class ChatMessageEvent(WireModel):
    """
    Inbound ``chat_message``: a user's text for one of their sessions.
    """
    type: Literal["chat_message"] = "chat_message"
    session_id: int
    content: str = Field(..., min_length=1)
    user_id: int


class ChatResponseEvent(WireModel):
    """
    Outbound reply carrying both persisted messages.
    """
    type: Literal["chat_response"] = "chat_response"
    user_message: Message
    ai_message: Message


class ErrorEvent(WireModel):
    type: Literal["error"] = "error"
    message: str
