"""
Realtime Gateway Tests

Exercises the chat_message flow directly against the gateway (no socket),
with in-memory storage and a mocked chat model.
"""

from unittest.mock import AsyncMock

import pytest

from doc_chat_server.core.errors import CompletionFailure
from doc_chat_server.llm.client import ChatCompletion
from doc_chat_server.rag.responder import ChatResponder
from doc_chat_server.rag.retriever import ContextRetriever
from doc_chat_server.realtime.gateway import ChatGateway, make_preview


@pytest.fixture
def mock_retriever():
    mock = AsyncMock(spec=ContextRetriever)
    mock.retrieve.return_value = "[guide.pdf, page 2]: The answer is 42."
    return mock


@pytest.fixture
def mock_responder():
    mock = AsyncMock(spec=ChatResponder)
    mock.respond.return_value = ChatCompletion(text="It is 42.")
    return mock


@pytest.fixture
def chat_gateway(storage, mock_retriever, mock_responder):
    return ChatGateway(storage, mock_retriever, mock_responder)


@pytest.fixture
async def owned_session(storage):
    user = await storage.create_user("alice", "h")
    return await storage.create_chat_session(user.id, "New Chat")


def chat_message(session, content="What is the answer?", user_id=None):
    return {
        "type": "chat_message",
        "sessionId": session.id,
        "content": content,
        "userId": session.user_id if user_id is None else user_id,
    }


async def test_reply_carries_both_stored_messages(chat_gateway, storage, owned_session):
    reply = await chat_gateway.dispatch(chat_message(owned_session))

    assert reply["type"] == "chat_response"
    assert reply["userMessage"]["role"] == "user"
    assert reply["userMessage"]["content"] == "What is the answer?"
    assert reply["userMessage"]["sessionId"] == owned_session.id
    assert reply["aiMessage"]["role"] == "assistant"
    assert reply["aiMessage"]["content"] == "It is 42."
    assert reply["aiMessage"]["sources"] == {"hasContext": True}

    stored = await storage.list_messages(owned_session.id)
    assert [m.id for m in stored] == [reply["userMessage"]["id"], reply["aiMessage"]["id"]]


async def test_no_context_means_no_sources(chat_gateway, mock_retriever, owned_session):
    mock_retriever.retrieve.return_value = ""

    reply = await chat_gateway.dispatch(chat_message(owned_session))

    assert reply["aiMessage"]["sources"] is None


async def test_retrieval_uses_message_owner(chat_gateway, mock_retriever, owned_session):
    await chat_gateway.dispatch(chat_message(owned_session, content="hello"))

    mock_retriever.retrieve.assert_awaited_once_with("hello", owned_session.user_id)


async def test_foreign_session_is_unauthorized(chat_gateway, storage, mock_responder, owned_session):
    reply = await chat_gateway.dispatch(chat_message(owned_session, user_id=owned_session.user_id + 1))

    assert reply == {"type": "error", "message": "Unauthorized"}
    assert await storage.list_messages(owned_session.id) == []
    mock_responder.respond.assert_not_awaited()


async def test_missing_session_is_unauthorized(chat_gateway, owned_session):
    payload = chat_message(owned_session)
    payload["sessionId"] = 9999

    assert await chat_gateway.dispatch(payload) == {"type": "error", "message": "Unauthorized"}


async def test_long_message_preview_is_truncated(chat_gateway, storage, owned_session):
    await chat_gateway.dispatch(chat_message(owned_session, content="x" * 150))

    session = await storage.get_chat_session(owned_session.id)
    assert session.last_message == "x" * 100 + "..."
    assert len(session.last_message) == 103


async def test_short_message_preview_is_verbatim(chat_gateway, storage, owned_session):
    await chat_gateway.dispatch(chat_message(owned_session, content="y" * 50))

    session = await storage.get_chat_session(owned_session.id)
    assert session.last_message == "y" * 50


async def test_history_is_limited_to_recent_messages(chat_gateway, storage, mock_responder, owned_session):
    for i in range(12):
        role = "user" if i % 2 == 0 else "assistant"
        await storage.create_message(owned_session.id, role, f"earlier {i}")

    await chat_gateway.dispatch(chat_message(owned_session, content="latest"))

    history, context = mock_responder.respond.await_args.args
    assert len(history) == 10
    assert history[-1] == {"role": "user", "content": "latest"}
    assert history[0] == {"role": "assistant", "content": "earlier 3"}
    assert context == "[guide.pdf, page 2]: The answer is 42."


async def test_completion_failure_reports_error_and_keeps_user_message(
    chat_gateway, storage, mock_responder, owned_session
):
    mock_responder.respond.side_effect = CompletionFailure("Failed to generate chat response")

    reply = await chat_gateway.dispatch(chat_message(owned_session))

    assert reply == {"type": "error", "message": "Failed to process message"}
    stored = await storage.list_messages(owned_session.id)
    assert [m.role for m in stored] == ["user"]


@pytest.mark.parametrize(
    "payload, expected",
    [
        ("not an object", "Invalid message"),
        ({"content": "missing type"}, "Invalid message"),
        ({"type": "ping"}, "Unsupported message type"),
        ({"type": "chat_message", "sessionId": 1}, "Invalid message"),
        ({"type": "chat_message", "sessionId": 1, "userId": 1, "content": ""}, "Invalid message"),
    ],
)
async def test_malformed_messages(chat_gateway, payload, expected):
    assert await chat_gateway.dispatch(payload) == {"type": "error", "message": expected}


def test_make_preview():
    assert make_preview("short") == "short"
    assert make_preview("a" * 100) == "a" * 100
    assert make_preview("a" * 101) == "a" * 100 + "..."
    assert make_preview("abcdef", limit=3) == "abc..."
