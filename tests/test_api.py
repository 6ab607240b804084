"""
HTTP and WebSocket API Tests

Runs the full application (lifespan included, so the document worker is
live) against in-memory storage, an in-memory vector index, a deterministic
embedder and a mocked chat model.
"""

import asyncio
import time
from pathlib import Path

from doc_chat_server.config import settings

TEXT = (
    "Quarterly report.\n\n"
    + "Revenue grew in every region during the quarter. " * 20
)


def upload(client, headers, content=TEXT.encode(), name="report.txt", mime="text/plain"):
    return client.post(
        "/api/documents/upload",
        files={"file": (name, content, mime)},
        headers=headers,
    )


def wait_for_processing(client, headers, document_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        document = client.get(f"/api/documents/{document_id}", headers=headers).json()
        if document["status"] != "processing":
            return document
        time.sleep(0.02)
    raise AssertionError(f"document {document_id} still processing")


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


# ---------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------

class TestDocuments:

    def test_upload_is_accepted_then_processed(self, client, register, vector_index):
        user, headers = register()

        resp = upload(client, headers)

        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "processing"
        assert body["userId"] == user["id"]
        assert body["originalName"] == "report.txt"
        assert body["mimeType"] == "text/plain"
        assert body["size"] == len(TEXT.encode())

        document = wait_for_processing(client, headers, body["id"])
        assert document["status"] == "processed"
        assert document["pageCount"] == 1
        assert len(vector_index) > 0

    def test_file_writes_and_password_hashing_run_off_the_event_loop(
        self, client, register, monkeypatch
    ):
        offloaded = []
        real_to_thread = asyncio.to_thread

        async def recording_to_thread(func, /, *args, **kwargs):
            offloaded.append(func.__name__)
            return await real_to_thread(func, *args, **kwargs)

        monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)

        _, headers = register("carol", "pa55word")
        login = client.post("/api/login", json={"username": "carol", "password": "pa55word"})
        resp = upload(client, headers)

        assert login.status_code == 200
        assert resp.status_code == 201
        assert {"hash_password", "verify_password", "_store_upload"} <= set(offloaded)

    def test_unreadable_document_marked_failed(self, client, register):
        _, headers = register()

        resp = upload(client, headers, content=b"   \n\n  ")

        document = wait_for_processing(client, headers, resp.json()["id"])
        assert document["status"] == "failed"

    def test_unsupported_type_rejected(self, client, register, storage):
        user, headers = register()

        resp = upload(client, headers, content=b"\x89PNG", name="image.png", mime="image/png")

        assert resp.status_code == 415
        assert client.get("/api/documents", headers=headers).json() == []

    def test_oversized_upload_rejected(self, client, register, monkeypatch):
        _, headers = register()
        monkeypatch.setattr(settings, "max_upload_bytes", 64)

        resp = upload(client, headers, content=b"x" * 65)

        assert resp.status_code == 413
        assert client.get("/api/documents", headers=headers).json() == []

    def test_missing_file_rejected(self, client, register):
        _, headers = register()

        resp = client.post("/api/documents/upload", headers=headers)

        assert resp.status_code == 400

    def test_documents_are_private(self, client, register):
        _, alice = register("alice")
        _, bob = register("bob")
        document_id = upload(client, alice).json()["id"]

        assert client.get(f"/api/documents/{document_id}", headers=bob).status_code == 404
        assert client.delete(f"/api/documents/{document_id}", headers=bob).status_code == 404
        assert client.get("/api/documents", headers=bob).json() == []
        assert [d["id"] for d in client.get("/api/documents", headers=alice).json()] == [document_id]

    def test_delete_removes_record_file_and_vectors(self, client, register, vector_index):
        _, headers = register()
        document = upload(client, headers).json()
        wait_for_processing(client, headers, document["id"])
        assert Path(document["filePath"]).exists()

        resp = client.delete(f"/api/documents/{document['id']}", headers=headers)

        assert resp.status_code == 200
        assert resp.json()["status"] == "deleted"
        assert len(vector_index) == 0
        assert not Path(document["filePath"]).exists()
        assert client.get(f"/api/documents/{document['id']}", headers=headers).status_code == 404

    def test_requires_authentication(self, client):
        assert client.get("/api/documents").status_code in (401, 403)


# ---------------------------------------------------------------------
# Chat sessions
# ---------------------------------------------------------------------

class TestChatSessions:

    def test_create_and_list(self, client, register):
        user, headers = register()

        created = client.post("/api/chat/sessions", json={"title": "Q3 questions"}, headers=headers)
        default = client.post("/api/chat/sessions", json={}, headers=headers)

        assert created.status_code == 201
        assert created.json()["title"] == "Q3 questions"
        assert created.json()["userId"] == user["id"]
        assert created.json()["lastMessage"] is None
        assert default.json()["title"] == "New Chat"

        listed = client.get("/api/chat/sessions", headers=headers).json()
        assert [s["id"] for s in listed] == [default.json()["id"], created.json()["id"]]

    def test_sessions_are_private(self, client, register):
        _, alice = register("alice")
        _, bob = register("bob")
        session_id = client.post("/api/chat/sessions", json={}, headers=alice).json()["id"]

        assert client.get("/api/chat/sessions", headers=bob).json() == []
        assert client.get(f"/api/chat/sessions/{session_id}/messages", headers=bob).status_code == 404
        assert client.delete(f"/api/chat/sessions/{session_id}", headers=bob).status_code == 404

    def test_delete_session(self, client, register):
        _, headers = register()
        session_id = client.post("/api/chat/sessions", json={}, headers=headers).json()["id"]

        resp = client.delete(f"/api/chat/sessions/{session_id}", headers=headers)

        assert resp.status_code == 200
        assert client.get(f"/api/chat/sessions/{session_id}/messages", headers=headers).status_code == 404
        assert client.get("/api/chat/sessions", headers=headers).json() == []

    def test_unknown_fields_rejected(self, client, register):
        _, headers = register()

        resp = client.post("/api/chat/sessions", json={"title": "x", "userId": 5}, headers=headers)

        assert resp.status_code == 422


# ---------------------------------------------------------------------
# Realtime channel
# ---------------------------------------------------------------------

class TestRealtime:

    def test_chat_over_uploaded_document(self, client, register, mock_llm):
        user, headers = register()
        document = upload(client, headers).json()
        wait_for_processing(client, headers, document["id"])
        session = client.post("/api/chat/sessions", json={}, headers=headers).json()

        with client.websocket_connect("/ws") as ws:
            ws.send_json({
                "type": "chat_message",
                "sessionId": session["id"],
                "content": "How did revenue change?",
                "userId": user["id"],
            })
            reply = ws.receive_json()

        assert reply["type"] == "chat_response"
        assert reply["userMessage"]["content"] == "How did revenue change?"
        assert reply["aiMessage"]["content"] == "Here is what your documents say."
        assert reply["aiMessage"]["sources"] == {"hasContext": True}

        system_prompt = mock_llm.chat.await_args.args[0][0]["content"]
        assert "[report.txt, page unknown]: Quarterly report." in system_prompt

        messages = client.get(f"/api/chat/sessions/{session['id']}/messages", headers=headers).json()
        assert [m["role"] for m in messages] == ["user", "assistant"]

        listed = client.get("/api/chat/sessions", headers=headers).json()
        assert listed[0]["lastMessage"] == "How did revenue change?"

    def test_foreign_session_rejected_and_connection_stays_open(self, client, register):
        _, alice = register("alice")
        bob, _ = register("bob")
        session = client.post("/api/chat/sessions", json={}, headers=alice).json()

        with client.websocket_connect("/ws") as ws:
            ws.send_json({
                "type": "chat_message",
                "sessionId": session["id"],
                "content": "let me in",
                "userId": bob["id"],
            })
            assert ws.receive_json() == {"type": "error", "message": "Unauthorized"}

            ws.send_text("{not json")
            assert ws.receive_json() == {"type": "error", "message": "Invalid message"}

            ws.send_json({"type": "typing"})
            assert ws.receive_json() == {"type": "error", "message": "Unsupported message type"}

            ws.send_bytes(b"\x00\x01")
            assert ws.receive_json() == {"type": "error", "message": "Invalid message"}

            ws.send_json({"type": "typing"})
            assert ws.receive_json() == {"type": "error", "message": "Unsupported message type"}

        messages = client.get(f"/api/chat/sessions/{session['id']}/messages", headers=alice).json()
        assert messages == []
