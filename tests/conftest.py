import os

# Settings are read at import time; provide the required secrets first
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-must-be-long-enough-32chars")
os.environ.setdefault("VECTOR_BACKEND", "memory")
os.environ.setdefault("STORAGE_BACKEND", "memory")

from typing import List
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from doc_chat_server.api.dependencies import (
    get_gateway,
    get_pipeline,
    get_storage,
    get_vector_index,
)
from doc_chat_server.config import settings
from doc_chat_server.embeddings.chunker import DocumentChunker
from doc_chat_server.embeddings.index import InMemoryVectorIndex
from doc_chat_server.embeddings.pipeline import DocumentPipeline
from doc_chat_server.llm.client import ChatCompletion, LLMClient
from doc_chat_server.main import create_app
from doc_chat_server.rag.responder import ChatResponder
from doc_chat_server.rag.retriever import ContextRetriever
from doc_chat_server.realtime.gateway import ChatGateway
from doc_chat_server.storage import MemoryStorage

TEST_DIMENSION = 4


class FakeEmbedder:
    """
    Deterministic stand-in for the embeddings API.

    Every text maps to the same unit vector unless listed in ``vectors``,
    so any stored chunk is a perfect match for any query by default.
    """

    def __init__(self, vectors=None, dimension: int = TEST_DIMENSION):
        self.vectors = vectors or {}
        self.dimension = dimension
        self.calls: List[str] = []

    async def embed_one(self, text: str) -> List[float]:
        self.calls.append(text)
        if text in self.vectors:
            return list(self.vectors[text])
        return [1.0] + [0.0] * (self.dimension - 1)

    async def embed(self, texts, batch_size: int = 20) -> List[List[float]]:
        return [await self.embed_one(t) for t in texts]


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def vector_index():
    return InMemoryVectorIndex(dimension=TEST_DIMENSION)


@pytest.fixture
def pipeline(embedder, vector_index):
    return DocumentPipeline(
        embedder=embedder,
        vector_index=vector_index,
        chunker=DocumentChunker(chunk_size=200, chunk_overlap=40),
        concurrency=2,
    )


@pytest.fixture
def mock_llm():
    mock = AsyncMock(spec=LLMClient)
    mock.chat.return_value = ChatCompletion(
        text="Here is what your documents say.",
        usage={"prompt_tokens": 10, "completion_tokens": 7, "total_tokens": 17},
    )
    return mock


@pytest.fixture
def gateway(storage, embedder, vector_index, mock_llm):
    return ChatGateway(
        storage=storage,
        retriever=ContextRetriever(embedder, vector_index),
        responder=ChatResponder(mock_llm),
    )


@pytest.fixture
def app(storage, pipeline, gateway, vector_index, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path / "uploads"))

    application = create_app()
    application.dependency_overrides[get_storage] = lambda: storage
    application.dependency_overrides[get_pipeline] = lambda: pipeline
    application.dependency_overrides[get_gateway] = lambda: gateway
    application.dependency_overrides[get_vector_index] = lambda: vector_index
    return application


@pytest.fixture
def client(app):
    # Entering the context runs the lifespan, which starts the document worker
    with TestClient(app) as c:
        yield c


@pytest.fixture
def register(client):
    """Register a user and return (user_json, auth_headers)."""

    def _register(username: str = "alice", password: str = "s3cret"):
        resp = client.post(
            "/api/register",
            json={"username": username, "password": password},
        )
        assert resp.status_code == 201, resp.text
        body = resp.json()
        return body["user"], {"Authorization": f"Bearer {body['token']}"}

    return _register
