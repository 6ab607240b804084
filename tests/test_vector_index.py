import json

import httpx
import pytest

from doc_chat_server.core.errors import VectorIndexError
from doc_chat_server.embeddings.index import InMemoryVectorIndex
from doc_chat_server.embeddings.models import ChunkMetadata, VectorRecord, chunk_id
from doc_chat_server.embeddings.pinecone import PineconeIndex


def record(document_id, index, user_id, values, page=None, name="doc.txt"):
    return VectorRecord(
        id=chunk_id(document_id, index),
        values=values,
        metadata=ChunkMetadata(
            document_id=document_id,
            document_name=name,
            user_id=user_id,
            chunk_index=index,
            page_number=page,
            text=f"chunk {index} of document {document_id}",
        ),
    )


# ---------------------------------------------------------------------
# In-memory index
# ---------------------------------------------------------------------

class TestInMemoryVectorIndex:

    async def test_query_is_filtered_by_user_and_sorted(self):
        index = InMemoryVectorIndex(dimension=2)
        await index.upsert([
            record(1, 0, user_id=1, values=[1.0, 0.0]),
            record(1, 1, user_id=1, values=[0.6, 0.8]),
            record(2, 0, user_id=2, values=[1.0, 0.0]),
        ])

        matches = await index.query([1.0, 0.0], user_id=1, top_k=5)

        assert [m.id for m in matches] == ["1-0", "1-1"]
        assert matches[0].score == pytest.approx(1.0)
        assert matches[1].score == pytest.approx(0.6)
        assert all(m.metadata.user_id == 1 for m in matches)

    async def test_top_k_limits_results(self):
        index = InMemoryVectorIndex(dimension=2)
        await index.upsert([record(1, i, 1, [1.0, float(i)]) for i in range(6)])

        assert len(await index.query([1.0, 0.0], user_id=1, top_k=3)) == 3

    async def test_upsert_overwrites_same_id(self):
        index = InMemoryVectorIndex(dimension=2)
        await index.upsert([record(1, 0, 1, [1.0, 0.0])])
        await index.upsert([record(1, 0, 1, [0.0, 1.0])])

        assert len(index) == 1
        matches = await index.query([0.0, 1.0], user_id=1)
        assert matches[0].score == pytest.approx(1.0)

    async def test_delete_document_removes_only_its_chunks(self):
        index = InMemoryVectorIndex(dimension=2)
        await index.upsert([
            record(1, 0, 1, [1.0, 0.0]),
            record(1, 1, 1, [1.0, 0.0]),
            record(2, 0, 1, [1.0, 0.0]),
        ])

        await index.delete_document(1)

        assert [m.id for m in await index.query([1.0, 0.0], user_id=1)] == ["2-0"]

    async def test_dimension_mismatch_rejects_whole_batch(self):
        index = InMemoryVectorIndex(dimension=2)

        with pytest.raises(VectorIndexError):
            await index.upsert([record(1, 0, 1, [1.0, 0.0]), record(1, 1, 1, [1.0, 0.0, 0.0])])

        assert len(index) == 0


# ---------------------------------------------------------------------
# Pinecone gateway
# ---------------------------------------------------------------------

HOST = "chatbot-knowledge-base-abc123.svc.pinecone.io"


class FakePinecone:
    """Scripted Pinecone control and data plane."""

    def __init__(self, exists=False, ready_after=1):
        self.exists = exists
        self.describe_calls = 0
        self.ready_after = ready_after
        self.requests = []
        self.query_matches = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, request.url.host, request.url.path, body))

        if request.url.host == "api.pinecone.io":
            if request.method == "POST" and request.url.path == "/indexes":
                self.exists = True
                return httpx.Response(201, json={"name": body["name"]})

            if not self.exists:
                return httpx.Response(404, json={"error": "not found"})

            self.describe_calls += 1
            ready = self.describe_calls >= self.ready_after
            return httpx.Response(200, json={
                "name": "chatbot-knowledge-base",
                "host": HOST,
                "status": {"ready": ready, "state": "Ready" if ready else "Initializing"},
            })

        assert request.url.host == HOST
        if request.url.path == "/vectors/upsert":
            return httpx.Response(200, json={"upsertedCount": len(body["vectors"])})
        if request.url.path == "/query":
            return httpx.Response(200, json={"matches": self.query_matches})
        if request.url.path == "/vectors/delete":
            return httpx.Response(200, json={})
        return httpx.Response(404)

    def data_requests(self, path):
        return [r for r in self.requests if r[1] == HOST and r[2] == path]


def make_index(fake, **kwargs):
    options = dict(
        api_key="pc-key",
        index_name="chatbot-knowledge-base",
        dimension=2,
        ready_timeout=5.0,
        poll_interval=0.0,
        transport=httpx.MockTransport(fake),
    )
    options.update(kwargs)
    return PineconeIndex(**options)


class TestPineconeIndex:

    async def test_missing_index_is_created_and_polled_until_ready(self):
        fake = FakePinecone(exists=False, ready_after=3)
        index = make_index(fake)

        await index.ensure_collection()

        create = [r for r in fake.requests if r[0] == "POST" and r[2] == "/indexes"]
        assert len(create) == 1
        assert create[0][3]["dimension"] == 2
        assert create[0][3]["metric"] == "cosine"
        assert fake.describe_calls == 3

    async def test_existing_ready_index_is_not_recreated(self):
        fake = FakePinecone(exists=True, ready_after=1)
        index = make_index(fake)

        await index.ensure_collection()
        await index.ensure_collection()

        assert not [r for r in fake.requests if r[0] == "POST"]
        assert fake.describe_calls == 1

    async def test_index_never_ready_times_out(self):
        fake = FakePinecone(exists=True, ready_after=10 ** 6)
        index = make_index(fake, ready_timeout=0.0)

        with pytest.raises(VectorIndexError, match="not ready"):
            await index.ensure_collection()

    async def test_upsert_sends_camel_case_metadata(self):
        fake = FakePinecone(exists=True)
        index = make_index(fake)

        written = await index.upsert([
            record(7, 0, user_id=3, values=[1.0, 0.0]),
            record(7, 1, user_id=3, values=[0.0, 1.0], page=2),
        ])

        assert written == 2
        (_, _, _, body), = fake.data_requests("/vectors/upsert")
        first, second = body["vectors"]
        assert first["id"] == "7-0"
        assert first["metadata"] == {
            "documentId": 7,
            "documentName": "doc.txt",
            "userId": 3,
            "chunkIndex": 0,
            "text": "chunk 0 of document 7",
        }
        assert second["metadata"]["pageNumber"] == 2

    async def test_query_filters_by_user(self):
        fake = FakePinecone(exists=True)
        fake.query_matches = [
            {"id": "1-0", "score": 0.91, "metadata": {
                "documentId": 1, "documentName": "a.pdf", "userId": 5,
                "chunkIndex": 0, "pageNumber": 1, "text": "mine",
            }},
            {"id": "9-0", "score": 0.95, "metadata": {
                "documentId": 9, "documentName": "b.pdf", "userId": 6,
                "chunkIndex": 0, "text": "not mine",
            }},
        ]
        index = make_index(fake)

        matches = await index.query([1.0, 0.0], user_id=5, top_k=5)

        (_, _, _, body), = fake.data_requests("/query")
        assert body["filter"] == {"userId": {"$eq": 5}}
        assert body["topK"] == 5
        assert body["includeMetadata"] is True
        assert [m.id for m in matches] == ["1-0"]
        assert matches[0].metadata.page_number == 1

    async def test_delete_document_uses_metadata_filter(self):
        fake = FakePinecone(exists=True)
        index = make_index(fake)

        await index.delete_document(42)

        (_, _, _, body), = fake.data_requests("/vectors/delete")
        assert body == {"filter": {"documentId": {"$eq": 42}}}

    async def test_server_error_raises_vector_index_error(self):
        def handler(request):
            return httpx.Response(503, json={"error": "unavailable"})

        index = make_index(handler)

        with pytest.raises(VectorIndexError):
            await index.query([1.0, 0.0], user_id=1)
