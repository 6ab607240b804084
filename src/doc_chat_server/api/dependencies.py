from functools import lru_cache

from fastapi import Request

from ..config import settings
from ..embeddings.chunker import DocumentChunker
from ..embeddings.embedder import Embedder
from ..embeddings.index import InMemoryVectorIndex, VectorIndex
from ..embeddings.pinecone import PineconeIndex
from ..embeddings.pipeline import DocumentPipeline
from ..embeddings.queue import DocumentQueue
from ..llm.client import LLMClient
from ..rag.responder import ChatResponder
from ..rag.retriever import ContextRetriever
from ..realtime.gateway import ChatGateway
from ..storage import MemoryStorage, SqlStorage, Storage


@lru_cache
def get_storage() -> Storage:
    if settings.storage_backend == "sql":
        return SqlStorage(settings.database_url)
    return MemoryStorage()


@lru_cache
def get_embedder() -> Embedder:
    return Embedder()


@lru_cache
def get_llm_client() -> LLMClient:
    return LLMClient()


@lru_cache
def get_vector_index() -> VectorIndex:
    if settings.vector_backend == "memory":
        return InMemoryVectorIndex(dimension=settings.embedding_dimension)
    return PineconeIndex()


@lru_cache
def get_pipeline() -> DocumentPipeline:
    return DocumentPipeline(
        embedder=get_embedder(),
        vector_index=get_vector_index(),
        chunker=DocumentChunker(settings.chunk_size, settings.chunk_overlap),
        concurrency=settings.embedding_concurrency,
    )


@lru_cache
def get_retriever() -> ContextRetriever:
    return ContextRetriever(
        embedder=get_embedder(),
        vector_index=get_vector_index(),
        top_k=settings.retrieval_top_k,
        score_threshold=settings.retrieval_score_threshold,
    )


@lru_cache
def get_responder() -> ChatResponder:
    return ChatResponder(
        llm=get_llm_client(),
        temperature=settings.chat_temperature,
        max_tokens=settings.chat_max_tokens,
    )


@lru_cache
def get_gateway() -> ChatGateway:
    return ChatGateway(
        storage=get_storage(),
        retriever=get_retriever(),
        responder=get_responder(),
        history_limit=settings.history_limit,
        preview_length=settings.preview_length,
    )


def get_document_queue(request: Request) -> DocumentQueue:
    # Created per application in the lifespan; asyncio queues belong to one loop
    return request.app.state.document_queue
