"""
Pinecone Vector Index Gateway

Hosted implementation of the VectorIndex interface, talking to the Pinecone
REST API through httpx:

- Control plane (``api.pinecone.io``): describe / create the index.
- Data plane (the index host): upsert, query with a metadata filter, and
  delete by metadata filter.

The index is created on first use with the embedding model's dimension and
a cosine metric; the gateway then polls until Pinecone reports it ready
before the first write goes out.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError as PydanticValidationError

from .index import VectorIndex
from .models import ChunkMetadata, VectorMatch, VectorRecord
from ..config import settings
from ..core.errors import VectorIndexError

logger = logging.getLogger("chat.pinecone")


class PineconeIndex(VectorIndex):
    """
    Pinecone-backed chunk index. Safe to share across tasks.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        index_name: Optional[str] = None,
        dimension: Optional[int] = None,
        control_url: Optional[str] = None,
        cloud: Optional[str] = None,
        region: Optional[str] = None,
        ready_timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key or settings.pinecone_api_key.get_secret_value()
        self.index_name = index_name or settings.pinecone_index_name
        self.dimension = dimension or settings.embedding_dimension
        self._control_url = (control_url or settings.pinecone_control_url).rstrip("/")
        self._cloud = cloud or settings.pinecone_cloud
        self._region = region or settings.pinecone_region
        self._ready_timeout = ready_timeout if ready_timeout is not None else settings.index_ready_timeout
        self._poll_interval = poll_interval if poll_interval is not None else settings.index_ready_poll_interval
        self._timeout = timeout or settings.http_timeout
        self._transport = transport

        self._host: Optional[str] = None
        self._init_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        return {
            "Api-Key": self._api_key,
            "X-Pinecone-API-Version": settings.pinecone_api_version,
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout,
            headers=self._headers(),
            transport=self._transport,
        )

    async def _call(
        self,
        method: str,
        url: str,
        payload: Optional[Dict[str, Any]] = None,
        allow_404: bool = False,
    ) -> Optional[Dict[str, Any]]:
        try:
            async with self._client() as client:
                response = await client.request(method, url, json=payload)
            if allow_404 and response.status_code == 404:
                return None
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(
                "Pinecone request failed (%s): %s %s, error=%s",
                type(exc).__name__,
                method,
                url,
                str(exc),
            )
            raise VectorIndexError(
                f"Vector index request failed: {type(exc).__name__}"
            ) from exc

        if not response.content:
            return {}
        return response.json()

    def _data_url(self, path: str) -> str:
        host = self._host or ""
        if not host.startswith(("http://", "https://")):
            host = f"https://{host}"
        return f"{host.rstrip('/')}{path}"

    # ------------------------------------------------------------------
    # Collection lifecycle
    # ------------------------------------------------------------------

    async def _describe(self) -> Optional[Dict[str, Any]]:
        return await self._call(
            "GET",
            f"{self._control_url}/indexes/{self.index_name}",
            allow_404=True,
        )

    async def _create(self) -> None:
        logger.info(
            "Creating vector index %s (dimension=%d, metric=cosine)",
            self.index_name,
            self.dimension,
        )
        await self._call(
            "POST",
            f"{self._control_url}/indexes",
            {
                "name": self.index_name,
                "dimension": self.dimension,
                "metric": "cosine",
                "spec": {
                    "serverless": {
                        "cloud": self._cloud,
                        "region": self._region,
                    }
                },
            },
        )

    async def _wait_until_ready(self) -> Dict[str, Any]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._ready_timeout

        while True:
            description = await self._describe()
            if description and description.get("status", {}).get("ready"):
                return description

            if loop.time() >= deadline:
                raise VectorIndexError(
                    f"Vector index {self.index_name} not ready after {self._ready_timeout}s"
                )
            await asyncio.sleep(self._poll_interval)

    async def ensure_collection(self) -> None:
        if self._host:
            return

        async with self._init_lock:
            if self._host:
                return

            description = await self._describe()
            if description is None:
                await self._create()
                description = await self._wait_until_ready()
            elif not description.get("status", {}).get("ready"):
                description = await self._wait_until_ready()

            host = description.get("host")
            if not host:
                raise VectorIndexError(
                    f"Vector index {self.index_name} description has no host"
                )

            self._host = host
            logger.info("Vector index %s ready at %s", self.index_name, host)

    # ------------------------------------------------------------------
    # Data plane
    # ------------------------------------------------------------------

    async def upsert(self, records: Sequence[VectorRecord]) -> int:
        if not records:
            return 0

        await self.ensure_collection()

        vectors = [
            {
                "id": record.id,
                "values": record.values,
                "metadata": record.metadata.to_index_metadata(),
            }
            for record in records
        ]
        data = await self._call("POST", self._data_url("/vectors/upsert"), {"vectors": vectors})
        return int((data or {}).get("upsertedCount", len(vectors)))

    async def query(
        self,
        vector: List[float],
        user_id: int,
        top_k: int = 5,
    ) -> List[VectorMatch]:
        await self.ensure_collection()

        data = await self._call(
            "POST",
            self._data_url("/query"),
            {
                "vector": vector,
                "topK": top_k,
                "filter": {"userId": {"$eq": user_id}},
                "includeMetadata": True,
                "includeValues": False,
            },
        )

        matches: List[VectorMatch] = []
        for raw in (data or {}).get("matches", []):
            try:
                match = VectorMatch(
                    id=raw["id"],
                    score=float(raw.get("score") or 0.0),
                    metadata=ChunkMetadata(**(raw.get("metadata") or {})),
                )
            except (KeyError, TypeError, PydanticValidationError) as exc:
                raise VectorIndexError(f"Malformed match in query response: {exc}") from exc

            # Tenant isolation does not depend on the remote filter alone
            if match.metadata.user_id != user_id:
                logger.warning("Dropping match %s owned by another user", match.id)
                continue
            matches.append(match)

        return matches

    async def delete_document(self, document_id: int) -> None:
        await self.ensure_collection()
        await self._call(
            "POST",
            self._data_url("/vectors/delete"),
            {"filter": {"documentId": {"$eq": document_id}}},
        )
