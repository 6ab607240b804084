"""
Embedding Client

Thin async client for the OpenAI embeddings endpoint (``POST /embeddings``),
or any provider that speaks the same wire format.

Responsibilities
----------------
- Send texts in bounded batches
- Turn transport and HTTP failures into EmbeddingError
- Reject responses whose shape or vector length is not what the index expects

Instances hold no per-call state and can be shared by the document pipeline
and the context retriever.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence
import logging
import httpx

from ..config import settings
from ..core.errors import EmbeddingError

logger = logging.getLogger("chat.embedder")


class Embedder:
    """
    Async embeddings client with dimension checking.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        dimension: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Parameters
        ----------
        api_key : Optional[str]
            Bearer key; falls back to ``settings.openai_api_key``.

        model : Optional[str]
            Embedding model name; falls back to ``settings.embedding_model``.

        base_url : Optional[str]
            API root such as ``https://api.openai.com/v1``.

        dimension : Optional[int]
            Vector length every returned embedding must have.

        transport : Optional[httpx.AsyncBaseTransport]
            Injected transport (``httpx.MockTransport`` in tests).
        """
        self.api_key = api_key or settings.openai_api_key.get_secret_value()
        self.model = model or settings.embedding_model
        self.url = f"{(base_url or settings.openai_base_url).rstrip('/')}/embeddings"
        self.dimension = dimension or settings.embedding_dimension
        self.timeout = timeout or settings.http_timeout
        self._transport = transport

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed_one(self, text: str) -> List[float]:
        """Embed one text with a single request."""
        vectors = await self.embed([text])
        if len(vectors) != 1:
            raise EmbeddingError(f"Expected 1 embedding, got {len(vectors)}.")
        return vectors[0]

    async def embed(
        self,
        texts: Sequence[str],
        batch_size: int = 20,
    ) -> List[List[float]]:
        """
        Embed ``texts`` in order, ``batch_size`` inputs per request.

        Raises
        ------
        EmbeddingError
            On the first failed or malformed batch; earlier batches are
            discarded.
        """
        if not texts:
            return []

        vectors: List[List[float]] = []

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for offset in range(0, len(texts), batch_size):
                batch = list(texts[offset : offset + batch_size])
                vectors.extend(await self._embed_batch(client, batch))

        return vectors

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _embed_batch(
        self,
        client: httpx.AsyncClient,
        batch: List[str],
    ) -> List[List[float]]:
        try:
            response = await client.post(
                self.url,
                json={"model": self.model, "input": batch},
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(
                "Embedding request failed (%s) for %d input(s): %s",
                type(exc).__name__,
                len(batch),
                exc,
            )
            raise EmbeddingError(
                f"Embedding generation failed: {type(exc).__name__}"
            ) from exc

        vectors = self._parse(body)
        if len(vectors) != len(batch):
            raise EmbeddingError(
                f"Embedding count mismatch: sent {len(batch)}, got {len(vectors)}."
            )
        return vectors

    def _parse(self, body: Any) -> List[List[float]]:
        """
        Validate ``{"data": [{"index": 0, "embedding": [...]}, ...]}`` and
        return the vectors in ``index`` order.
        """
        items = body.get("data") if isinstance(body, dict) else None
        if not isinstance(items, list):
            raise EmbeddingError("Embedding response has no 'data' list.")

        # Order is not guaranteed by the API; "index" is authoritative
        if all(isinstance(i, dict) and isinstance(i.get("index"), int) for i in items):
            items = sorted(items, key=lambda i: i["index"])

        return [self._vector(position, item) for position, item in enumerate(items)]

    def _vector(self, position: int, item: Dict[str, Any]) -> List[float]:
        values = item.get("embedding") if isinstance(item, dict) else None

        if not isinstance(values, list) or not all(isinstance(v, (int, float)) for v in values):
            raise EmbeddingError(f"Malformed embedding at position {position}.")

        if len(values) != self.dimension:
            raise EmbeddingError(
                f"Embedding at position {position} has dimension {len(values)}, "
                f"expected {self.dimension}."
            )

        return [float(v) for v in values]
