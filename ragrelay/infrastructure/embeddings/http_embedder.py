import asyncio
import logging
from typing import Any

import httpx

from ...core.errors import NetworkError, ProviderTimeoutError, ValidationError
from ..http_support import (
    auth_headers,
    error_from_payload,
    raise_for_status,
    validate_endpoint,
)

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_BATCH_SIZE = 32


class HttpEmbedder:
    """Embedder backed by an OpenAI-compatible ``/v1/embeddings`` endpoint."""

    def __init__(
        self,
        endpoint: str,
        api_key: str = "",
        model: str = DEFAULT_EMBEDDING_MODEL,
        timeout: float = 30.0,
        batch_size: int = DEFAULT_BATCH_SIZE,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize embedder.

        Args:
            endpoint: Embeddings URL (https, or http on loopback).
            api_key: Bearer token sent with every call.
            model: Embedding model name, also the index model tag.
            timeout: Deadline in seconds for each batch call.
            batch_size: Maximum texts per provider call.
            http_client: Shared client; one is created when omitted.
        """
        self._endpoint = endpoint
        self._api_key = api_key
        self._model = model or DEFAULT_EMBEDDING_MODEL
        self._timeout = timeout
        self._batch_size = batch_size if batch_size > 0 else DEFAULT_BATCH_SIZE
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient()

    @property
    def model(self) -> str:
        return self._model

    async def embed(
        self, texts: list[str], batch_size: int | None = None
    ) -> list[list[float]]:
        """Embed texts in sequential batches.

        Any failing batch aborts the whole call; no partial result is returned.

        Args:
            texts: Texts to embed.
            batch_size: Override the configured batch size.

        Returns:
            One vector per text, in input order.
        """
        if not texts:
            return []

        validate_endpoint(self._endpoint, "embedding API")
        size = batch_size if batch_size and batch_size > 0 else self._batch_size

        vectors: list[list[float]] = []
        for start in range(0, len(texts), size):
            batch = texts[start:start + size]
            try:
                batch_vectors = await asyncio.wait_for(
                    self._embed_batch(batch), timeout=self._timeout
                )
            except asyncio.TimeoutError as e:
                raise ProviderTimeoutError(
                    f"embedding batch {start}-{start + len(batch) - 1} "
                    f"exceeded {self._timeout:g}s"
                ) from e
            logger.debug(f"Embedded batch {start}-{start + len(batch) - 1}")
            vectors.extend(batch_vectors)

        dimension = len(vectors[0])
        if any(len(v) != dimension for v in vectors):
            raise ValidationError("provider returned embeddings of mixed dimensions")
        return vectors

    async def embed_query(self, text: str) -> list[float]:
        vectors = await self.embed([text])
        return vectors[0]

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        payload = {"input": texts, "model": self._model}
        try:
            response = await self._http.post(
                self._endpoint,
                json=payload,
                headers=auth_headers(self._api_key),
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"embedding request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"failed to send embedding request: {e}") from e

        raise_for_status(response)

        try:
            body = response.json()
        except ValueError as e:
            raise ValidationError(f"failed to decode embedding response: {e}") from e

        error = error_from_payload(body, response.status_code)
        if error is not None:
            raise error

        return _collect_vectors(body, len(texts))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()


def _collect_vectors(body: Any, expected: int) -> list[list[float]]:
    """Re-associate provider results with their batch positions."""
    if not isinstance(body, dict) or not isinstance(body.get("data"), list):
        raise ValidationError("embedding response has no data list")

    slots: list[list[float] | None] = [None] * expected
    for item in body["data"]:
        if not isinstance(item, dict):
            raise ValidationError("embedding entry is not an object")

        index = item.get("index")
        if not isinstance(index, int) or isinstance(index, bool):
            raise ValidationError(f"invalid embedding index: {index!r}")
        if index < 0 or index >= expected:
            raise ValidationError(f"invalid embedding index: {index}")
        if slots[index] is not None:
            raise ValidationError(f"duplicate embedding index: {index}")

        slots[index] = _as_vector(item.get("embedding"), index)

    for i, vector in enumerate(slots):
        if vector is None:
            raise ValidationError(f"missing embedding for index {i}")

    return slots  # type: ignore[return-value]


def _as_vector(raw: Any, index: int) -> list[float]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError(f"embedding {index} is not a numeric vector")
    vector = []
    for x in raw:
        if isinstance(x, bool) or not isinstance(x, (int, float)):
            raise ValidationError(f"embedding {index} is not a numeric vector")
        vector.append(float(x))
    return vector
