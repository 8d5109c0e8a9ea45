"""Embedder protocol for dependency injection."""
from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbedderProtocol(Protocol):
    """Protocol for embedding service."""

    @property
    def model(self) -> str:
        """Model tag identifying the embedding space."""
        ...

    async def embed(
        self, texts: list[str], batch_size: int | None = None
    ) -> list[list[float]]:
        """Embed texts, preserving input order.

        Args:
            texts: Texts to embed.
            batch_size: Override the number of texts sent per provider call.

        Returns:
            One vector per input text.
        """
        ...

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query text."""
        ...
