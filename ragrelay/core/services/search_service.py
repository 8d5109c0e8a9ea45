"""Search service - core RAG retrieval logic."""

import logging
from typing import Optional

from ..errors import (
    EmbeddingError,
    EmptyIndexError,
    IndexModelMismatchError,
    RagRelayError,
)
from ..models.document import SearchResult
from ..protocols.embedder import EmbedderProtocol
from ..protocols.vector_store import VectorStoreProtocol

logger = logging.getLogger(__name__)

CONTEXT_HEADER = "Here are the relevant documentation excerpts:\n\n"


class SearchService:
    """Embeds queries and ranks stored chunks against them."""

    def __init__(
        self,
        embedder: EmbedderProtocol,
        vector_store: VectorStoreProtocol,
        top_k: int = 3,
    ):
        """Initialize search service.

        Args:
            embedder: Embedding service.
            vector_store: Vector store.
            top_k: Default number of results.
        """
        self._embedder = embedder
        self._vector_store = vector_store
        self._top_k = top_k

    async def search(self, query: str, top_k: Optional[int] = None) -> list[SearchResult]:
        """Rank indexed chunks for a query.

        Args:
            query: Search query.
            top_k: Override number of results.

        Returns:
            Results in descending similarity.

        Raises:
            EmptyIndexError: Nothing has been indexed.
            IndexModelMismatchError: Index was built with another embedding model.
            EmbeddingError: Query could not be embedded.
        """
        if top_k is None:
            top_k = self._top_k

        self._vector_store.load()
        if self._vector_store.count() == 0:
            raise EmptyIndexError("vector store is empty, please index documents first")

        if self._vector_store.model != self._embedder.model:
            raise IndexModelMismatchError(
                f"index was built with {self._vector_store.model}, "
                f"queries use {self._embedder.model}; please reindex"
            )

        try:
            query_embedding = await self._embedder.embed_query(query)
        except RagRelayError as e:
            raise EmbeddingError(f"failed to generate query embedding: {e.message}") from e

        results = self._vector_store.search(query_embedding, top_k)
        logger.info(f"Search: returned {len(results)}/{top_k} docs for '{query[:50]}...'")
        return results

    async def build_context(self, query: str, top_k: Optional[int] = None) -> str:
        """Search and format results as one context block, empty if none."""
        results = await self.search(query, top_k)
        return format_context(results)


def format_context(results: list[SearchResult]) -> str:
    if not results:
        return ""

    parts = [CONTEXT_HEADER]
    for i, r in enumerate(results, 1):
        parts.append(f"## Excerpt {i} (similarity: {r.similarity:.2f})\n")
        parts.append(f"Source: {r.source}\n")
        if r.document.metadata.title:
            parts.append(f"Title: {r.document.metadata.title}\n")
        parts.append(f"\n{r.document.content}\n\n")
        parts.append("---\n\n")
    return "".join(parts)
