"""Vector store protocol for dependency injection."""
from typing import Protocol, Sequence, runtime_checkable

from ..models.document import Document, IndexStatus, SearchResult, VectorIndex


@runtime_checkable
class VectorStoreProtocol(Protocol):
    """Protocol for vector storage."""

    @property
    def model(self) -> str:
        """Embedding model tag of the live index."""
        ...

    def load(self) -> None:
        """Load the index from durable storage."""
        ...

    def save(self, index: VectorIndex | None = None) -> None:
        """Persist a whole index, the live one when omitted."""
        ...

    def add_documents(self, docs: Sequence[Document]) -> None:
        """Append documents to the live index."""
        ...

    def clear(self) -> None:
        """Empty the live index."""
        ...

    def replace(self, index: VectorIndex) -> None:
        """Swap in a fully built index."""
        ...

    def search(self, query_embedding: Sequence[float], top_k: int = 5) -> list[SearchResult]:
        """Rank documents by cosine similarity.

        Args:
            query_embedding: Query vector.
            top_k: Number of results to return.

        Returns:
            Results ordered by descending similarity.
        """
        ...

    def count(self) -> int:
        """Get document count."""
        ...

    def status(self) -> IndexStatus:
        ...
