"""Document domain models."""
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class DocumentMetadata:
    """Where a chunk came from."""
    file_path: str
    chunk_index: int
    title: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "file_path": self.file_path,
            "chunk_index": self.chunk_index,
        }
        if self.title:
            data["title"] = self.title
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DocumentMetadata":
        return cls(
            file_path=str(data.get("file_path", "")),
            chunk_index=int(data.get("chunk_index", 0)),
            title=str(data.get("title", "")),
        )


@dataclass(frozen=True)
class Document:
    """Indexed chunk: immutable once stored."""
    id: str  # "<relative-path>#<chunk-index>"
    content: str
    metadata: DocumentMetadata
    embedding: list[float] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "embedding": list(self.embedding),
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Document":
        return cls(
            id=str(data["id"]),
            content=str(data.get("content", "")),
            embedding=[float(x) for x in data.get("embedding") or []],
            metadata=DocumentMetadata.from_dict(data.get("metadata") or {}),
        )


@dataclass
class VectorIndex:
    """Ordered documents plus the tags identifying their embedding space."""
    documents: list[Document] = field(default_factory=list)
    version: str = "1.0"
    model: str = "text-embedding-3-small"

    @property
    def dimension(self) -> int | None:
        """Embedding length shared by every document, None when empty."""
        if not self.documents:
            return None
        return len(self.documents[0].embedding)

    def to_dict(self) -> dict[str, Any]:
        return {
            "documents": [d.to_dict() for d in self.documents],
            "version": self.version,
            "model": self.model,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VectorIndex":
        return cls(
            documents=[Document.from_dict(d) for d in data.get("documents") or []],
            version=str(data.get("version", "1.0")),
            model=str(data.get("model", "")),
        )


@dataclass
class SearchResult:
    """Ranked document with its cosine similarity to the query."""
    document: Document
    similarity: float

    @property
    def source(self) -> str:
        return self.document.metadata.file_path


@dataclass
class IndexReport:
    """Outcome of a full reindex."""
    documents: int
    files: int
    model: str


@dataclass
class IndexStatus:
    document_count: int
    indexed: bool
    model: str
    version: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "document_count": self.document_count,
            "indexed": self.indexed,
            "model": self.model,
            "version": self.version,
        }
