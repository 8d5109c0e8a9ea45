"""Ingest service - corpus indexing."""

import asyncio
import logging

from ..errors import EmbeddingError, EmptyCorpusError, RagRelayError, ValidationError
from ..models.document import (
    Document,
    DocumentMetadata,
    IndexReport,
    IndexStatus,
    VectorIndex,
)
from ..protocols.corpus import CorpusProtocol
from ..protocols.embedder import EmbedderProtocol
from ..protocols.vector_store import VectorStoreProtocol
from ..strategies.chunking import chunk_text

logger = logging.getLogger(__name__)


def extract_title(text: str) -> str:
    """First ``# `` heading line of a document, else empty."""
    for line in text.splitlines():
        line = line.strip()
        if line.startswith("# "):
            return line[2:].strip()
    return ""


class IngestService:
    """Service for rebuilding the vector index from the corpus."""

    def __init__(
        self,
        embedder: EmbedderProtocol,
        vector_store: VectorStoreProtocol,
        corpus: CorpusProtocol,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        batch_size: int = 20,
        index_version: str = "1.0",
    ):
        """Initialize ingest service.

        Args:
            embedder: Embedding service.
            vector_store: Vector store.
            corpus: Corpus reader.
            chunk_size: Maximum chunk size in characters.
            chunk_overlap: Overlap hint passed to the chunker.
            batch_size: Texts per embedding call.
            index_version: Version tag written with the index.
        """
        self._embedder = embedder
        self._vector_store = vector_store
        self._corpus = corpus
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap
        self._batch_size = batch_size
        self._index_version = index_version
        self._lock = asyncio.Lock()

    def collect(self) -> list[Document]:
        """Chunk every corpus file into documents without embeddings."""
        docs: list[Document] = []
        for rel_path, text in self._corpus.iter_files():
            title = extract_title(text)
            chunks = chunk_text(text, self._chunk_size, self._chunk_overlap)
            for i, chunk in enumerate(chunks):
                docs.append(
                    Document(
                        id=f"{rel_path}#{i}",
                        content=chunk,
                        metadata=DocumentMetadata(file_path=rel_path, chunk_index=i, title=title),
                    )
                )
            logger.debug(f"Chunked {rel_path}: {len(chunks)} chunks")
        return docs

    async def run(self) -> IndexReport:
        """Rebuild the whole index.

        The new index is built aside, persisted, then swapped in; on any
        failure the live index and the index file are left as they were.

        Returns:
            Counts of indexed documents and files.
        """
        async with self._lock:
            try:
                self._vector_store.load()
            except ValidationError as e:
                logger.warning(f"Existing index is unreadable and will be rebuilt: {e.message}")

            pending = self.collect()
            if not pending:
                raise EmptyCorpusError(f"no documents found in {self._corpus.root}")

            texts = [d.content for d in pending]
            vectors: list[list[float]] = []
            for start in range(0, len(texts), self._batch_size):
                end = min(start + self._batch_size, len(texts))
                try:
                    vectors.extend(await self._embedder.embed(texts[start:end]))
                except RagRelayError as e:
                    raise EmbeddingError(
                        f"failed to generate embeddings (batch {start}-{end - 1}): {e.message}"
                    ) from e
                logger.info(f"Embedded {end}/{len(texts)} chunks")

            if len(vectors) != len(pending):
                raise EmbeddingError(
                    f"expected {len(pending)} embeddings, got {len(vectors)}"
                )

            index = VectorIndex(
                documents=[
                    Document(id=d.id, content=d.content, metadata=d.metadata, embedding=v)
                    for d, v in zip(pending, vectors)
                ],
                version=self._index_version,
                model=self._embedder.model,
            )
            self._vector_store.save(index)
            self._vector_store.replace(index)

            files = len({d.metadata.file_path for d in index.documents})
            logger.info(
                f"Indexing complete: {len(index.documents)} chunks from {files} files"
            )
            return IndexReport(documents=len(index.documents), files=files, model=index.model)

    def status(self) -> IndexStatus:
        self._vector_store.load()
        return self._vector_store.status()
