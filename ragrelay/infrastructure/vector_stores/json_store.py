import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Sequence

import numpy as np

from ...core.errors import ValidationError
from ...core.models.document import Document, IndexStatus, SearchResult, VectorIndex
from .rwlock import RWLock

logger = logging.getLogger(__name__)

INDEX_VERSION = "1.0"


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors.

    Returns 0.0 for vectors of different length or with zero norm.
    """
    if len(a) != len(b) or not len(a):
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm = np.linalg.norm(va) * np.linalg.norm(vb)
    if norm == 0:
        return 0.0
    return float(np.dot(va, vb) / norm)


def _check_dimensions(docs: Sequence[Document], expected: int | None = None) -> None:
    for doc in docs:
        if not doc.embedding:
            raise ValidationError(f"document {doc.id} has no embedding")
        if expected is None:
            expected = len(doc.embedding)
        elif len(doc.embedding) != expected:
            raise ValidationError(
                f"document {doc.id} has dimension {len(doc.embedding)}, "
                f"index uses {expected}"
            )


class JsonVectorStore:
    """Whole-file JSON vector index with linear-scan cosine search."""

    def __init__(
        self,
        store_path: str | Path,
        model: str = "text-embedding-3-small",
        version: str = INDEX_VERSION,
    ):
        """Initialize store.

        Args:
            store_path: Path of the JSON index file.
            model: Model tag for a fresh index.
            version: Format version tag for a fresh index.
        """
        self._path = Path(store_path)
        self._index = VectorIndex(documents=[], version=version, model=model)
        self._lock = RWLock()
        self._matrix: np.ndarray | None = None
        self._norms: np.ndarray | None = None
        self._stamp: tuple[int, int] | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def model(self) -> str:
        with self._lock.read():
            return self._index.model

    def load(self) -> None:
        """Read the index file.

        A missing file keeps the in-memory index. An unchanged file
        (same mtime and size as last seen) is not read again.
        """
        with self._lock.write():
            try:
                stat = self._path.stat()
            except FileNotFoundError:
                return
            stamp = (stat.st_mtime_ns, stat.st_size)
            if stamp == self._stamp:
                return

            try:
                raw = json.loads(self._path.read_text(encoding="utf-8"))
                index = VectorIndex.from_dict(raw)
            except (OSError, ValueError, KeyError, TypeError) as e:
                raise ValidationError(f"failed to load vector store {self._path}: {e}") from e
            _check_dimensions(index.documents)

            self._set_index(index)
            self._stamp = stamp
            logger.info(f"Loaded {len(index.documents)} documents from {self._path}")

    def save(self, index: VectorIndex | None = None) -> None:
        """Write an index atomically (temp file, then rename).

        Args:
            index: Index to persist; the live index when omitted.
        """
        with self._lock.write():
            target = index if index is not None else self._index
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=self._path.name + ".", suffix=".tmp", dir=self._path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(target.to_dict(), f, ensure_ascii=False, indent=2)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

            if target is self._index:
                stat = self._path.stat()
                self._stamp = (stat.st_mtime_ns, stat.st_size)
            logger.info(f"Saved {len(target.documents)} documents to {self._path}")

    def add_documents(self, docs: Sequence[Document]) -> None:
        with self._lock.write():
            _check_dimensions(docs, self._index.dimension)
            self._set_index(
                VectorIndex(
                    documents=self._index.documents + list(docs),
                    version=self._index.version,
                    model=self._index.model,
                )
            )

    def clear(self) -> None:
        with self._lock.write():
            self._set_index(
                VectorIndex(documents=[], version=self._index.version, model=self._index.model)
            )

    def replace(self, index: VectorIndex) -> None:
        """Publish a fully built index in one swap."""
        _check_dimensions(index.documents)
        with self._lock.write():
            self._set_index(index)
            if self._path.exists():
                stat = self._path.stat()
                self._stamp = (stat.st_mtime_ns, stat.st_size)

    def search(self, query_embedding: Sequence[float], top_k: int = 5) -> list[SearchResult]:
        """Rank every document by cosine similarity to the query.

        Args:
            query_embedding: Query vector, same dimension as the index.
            top_k: Maximum number of results.

        Returns:
            ``min(top_k, count)`` results, highest similarity first, ties in
            storage order.
        """
        with self._lock.read():
            docs = self._index.documents
            if not docs or top_k <= 0:
                return []

            query = np.asarray(query_embedding, dtype=np.float64)
            if query.ndim != 1 or query.shape[0] != self._index.dimension:
                raise ValidationError(
                    f"query dimension {query.shape[-1] if query.ndim else 0} "
                    f"does not match index dimension {self._index.dimension}"
                )

            matrix, norms = self._vectors()
            query_norm = np.linalg.norm(query)
            denom = norms * query_norm
            scores = np.zeros(len(docs), dtype=np.float64)
            np.divide(matrix @ query, denom, out=scores, where=denom != 0)

            k = min(top_k, len(docs))
            if k < len(docs):
                kth = scores[np.argpartition(-scores, k - 1)[:k]].min()
                candidates = np.flatnonzero(scores >= kth)
            else:
                candidates = np.arange(len(docs))
            order = candidates[np.lexsort((candidates, -scores[candidates]))][:k]

            return [
                SearchResult(document=docs[i], similarity=float(scores[i])) for i in order
            ]

    def count(self) -> int:
        with self._lock.read():
            return len(self._index.documents)

    def status(self) -> IndexStatus:
        with self._lock.read():
            return IndexStatus(
                document_count=len(self._index.documents),
                indexed=bool(self._index.documents),
                model=self._index.model,
                version=self._index.version,
            )

    def _set_index(self, index: VectorIndex) -> None:
        # caller holds the write lock
        self._index = index
        self._matrix = None
        self._norms = None

    def _vectors(self) -> tuple[np.ndarray, np.ndarray]:
        matrix, norms = self._matrix, self._norms
        if matrix is None or norms is None:
            matrix = np.array([d.embedding for d in self._index.documents], dtype=np.float64)
            norms = np.linalg.norm(matrix, axis=1)
            self._matrix, self._norms = matrix, norms
        return matrix, norms
