"""Corpus reader protocol for dependency injection."""
from pathlib import Path
from typing import Iterator, Protocol, runtime_checkable


@runtime_checkable
class CorpusProtocol(Protocol):
    """Read-only view of the text corpus."""

    @property
    def root(self) -> Path:
        ...

    def iter_files(self) -> Iterator[tuple[str, str]]:
        """Yield (path relative to root, text) for every corpus file, sorted."""
        ...

    def read_all(self, max_chars: int | None = None) -> tuple[str, int]:
        """Concatenate the whole corpus with ``--- File: <path> ---`` markers.

        Returns:
            Tuple of (content, file count).
        """
        ...

    def read_file(self, rel_path: str) -> str:
        """Read one file; the path must stay inside the corpus root."""
        ...
