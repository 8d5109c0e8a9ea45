import logging
from pathlib import Path
from typing import Iterator

from ...core.errors import ContextTooLargeError, CorpusError
from .text_loader import MarkdownLoader, TextLoader

logger = logging.getLogger(__name__)


class CorpusReader:
    """Read-only access to the text files under one corpus root."""

    def __init__(self, root: str | Path, extensions: set[str] | None = None):
        self._root = Path(root)
        self._loaders = [MarkdownLoader(), TextLoader()]
        self._extensions = (
            {e.lower() for e in extensions}
            if extensions
            else set().union(*(loader.EXTENSIONS for loader in self._loaders))
        )

    @property
    def root(self) -> Path:
        return self._root

    def supports(self, file_path: Path) -> bool:
        return file_path.suffix.lower() in self._extensions and any(
            loader.supports(file_path) for loader in self._loaders
        )

    def load(self, file_path: Path) -> str:
        for loader in self._loaders:
            if loader.supports(file_path):
                try:
                    return loader.load(file_path)
                except (OSError, UnicodeDecodeError) as e:
                    raise CorpusError(f"failed to read file {file_path}: {e}") from e
        raise CorpusError(f"unsupported file type: {file_path}")

    def list_files(self) -> list[Path]:
        """All supported files under the root, sorted by relative path."""
        if not self._root.is_dir():
            raise CorpusError(f"corpus directory not found: {self._root}")
        try:
            files = [p for p in self._root.rglob("*") if p.is_file() and self.supports(p)]
        except OSError as e:
            raise CorpusError(f"failed to walk directory {self._root}: {e}") from e
        return sorted(files, key=lambda p: p.relative_to(self._root).as_posix())

    def iter_files(self) -> Iterator[tuple[str, str]]:
        for path in self.list_files():
            yield path.relative_to(self._root).as_posix(), self.load(path)

    def read_all(self, max_chars: int | None = None) -> tuple[str, int]:
        """Concatenate every corpus file, each after a ``--- File: <path> ---`` marker.

        Args:
            max_chars: Fail with ContextTooLargeError above this many characters.

        Returns:
            Tuple of (content, file count).
        """
        parts: list[str] = []
        total = 0
        count = 0
        for rel_path, text in self.iter_files():
            part = f"\n\n--- File: {rel_path} ---\n\n{text}"
            parts.append(part)
            total += len(part)
            count += 1
            if max_chars is not None and total > max_chars:
                raise ContextTooLargeError(
                    f"context too large (more than {max_chars} chars), "
                    "please index documents first"
                )
        logger.info(f"Read {count} corpus files ({total} chars)")
        return "".join(parts), count

    def read_file(self, rel_path: str) -> str:
        """Read one corpus file by path relative to the root.

        Raises:
            CorpusError: Path escapes the root, or the file cannot be read.
        """
        root = self._root.resolve()
        target = (root / rel_path).resolve()
        if not target.is_relative_to(root):
            raise CorpusError("invalid path: outside corpus directory")
        if not target.is_file():
            raise CorpusError(f"file not found: {rel_path}")
        if self.supports(target):
            return self.load(target)
        try:
            return target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise CorpusError(f"failed to read file {rel_path}: {e}") from e
