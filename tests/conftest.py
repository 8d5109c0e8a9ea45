"""
Shared test fixtures.

Stubs live in helpers.py: outbound HTTP goes through httpx.MockTransport and
retrieval tests use TokenEmbedder, a one-hot-on-token-presence embedder.
"""

from pathlib import Path

import pytest

from ragrelay.infrastructure.document_loaders import CorpusReader
from ragrelay.infrastructure.vector_stores.json_store import JsonVectorStore

from helpers import TokenEmbedder, write_corpus


@pytest.fixture
def token_embedder() -> TokenEmbedder:
    return TokenEmbedder()


@pytest.fixture
def corpus_root(tmp_path: Path) -> Path:
    return write_corpus(
        tmp_path / "src",
        {"a.md": "# Title\n\nHello world", "b.md": "Some other content"},
    )


@pytest.fixture
def corpus(corpus_root: Path) -> CorpusReader:
    return CorpusReader(corpus_root)


@pytest.fixture
def store(tmp_path: Path) -> JsonVectorStore:
    return JsonVectorStore(tmp_path / ".vector_store.json")
