"""Text processing strategies."""
from .chunking import chunk_text, split_sentences

__all__ = [
    "chunk_text",
    "split_sentences",
]
