"""Protocol interfaces for dependency injection."""
from .corpus import CorpusProtocol
from .embedder import EmbedderProtocol
from .vector_store import VectorStoreProtocol
from .llm import LLMProtocol

__all__ = [
    "CorpusProtocol",
    "EmbedderProtocol",
    "VectorStoreProtocol",
    "LLMProtocol",
]
