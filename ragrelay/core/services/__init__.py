"""Core business services."""
from .search_service import SearchService
from .chat_service import ChatService
from .ingest_service import IngestService
from .stream_relay import RelayState, StreamRelay

__all__ = [
    "SearchService",
    "ChatService",
    "IngestService",
    "RelayState",
    "StreamRelay",
]
