"""Domain models."""
from .document import (
    Document,
    DocumentMetadata,
    IndexReport,
    IndexStatus,
    SearchResult,
    VectorIndex,
)
from .chat import (
    ChatContext,
    ChatHistory,
    ChatMessage,
    ChatOptions,
    ChatRequest,
    ChatResponse,
    CompletionResult,
    ContextExtraction,
    ContextType,
    ModelInfo,
    ModelsResponse,
    Selection,
    StreamEvent,
    StreamEventType,
    TokenUsage,
)

__all__ = [
    "Document",
    "DocumentMetadata",
    "IndexReport",
    "IndexStatus",
    "SearchResult",
    "VectorIndex",
    "ChatContext",
    "ChatHistory",
    "ChatMessage",
    "ChatOptions",
    "ChatRequest",
    "ChatResponse",
    "CompletionResult",
    "ContextExtraction",
    "ContextType",
    "ModelInfo",
    "ModelsResponse",
    "Selection",
    "StreamEvent",
    "StreamEventType",
    "TokenUsage",
]
