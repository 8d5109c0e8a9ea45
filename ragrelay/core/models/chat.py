"""Chat domain models."""
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

ALLOWED_HISTORY_ROLES = ("user", "assistant")


class ContextType(str, Enum):
    """Kind of context attached to a chat request."""
    CURRENT_DOCUMENT = "current_document"
    SELECTION = "selection"
    KNOWLEDGE_BASE = "knowledge_base"


class StreamEventType(str, Enum):
    START = "start"
    CONTENT = "content"
    DONE = "done"
    ERROR = "error"


@dataclass
class ChatMessage:
    """Chat message."""
    role: str  # "user" | "assistant" | "system"
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatHistory:
    """Chat history with limit."""
    messages: list[ChatMessage] = field(default_factory=list)
    max_messages: int = 20

    def add(self, message: ChatMessage) -> None:
        """Add message to history."""
        self.messages.append(message)
        if len(self.messages) > self.max_messages:
            self.messages = self.messages[-self.max_messages:]

    def add_pair(self, user_content: str, assistant_content: str) -> None:
        """Add user/assistant message pair."""
        self.add(ChatMessage(role="user", content=user_content))
        self.add(ChatMessage(role="assistant", content=assistant_content))

    def to_list(self) -> list[ChatMessage]:
        return list(self.messages)


@dataclass
class Selection:
    """Character range inside a document."""
    start: int
    end: int


@dataclass
class ChatContext:
    """Context block for a chat request.

    For ``knowledge_base`` the content is filled in by the chat service,
    whatever the caller sent is discarded.
    """
    type: ContextType
    content: str = ""
    path: str = ""


@dataclass
class ChatOptions:
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    system_prompt: str = ""


@dataclass
class ChatRequest:
    message: str
    context: Optional[ChatContext] = None
    history: list[ChatMessage] = field(default_factory=list)
    options: Optional[ChatOptions] = None


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_provider(cls, data: Any) -> Optional["TokenUsage"]:
        """Build from an OpenAI-style ``usage`` object, None if absent."""
        if not isinstance(data, dict):
            return None
        try:
            return cls(
                prompt_tokens=int(data.get("prompt_tokens") or 0),
                completion_tokens=int(data.get("completion_tokens") or 0),
                total_tokens=int(data.get("total_tokens") or 0),
            )
        except (TypeError, ValueError):
            return None

    def to_dict(self) -> dict[str, int]:
        return {
            "promptTokens": self.prompt_tokens,
            "completionTokens": self.completion_tokens,
            "totalTokens": self.total_tokens,
        }


@dataclass
class ChatResponse:
    """Non-streaming reply. Failures are data, not exceptions."""
    success: bool
    message: str = ""
    usage: Optional[TokenUsage] = None
    error: str = ""
    code: str = ""

    @classmethod
    def failure(cls, error: str, code: str) -> "ChatResponse":
        return cls(success=False, error=error, code=code)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        if self.message:
            data["message"] = self.message
        if self.usage is not None:
            data["usage"] = self.usage.to_dict()
        if self.error:
            data["error"] = self.error
        if self.code:
            data["code"] = self.code
        return data


@dataclass
class StreamEvent:
    """One event of the normalized stream sent to the caller."""
    type: StreamEventType
    delta: str = ""
    usage: Optional[TokenUsage] = None
    error: str = ""
    id: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value}
        if self.delta:
            data["delta"] = self.delta
        if self.usage is not None:
            data["usage"] = self.usage.to_dict()
        if self.error:
            data["error"] = self.error
        if self.id:
            data["id"] = self.id
        return data

    def encode(self) -> str:
        """Serialize as a server-sent event frame."""
        return f"data: {json.dumps(self.to_dict(), ensure_ascii=False)}\n\n"


@dataclass
class CompletionResult:
    """Non-streaming completion returned by the provider."""
    content: str
    usage: Optional[TokenUsage] = None


@dataclass
class ContextExtraction:
    success: bool
    context: str = ""
    file_count: int = 0
    total_chars: int = 0
    error: str = ""
    code: str = ""


@dataclass
class ModelInfo:
    id: str
    name: str
    description: str = ""


@dataclass
class ModelsResponse:
    success: bool
    models: list[ModelInfo] = field(default_factory=list)
    error: str = ""
    code: str = ""
