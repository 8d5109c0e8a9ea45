"""LLM protocol for dependency injection."""
from typing import AsyncContextManager, AsyncIterator, Protocol, runtime_checkable

from ..models.chat import ChatMessage, ChatOptions, CompletionResult, ModelInfo


@runtime_checkable
class LLMProtocol(Protocol):
    """Protocol for an OpenAI-compatible completion provider."""

    async def complete(
        self,
        messages: list[ChatMessage],
        options: ChatOptions | None = None,
    ) -> CompletionResult:
        """Request a whole completion.

        Args:
            messages: Prompt messages, system first.
            options: Sampling options (out-of-range values are dropped).

        Returns:
            Completion text and token usage.
        """
        ...

    def open_stream(
        self,
        messages: list[ChatMessage],
        options: ChatOptions | None = None,
    ) -> AsyncContextManager[AsyncIterator[str]]:
        """Open a streaming completion.

        The context manager fails before yielding when the provider cannot be
        reached or answers with a non-2xx status. Inside, it yields the raw
        upstream event-stream lines; leaving the block closes the upstream
        response.
        """
        ...

    async def list_models(self) -> list[ModelInfo]:
        """List chat-capable models offered by the provider."""
        ...
