"""Chat service - coordinates retrieval, prompt assembly and the LLM."""

import asyncio
import logging
from contextlib import aclosing
from dataclasses import replace
from typing import AsyncIterator, Optional

from ..errors import RagRelayError
from ..models.chat import (
    ALLOWED_HISTORY_ROLES,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ContextExtraction,
    ContextType,
    ModelsResponse,
    Selection,
    StreamEvent,
)
from ..protocols.corpus import CorpusProtocol
from ..protocols.llm import LLMProtocol
from .search_service import SearchService
from .stream_relay import StreamRelay

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant for documentation editing."

CONTEXT_PROMPT = (
    "Here is the context:\n\n{context}\n\n"
    "Please answer questions based on this context."
)

WHOLE_CORPUS_PROMPT = "Entire knowledge base ({count} files):\n\n{content}"


class ChatService:
    """Chat service that assembles prompts and talks to the completion provider."""

    def __init__(
        self,
        llm: LLMProtocol,
        search_service: SearchService,
        corpus: CorpusProtocol,
        rag_top_k: int = 3,
        max_context_chars: int = 100_000,
        max_system_prompt_chars: int = 10_000,
        default_system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ):
        """Initialize chat service.

        Args:
            llm: Completion client.
            search_service: Retriever used for knowledge-base context.
            corpus: Corpus reader for the whole-corpus fallback.
            rag_top_k: Excerpts retrieved per question.
            max_context_chars: Whole-corpus context larger than this is refused.
            max_system_prompt_chars: Caller system prompts are cut to this length.
            default_system_prompt: System prompt used when the caller sends none.
        """
        self._llm = llm
        self._search = search_service
        self._corpus = corpus
        self._rag_top_k = rag_top_k
        self._max_context_chars = max_context_chars
        self._max_system_prompt_chars = max_system_prompt_chars
        self._default_system_prompt = default_system_prompt

    def build_messages(self, request: ChatRequest) -> list[ChatMessage]:
        """System prompt (plus context), filtered history, then the question."""
        options = request.options
        if options is not None and options.system_prompt:
            system_parts = [options.system_prompt[: self._max_system_prompt_chars]]
        else:
            system_parts = [self._default_system_prompt]

        if request.context is not None and request.context.content:
            system_parts.append(CONTEXT_PROMPT.format(context=request.context.content))

        messages = [ChatMessage(role="system", content="\n\n".join(system_parts))]
        messages.extend(m for m in request.history if m.role in ALLOWED_HISTORY_ROLES)
        messages.append(ChatMessage(role="user", content=request.message))
        return messages

    async def resolve_context(self, request: ChatRequest) -> ChatRequest:
        """Fill in knowledge-base context; other context types pass through.

        Returns:
            A copy of the request with context content populated.

        Raises:
            ContextTooLargeError: Whole-corpus fallback exceeds the cap.
            CorpusError: Fallback could not read the corpus.
        """
        context = request.context
        if context is None or context.type is not ContextType.KNOWLEDGE_BASE:
            return request

        content = await self._knowledge_base_context(request.message)
        return replace(request, context=replace(context, content=content))

    async def _knowledge_base_context(self, query: str) -> str:
        try:
            rag_context = await self._search.build_context(query, self._rag_top_k)
        except RagRelayError as e:
            logger.warning(f"Retrieval failed ({e.code}), using whole corpus: {e.message}")
            rag_context = ""

        if rag_context:
            return rag_context

        logger.info(f"No retrieval context for '{query[:50]}...', reading whole corpus")
        content, count = self._corpus.read_all(self._max_context_chars)
        return WHOLE_CORPUS_PROMPT.format(count=count, content=content)

    async def respond(self, request: ChatRequest) -> ChatResponse:
        """Non-streaming reply. Failures come back as ``success=False``."""
        try:
            request = await self.resolve_context(request)
            result = await self._llm.complete(self.build_messages(request), request.options)
        except RagRelayError as e:
            logger.warning(f"Chat failed ({e.code}): {e.message}")
            return ChatResponse.failure(e.message, e.code)

        return ChatResponse(success=True, message=result.content, usage=result.usage)

    async def stream_respond(
        self,
        request: ChatRequest,
        cancelled: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream a reply as normalized events.

        Args:
            request: Chat request.
            cancelled: Set by the caller when the client goes away.

        Yields:
            ``start``, ``content``..., then ``done``; or a single ``error``.
        """
        relay = StreamRelay()
        try:
            request = await self.resolve_context(request)
            messages = self.build_messages(request)
            async with self._llm.open_stream(messages, request.options) as lines:
                async with aclosing(relay.relay(lines, cancelled)) as events:
                    async for event in events:
                        yield event
        except RagRelayError as e:
            logger.warning(f"[{relay.message_id}] stream failed ({e.code}): {e.message}")
            event = relay.fail(e.message)
            if event is not None:
                yield event

    def extract_context(
        self,
        context_type: str,
        path: str = "",
        selection: Optional[Selection] = None,
    ) -> ContextExtraction:
        """Read context for the editor: a document, a selection or the whole corpus."""
        try:
            kind = ContextType(context_type)
        except ValueError:
            return ContextExtraction(
                success=False,
                error=f"unknown context type: {context_type}",
                code="CHAT_API_ERROR",
            )

        try:
            if kind is ContextType.KNOWLEDGE_BASE:
                content, count = self._corpus.read_all(self._max_context_chars)
                return ContextExtraction(
                    success=True, context=content, file_count=count, total_chars=len(content)
                )

            if kind is ContextType.SELECTION and selection is None:
                return ContextExtraction(
                    success=False,
                    error="selection is required for selection context type",
                    code="CHAT_API_ERROR",
                )

            content = self._corpus.read_file(path)
        except RagRelayError as e:
            return ContextExtraction(success=False, error=e.message, code=e.code)

        if kind is ContextType.SELECTION:
            if not 0 <= selection.start <= selection.end <= len(content):
                return ContextExtraction(
                    success=False, error="invalid selection range", code="CHAT_API_ERROR"
                )
            content = content[selection.start:selection.end]

        return ContextExtraction(
            success=True, context=content, file_count=1, total_chars=len(content)
        )

    async def list_models(self) -> ModelsResponse:
        try:
            models = await self._llm.list_models()
        except RagRelayError as e:
            logger.warning(f"Model listing failed ({e.code}): {e.message}")
            return ModelsResponse(success=False, error=e.message, code=e.code)
        return ModelsResponse(success=True, models=models)
