import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, AsyncIterator

import httpx
import openai
from openai import AsyncOpenAI

from ...core.errors import (
    APIError,
    MissingConfigurationError,
    NetworkError,
    ProviderTimeoutError,
    RagRelayError,
    ValidationError,
)
from ...core.models.chat import (
    ChatMessage,
    ChatOptions,
    CompletionResult,
    ModelInfo,
    TokenUsage,
)
from ..http_support import (
    completions_base_url,
    error_from_payload,
    error_from_response,
    models_base_url,
    validate_endpoint,
)

logger = logging.getLogger(__name__)

MAX_TOKENS_LIMIT = 8000

EXCLUDED_MODEL_PREFIXES = (
    "text-embedding",
    "tts-",
    "whisper-",
    "dall-e",
    "davinci",
    "babbage",
    "ada",
    "curie",
)

MODEL_DISPLAY_NAMES = {
    "gpt-4": "GPT-4",
    "gpt-4-turbo": "GPT-4 Turbo",
    "gpt-4-turbo-preview": "GPT-4 Turbo Preview",
    "gpt-4o": "GPT-4o",
    "gpt-4o-mini": "GPT-4o Mini",
    "gpt-3.5-turbo": "GPT-3.5 Turbo",
    "gpt-3.5-turbo-16k": "GPT-3.5 Turbo 16K",
    "claude-3-opus": "Claude 3 Opus",
    "claude-3-sonnet": "Claude 3 Sonnet",
    "claude-3-haiku": "Claude 3 Haiku",
    "claude-3.5-sonnet": "Claude 3.5 Sonnet",
    "deepseek-chat": "DeepSeek Chat",
    "deepseek-coder": "DeepSeek Coder",
    "qwen-turbo": "Qwen Turbo",
    "qwen-plus": "Qwen Plus",
    "qwen-max": "Qwen Max",
}


def is_chat_model(model_id: str) -> bool:
    return not model_id.lower().startswith(EXCLUDED_MODEL_PREFIXES)


def display_name(model_id: str) -> str:
    return MODEL_DISPLAY_NAMES.get(model_id, model_id)


def provider_error(error: openai.APIError) -> RagRelayError:
    """Map an SDK exception onto the project's error hierarchy."""
    if isinstance(error, openai.APITimeoutError):
        return ProviderTimeoutError(f"request timed out: {error}")
    if isinstance(error, openai.APIConnectionError):
        return NetworkError(f"failed to send request: {error}")
    if isinstance(error, openai.APIStatusError):
        logger.warning(f"Provider returned HTTP {error.status_code} for {error.request.url}")
        return error_from_response(error.status_code, error.response.text)
    return APIError(str(error))


class CompletionClient:
    """Client for an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        endpoint: str,
        api_key: str = "",
        model: str = "",
        timeout: float = 60.0,
        models_timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize completion client.

        Args:
            endpoint: Chat completions URL (https, or http on loopback).
            api_key: Bearer token.
            model: Model name sent with every request.
            timeout: Deadline in seconds for a whole completion, and for
                stream setup and each idle read while streaming.
            models_timeout: Deadline in seconds for model listing.
            http_client: Shared client; one is created when omitted.
        """
        self._endpoint = endpoint
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._models_timeout = models_timeout
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient()
        self._chat: AsyncOpenAI | None = None
        self._models: AsyncOpenAI | None = None

    @property
    def model(self) -> str:
        return self._model

    def build_payload(
        self,
        messages: list[ChatMessage],
        options: ChatOptions | None = None,
        stream: bool = False,
    ) -> dict[str, Any]:
        """Request body; out-of-range sampling options are dropped."""
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [m.to_dict() for m in messages],
            "stream": stream,
        }
        if options is not None:
            temperature = options.temperature
            if temperature is not None and 0 <= temperature <= 2:
                payload["temperature"] = temperature
            max_tokens = options.max_tokens
            if max_tokens is not None and 0 < max_tokens <= MAX_TOKENS_LIMIT:
                payload["max_tokens"] = max_tokens
        return payload

    def _check_config(self) -> None:
        validate_endpoint(self._endpoint, "chat API")
        if not self._model:
            raise MissingConfigurationError("chat model is not configured")

    def _sdk(self, base_url: str, timeout: float) -> AsyncOpenAI:
        return AsyncOpenAI(
            base_url=base_url,
            api_key=self._api_key or "none",
            http_client=self._http,
            max_retries=0,
            timeout=timeout,
        )

    def _chat_client(self) -> AsyncOpenAI:
        if self._chat is None:
            self._chat = self._sdk(completions_base_url(self._endpoint), self._timeout)
        return self._chat

    def _models_client(self) -> AsyncOpenAI:
        if self._models is None:
            self._models = self._sdk(models_base_url(self._endpoint), self._models_timeout)
        return self._models

    async def complete(
        self,
        messages: list[ChatMessage],
        options: ChatOptions | None = None,
    ) -> CompletionResult:
        self._check_config()
        payload = self.build_payload(messages, options, stream=False)

        try:
            raw = await asyncio.wait_for(
                self._chat_client().chat.completions.with_raw_response.create(**payload),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(
                f"chat completion exceeded {self._timeout:g}s"
            ) from e
        except openai.APIError as e:
            raise provider_error(e) from e

        # Some gateways answer 200 with an error object instead of a completion
        try:
            body = raw.http_response.json()
        except ValueError as e:
            raise ValidationError(f"failed to decode response: {e}") from e
        if not isinstance(body, dict):
            raise ValidationError("unexpected completion response shape")
        error = error_from_payload(body, raw.http_response.status_code)
        if error is not None:
            raise error

        completion = raw.parse()
        choices = getattr(completion, "choices", None)
        if not choices:
            raise APIError("no response from API")

        return CompletionResult(
            content=choices[0].message.content or "",
            usage=TokenUsage.from_provider(body.get("usage")),
        )

    @asynccontextmanager
    async def open_stream(
        self,
        messages: list[ChatMessage],
        options: ChatOptions | None = None,
    ) -> AsyncIterator[AsyncIterator[str]]:
        """Open a streaming completion and yield its raw lines.

        Raises before yielding on bad configuration, transport failure or a
        non-2xx status. The upstream response is closed on exit.
        """
        self._check_config()
        stream = self._chat_client().chat.completions.with_streaming_response.create(
            **self.build_payload(messages, options, stream=True),
            extra_headers={"Accept": "text/event-stream"},
        )

        async with AsyncExitStack() as stack:
            try:
                response = await stack.enter_async_context(stream)
            except openai.APIError as e:
                raise provider_error(e) from e
            yield self._iter_lines(response)

    async def _iter_lines(self, response) -> AsyncIterator[str]:
        try:
            async for line in response.iter_lines():
                yield line
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"stream read timed out: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"failed to read stream: {e}") from e

    async def list_models(self) -> list[ModelInfo]:
        """Chat-capable models reported by the provider's ``/v1/models``."""
        validate_endpoint(self._endpoint, "chat API")

        try:
            page = await self._models_client().models.list()
        except openai.APIError as e:
            raise provider_error(e) from e

        models = [
            ModelInfo(id=m.id, name=display_name(m.id))
            for m in page.data
            if is_chat_model(m.id)
        ]
        logger.info(f"Provider lists {len(page.data)} models, {len(models)} chat models")
        return models

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
