"""Helpers shared by the HTTP provider clients."""
import json
import logging
from typing import Any
from urllib.parse import urlsplit

import httpx

from ..core.errors import (
    APIError,
    ConfigurationError,
    MissingConfigurationError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})
MAX_ERROR_BODY = 4096


def validate_endpoint(endpoint: str, what: str = "API") -> str:
    """Check that an outbound endpoint is https, or plain http on loopback.

    Args:
        endpoint: Absolute provider URL.
        what: Label used in error messages.

    Returns:
        The endpoint unchanged.

    Raises:
        MissingConfigurationError: Endpoint is empty.
        ConfigurationError: Scheme or host is not allowed.
    """
    if not endpoint:
        raise MissingConfigurationError(f"{what} endpoint is not configured")

    try:
        parts = urlsplit(endpoint)
        host = parts.hostname or ""
    except ValueError as e:
        raise ConfigurationError(f"invalid {what} endpoint: {e}") from e

    if parts.scheme == "https" and host:
        return endpoint
    if parts.scheme == "http" and host in LOOPBACK_HOSTS:
        return endpoint

    raise ConfigurationError(
        f"invalid {what} endpoint: must use HTTPS or localhost"
    )


def auth_headers(api_key: str) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def error_from_payload(payload: Any, status_code: int | None = None) -> APIError | None:
    """Turn an OpenAI-style ``{"error": {...}}`` body into an exception.

    Returns:
        The matching APIError, or None when the payload carries no error.
    """
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if not error:
        return None

    if isinstance(error, dict):
        message = str(error.get("message") or "provider returned an error")
        error_type = str(error.get("type") or "")
        error_code = str(error.get("code") or "")
    else:
        message = str(error)
        error_type = error_code = ""

    if "rate_limit" in error_type or "rate_limit" in error_code or status_code == 429:
        return RateLimitError(message, status_code=status_code)
    return APIError(message, status_code=status_code)


def error_from_response(status_code: int, body: str) -> APIError:
    """Build the exception for a non-2xx provider response."""
    body = body[:MAX_ERROR_BODY]
    message = f"API returned status {status_code}: {body}"
    if status_code == 429:
        return RateLimitError(message, status_code=status_code)

    try:
        payload = json.loads(body)
    except ValueError:
        payload = None
    parsed = error_from_payload(payload, status_code)
    if isinstance(parsed, RateLimitError):
        return RateLimitError(message, status_code=status_code)
    return APIError(message, status_code=status_code)


def raise_for_status(response: httpx.Response) -> None:
    """Raise APIError for a non-2xx response whose body has been read."""
    if response.is_success:
        return
    logger.warning(f"Provider returned HTTP {response.status_code} for {response.request.url}")
    raise error_from_response(response.status_code, response.text)


def chat_to_embedding_endpoint(chat_endpoint: str) -> str:
    """Derive the embeddings URL from a chat-completions URL.

    ``https://api.openai.com/v1/chat/completions`` becomes
    ``https://api.openai.com/v1/embeddings``.
    """
    return models_base_url(chat_endpoint) + "/embeddings"


def completions_base_url(chat_endpoint: str) -> str:
    """SDK base URL for a chat-completions URL.

    The SDK appends ``/chat/completions`` itself, so that suffix is removed;
    any other endpoint is used as the base unchanged.
    """
    endpoint = chat_endpoint.rstrip("/")
    if endpoint.endswith("/chat/completions"):
        endpoint = endpoint[: -len("/chat/completions")]
    return endpoint


def models_base_url(chat_endpoint: str) -> str:
    """Provider base URL ending in ``/v1``, derived from the chat endpoint."""
    endpoint = chat_endpoint.rstrip("/")
    if endpoint.endswith("/chat/completions"):
        endpoint = endpoint[: -len("/chat/completions")]

    if not endpoint.endswith("/v1"):
        idx = endpoint.rfind("/v1/")
        if idx >= 0:
            endpoint = endpoint[: idx + 3]
        else:
            endpoint = endpoint.rstrip("/") + "/v1"
    return endpoint
