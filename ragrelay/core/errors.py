"""Error hierarchy shared by the RAG and chat services."""


class RagRelayError(Exception):
    """Base error. Every subclass carries a stable wire code."""

    code = "CHAT_API_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ConfigurationError(RagRelayError):
    """Endpoint or provider settings are not usable."""

    code = "CHAT_INVALID_ENDPOINT"


class MissingConfigurationError(ConfigurationError):
    code = "CHAT_CONFIG_MISSING"


class NetworkError(RagRelayError):
    """Transport failure talking to a provider."""

    code = "CHAT_NETWORK_ERROR"


class ProviderTimeoutError(RagRelayError):
    """A provider call exceeded its deadline."""

    code = "CHAT_TIMEOUT"


class APIError(RagRelayError):
    """Provider answered with a non-2xx status or an error body."""

    code = "CHAT_API_ERROR"

    def __init__(
        self, message: str, status_code: int | None = None, code: str | None = None
    ):
        super().__init__(message, code)
        self.status_code = status_code


class RateLimitError(APIError):
    code = "CHAT_RATE_LIMIT"


class ValidationError(RagRelayError):
    """Provider payload or stored index is malformed or incomplete."""

    code = "CHAT_API_ERROR"


class ContextTooLargeError(RagRelayError):
    code = "CHAT_CONTEXT_TOO_LARGE"


class EmptyIndexError(RagRelayError):
    code = "RAG_INDEX_EMPTY"


class IndexModelMismatchError(RagRelayError):
    """Stored embeddings come from a different model than the query embedder."""

    code = "RAG_INDEX_MODEL_MISMATCH"


class EmptyCorpusError(RagRelayError):
    code = "RAG_CORPUS_EMPTY"


class CorpusError(RagRelayError):
    """Corpus root missing or a file could not be read."""

    code = "RAG_CORPUS_ERROR"


class EmbeddingError(RagRelayError):
    """Embedding step failed while indexing or searching."""

    code = "RAG_EMBEDDING_ERROR"
