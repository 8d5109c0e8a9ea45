import logging
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

import httpx

from .config.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Container:
    _factories: dict[type, Callable[[], Any]] = field(default_factory=dict)
    _singletons: dict[type, Any] = field(default_factory=dict)
    _singleton_flags: set[type] = field(default_factory=set)

    def register(
        self, interface: type[T], factory: Callable[[], T], singleton: bool = False
    ) -> None:
        """Register factory for interface.

        Args:
            interface: Interface type.
            factory: Factory function.
            singleton: Whether to cache instance.
        """
        self._factories[interface] = factory
        if singleton:
            self._singleton_flags.add(interface)

    def register_instance(self, interface: type[T], instance: T) -> None:
        """Register a ready-made singleton (used by tests to inject fakes)."""
        self._factories[interface] = lambda: instance
        self._singleton_flags.add(interface)
        self._singletons[interface] = instance

    def resolve(self, interface: type[T]) -> T:
        if interface in self._singletons:
            return self._singletons[interface]

        if interface not in self._factories:
            raise KeyError(f"No factory registered for {interface}")

        instance = self._factories[interface]()

        if interface in self._singleton_flags:
            self._singletons[interface] = instance

        return instance

    def reset(self) -> None:
        """Reset singletons (for testing)."""
        self._singletons.clear()

    async def aclose(self) -> None:
        """Close created singletons that hold network resources, then reset."""
        for instance in list(self._singletons.values()):
            closer = getattr(instance, "aclose", None)
            if closer is not None:
                await closer()
        self.reset()
        logger.info("Container closed")


container = Container()


def configure_container(settings: Settings, target: Container | None = None) -> Container:
    """Configure container with all dependencies.

    Args:
        settings: Application settings.
        target: Container to fill; the module-level one when omitted.

    Returns:
        Configured container.
    """
    from .core.protocols.corpus import CorpusProtocol
    from .core.protocols.embedder import EmbedderProtocol
    from .core.protocols.llm import LLMProtocol
    from .core.protocols.vector_store import VectorStoreProtocol
    from .core.services.chat_service import ChatService
    from .core.services.ingest_service import IngestService
    from .core.services.search_service import SearchService
    from .infrastructure.document_loaders import CorpusReader
    from .infrastructure.embeddings.http_embedder import HttpEmbedder
    from .infrastructure.llm.completion_client import CompletionClient
    from .infrastructure.vector_stores.json_store import JsonVectorStore

    c = target if target is not None else container

    c.register(httpx.AsyncClient, lambda: httpx.AsyncClient(), singleton=True)

    c.register(
        EmbedderProtocol,
        lambda: HttpEmbedder(
            endpoint=settings.resolved_embedding_endpoint,
            api_key=settings.resolved_embedding_api_key,
            model=settings.embedding_model,
            timeout=settings.embedding_timeout,
            batch_size=settings.embedding_batch_size,
            http_client=c.resolve(httpx.AsyncClient),
        ),
        singleton=True,
    )

    c.register(
        VectorStoreProtocol,
        lambda: JsonVectorStore(
            store_path=settings.vector_store_path,
            model=settings.embedding_model,
            version=settings.index_version,
        ),
        singleton=True,
    )

    c.register(
        CorpusProtocol,
        lambda: CorpusReader(settings.corpus_path, set(settings.corpus_extensions)),
        singleton=True,
    )

    c.register(
        LLMProtocol,
        lambda: CompletionClient(
            endpoint=settings.chat_endpoint,
            api_key=settings.chat_api_key,
            model=settings.chat_model,
            timeout=settings.chat_timeout,
            models_timeout=settings.models_timeout,
            http_client=c.resolve(httpx.AsyncClient),
        ),
        singleton=True,
    )

    c.register(
        SearchService,
        lambda: SearchService(
            embedder=c.resolve(EmbedderProtocol),
            vector_store=c.resolve(VectorStoreProtocol),
            top_k=settings.rag_top_k,
        ),
        singleton=True,
    )

    c.register(
        IngestService,
        lambda: IngestService(
            embedder=c.resolve(EmbedderProtocol),
            vector_store=c.resolve(VectorStoreProtocol),
            corpus=c.resolve(CorpusProtocol),
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
            batch_size=settings.index_batch_size,
            index_version=settings.index_version,
        ),
        singleton=True,
    )

    c.register(
        ChatService,
        lambda: ChatService(
            llm=c.resolve(LLMProtocol),
            search_service=c.resolve(SearchService),
            corpus=c.resolve(CorpusProtocol),
            rag_top_k=settings.rag_top_k,
            max_context_chars=settings.max_context_chars,
            max_system_prompt_chars=settings.max_system_prompt_chars,
            default_system_prompt=settings.default_system_prompt,
        ),
        singleton=True,
    )

    logger.info("Container configured")
    return c
