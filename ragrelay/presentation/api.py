"""HTTP API: chat (plain and SSE) and RAG index management."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from ..config.settings import Settings, settings as default_settings
from ..container import Container, configure_container
from ..core.errors import (
    APIError,
    ConfigurationError,
    ContextTooLargeError,
    CorpusError,
    EmptyCorpusError,
    EmptyIndexError,
    IndexModelMismatchError,
    ProviderTimeoutError,
    RagRelayError,
    RateLimitError,
)
from ..core.services.chat_service import ChatService
from ..core.services.ingest_service import IngestService
from ..core.services.search_service import SearchService, format_context
from .schemas import (
    ChatRequestIn,
    ContextRequest,
    IndexResponse,
    SearchRequest,
    SearchResponse,
    SearchResultOut,
    StatusResponse,
    context_extraction_to_dict,
    models_response_to_dict,
)

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

DISCONNECT_POLL_INTERVAL = 0.5

# Most specific first
_STATUS_BY_ERROR: list[tuple[type[RagRelayError], int]] = [
    (RateLimitError, 429),
    (APIError, 502),
    (ProviderTimeoutError, 504),
    (ConfigurationError, 400),
    (ContextTooLargeError, 413),
    (EmptyIndexError, 409),
    (EmptyCorpusError, 409),
    (IndexModelMismatchError, 409),
    (CorpusError, 404),
]


def status_for(error: RagRelayError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 502


async def watch_disconnect(
    request: Request, cancelled: asyncio.Event, interval: float = DISCONNECT_POLL_INTERVAL
) -> None:
    """Set ``cancelled`` once the client has gone away."""
    while not cancelled.is_set():
        if await request.is_disconnected():
            logger.info("Client disconnected, cancelling stream")
            cancelled.set()
            return
        await asyncio.sleep(interval)


chat_router = APIRouter(prefix="/api/chat", tags=["chat"])
rag_router = APIRouter(prefix="/api/rag", tags=["rag"])


def _resolve(request: Request, interface):
    return request.app.state.container.resolve(interface)


@chat_router.post("")
async def chat(body: ChatRequestIn, request: Request):
    """Non-streaming chat; failures come back with ``success: false``."""
    service: ChatService = _resolve(request, ChatService)
    response = await service.respond(body.to_domain())
    return JSONResponse(response.to_dict())


@chat_router.post("/stream")
async def chat_stream(body: ChatRequestIn, request: Request):
    service: ChatService = _resolve(request, ChatService)
    chat_request = body.to_domain()

    async def event_stream() -> AsyncIterator[str]:
        cancelled = asyncio.Event()
        watcher = asyncio.create_task(watch_disconnect(request, cancelled))
        try:
            async for event in service.stream_respond(chat_request, cancelled):
                yield event.encode()
        finally:
            watcher.cancel()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@chat_router.post("/context")
async def extract_context(body: ContextRequest, request: Request):
    service: ChatService = _resolve(request, ChatService)
    result = service.extract_context(body.type, body.path, body.domain_selection())
    return JSONResponse(context_extraction_to_dict(result))


@chat_router.get("/models")
async def list_models(request: Request):
    service: ChatService = _resolve(request, ChatService)
    result = await service.list_models()
    return JSONResponse(models_response_to_dict(result))


@rag_router.post("/index", response_model=IndexResponse)
async def index_documents(request: Request):
    """Rebuild the whole index from the corpus."""
    service: IngestService = _resolve(request, IngestService)
    report = await service.run()
    return IndexResponse.from_report(report)


@rag_router.post("/search", response_model=SearchResponse)
async def search(body: SearchRequest, request: Request):
    service: SearchService = _resolve(request, SearchService)
    results = await service.search(body.query, body.top_k)
    return SearchResponse(
        query=body.query,
        results=[SearchResultOut.from_result(r) for r in results],
        context=format_context(results),
    )


@rag_router.get("/status", response_model=StatusResponse)
async def index_status(request: Request):
    service: IngestService = _resolve(request, IngestService)
    return StatusResponse(**service.status().to_dict())


def create_app(
    app_container: Container | None = None,
    app_settings: Settings | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        app_container: Pre-wired container (tests pass one with fakes).
        app_settings: Settings used when the container is wired here.
    """
    app_settings = app_settings or default_settings
    if app_container is None:
        app_container = configure_container(app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(
            level=app_settings.log_level.upper(), format="%(asctime)s %(name)s %(message)s"
        )
        logger.info("API starting")
        yield
        await app.state.container.aclose()
        logger.info("API stopped")

    app = FastAPI(title="ragrelay", lifespan=lifespan)
    app.state.container = app_container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RagRelayError)
    async def handle_error(request: Request, exc: RagRelayError):
        logger.warning(f"{request.url.path} failed ({exc.code}): {exc.message}")
        return JSONResponse(
            status_code=status_for(exc),
            content={"success": False, "error": exc.message, "code": exc.code},
        )

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    app.include_router(chat_router)
    app.include_router(rag_router)
    return app
