import argparse
import asyncio
import json
import logging
import sys

from ..config.settings import settings
from ..container import configure_container, container
from ..core.errors import RagRelayError
from ..core.models.chat import (
    ChatContext,
    ChatHistory,
    ChatRequest,
    ContextType,
    StreamEventType,
)
from ..core.services.chat_service import ChatService
from ..core.services.ingest_service import IngestService
from ..core.services.search_service import SearchService

logger = logging.getLogger(__name__)


async def cmd_index(args: argparse.Namespace) -> int:
    """Index command - rebuild the vector index."""
    report = await container.resolve(IngestService).run()
    logger.info(
        f"Indexed {report.documents} chunks from {report.files} files ({report.model})"
    )
    return 0


async def cmd_search(args: argparse.Namespace) -> int:
    results = await container.resolve(SearchService).search(args.query, args.k)
    for i, r in enumerate(results, 1):
        print(f"{i}. [{r.similarity:.2f}] {r.document.id}")
        print(f"   {r.document.content[:200]}")
    return 0


async def cmd_status(args: argparse.Namespace) -> int:
    status = container.resolve(IngestService).status()
    print(json.dumps(status.to_dict(), indent=2))
    return 0


async def cmd_models(args: argparse.Namespace) -> int:
    result = await container.resolve(ChatService).list_models()
    if not result.success:
        logger.error(f"{result.code}: {result.error}")
        return 1
    for m in result.models:
        print(f"{m.id}\t{m.name}")
    return 0


async def _ask(service: ChatService, request: ChatRequest, stream: bool) -> str | None:
    """Send one message, print the reply, return it (None on failure)."""
    if not stream:
        response = await service.respond(request)
        if not response.success:
            logger.error(f"{response.code}: {response.error}")
            return None
        print(response.message)
        return response.message

    parts: list[str] = []
    async for event in service.stream_respond(request):
        if event.type is StreamEventType.CONTENT:
            parts.append(event.delta)
            print(event.delta, end="", flush=True)
        elif event.type is StreamEventType.ERROR:
            print()
            logger.error(event.error)
            return None
    print()
    return "".join(parts)


async def cmd_chat(args: argparse.Namespace) -> int:
    """Chat command - one message, or an interactive session without one."""
    service = container.resolve(ChatService)
    context = ChatContext(type=ContextType.KNOWLEDGE_BASE) if args.knowledge_base else None

    if args.message:
        reply = await _ask(service, ChatRequest(message=args.message, context=context), args.stream)
        return 0 if reply is not None else 1

    history = ChatHistory()
    while True:
        try:
            message = input("> ").strip()
        except EOFError:
            print()
            return 0
        if not message:
            continue
        if message in ("/quit", "/exit"):
            return 0

        request = ChatRequest(message=message, context=context, history=history.to_list())
        reply = await _ask(service, request, args.stream)
        if reply is not None:
            history.add_pair(message, reply)


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .api import create_app

    uvicorn.run(
        create_app(container, settings),
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        log_level=settings.log_level.lower(),
    )
    return 0


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ragrelay")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("index", help="rebuild the vector index from the corpus")

    search = sub.add_parser("search", help="rank indexed chunks for a query")
    search.add_argument("query")
    search.add_argument("-k", type=positive_int, default=None, help="number of results")

    sub.add_parser("status", help="show index status")
    sub.add_parser("models", help="list chat models offered by the provider")

    chat = sub.add_parser("chat", help="ask a question, or start an interactive session")
    chat.add_argument("message", nargs="?")
    chat.add_argument("--stream", action="store_true", help="stream the reply")
    chat.add_argument(
        "--knowledge-base", action="store_true", help="answer from the indexed corpus"
    )

    serve = sub.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    return parser


ASYNC_COMMANDS = {
    "index": cmd_index,
    "search": cmd_search,
    "status": cmd_status,
    "models": cmd_models,
    "chat": cmd_chat,
}


async def _run(command, args: argparse.Namespace) -> int:
    try:
        return await command(args)
    finally:
        await container.aclose()


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=settings.log_level.upper(), format="%(message)s")
    configure_container(settings)

    if args.command == "serve":
        return cmd_serve(args)

    try:
        return asyncio.run(_run(ASYNC_COMMANDS[args.command], args))
    except RagRelayError as e:
        logger.error(f"{e.code}: {e.message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
