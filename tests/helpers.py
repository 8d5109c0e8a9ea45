"""Test doubles: a token embedder, a fake LLM, corpus writer and HTTP stubs."""

import json
import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable

import httpx

from ragrelay.core.errors import NetworkError
from ragrelay.core.models.chat import ChatMessage, CompletionResult, TokenUsage

VOCAB = [
    "title", "hello", "world", "some", "other", "content",
    "alpha", "beta", "gamma", "delta",
]
TOKEN_RE = re.compile(r"[a-z]+")


class TokenEmbedder:
    """One slot per vocabulary word plus one for everything else."""

    def __init__(self, model: str = "text-embedding-3-small", fail_on_call: int | None = None):
        self._model = model
        self.fail_on_call = fail_on_call
        self.calls: list[list[str]] = []

    @property
    def model(self) -> str:
        return self._model

    def vector(self, text: str) -> list[float]:
        vec = [0.0] * (len(VOCAB) + 1)
        for token in TOKEN_RE.findall(text.lower()):
            slot = VOCAB.index(token) if token in VOCAB else len(VOCAB)
            vec[slot] = 1.0
        return vec

    async def embed(self, texts: list[str], batch_size: int | None = None) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise NetworkError("connection refused")
        return [self.vector(t) for t in texts]

    async def embed_query(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]


def write_corpus(root: Path, files: dict[str, str]) -> Path:
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def embeddings_handler(calls: list[dict] | None = None, reverse: bool = False):
    """Provider stub answering every input with [len(text), index]."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if calls is not None:
            calls.append(body)
        data = [
            {"object": "embedding", "index": i, "embedding": [float(len(t)), float(i)]}
            for i, t in enumerate(body["input"])
        ]
        if reverse:
            data.reverse()
        return httpx.Response(200, json={"object": "list", "data": data})

    return handler


def sse_body(*chunks: dict | str) -> bytes:
    lines = []
    for chunk in chunks:
        payload = chunk if isinstance(chunk, str) else json.dumps(chunk)
        lines.append(f"data: {payload}\n\n")
    return "".join(lines).encode()


def delta(text: str, finish_reason: str | None = None) -> dict:
    return {"choices": [{"index": 0, "delta": {"content": text}, "finish_reason": finish_reason}]}


class FakeLLM:
    """LLMProtocol double recording the messages it was sent."""

    def __init__(
        self,
        reply: str = "Hi there",
        stream_lines: list[str] | None = None,
        error: Exception | None = None,
        models: list | None = None,
    ):
        self.reply = reply
        self.stream_lines = stream_lines if stream_lines is not None else [
            "data: " + json.dumps(delta("Hi")),
            "data: " + json.dumps(delta(" there")),
            "data: [DONE]",
        ]
        self.error = error
        self.models = models or []
        self.sent: list[list[ChatMessage]] = []

    async def complete(self, messages, options=None) -> CompletionResult:
        self.sent.append(messages)
        if self.error is not None:
            raise self.error
        return CompletionResult(content=self.reply, usage=TokenUsage(1, 2, 3))

    @asynccontextmanager
    async def open_stream(self, messages, options=None):
        self.sent.append(messages)
        if self.error is not None:
            raise self.error

        async def lines():
            for line in self.stream_lines:
                yield line

        yield lines()

    async def list_models(self):
        if self.error is not None:
            raise self.error
        return self.models
