import asyncio
import contextlib
import json
import logging
import uuid
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Optional

from ..errors import RagRelayError
from ..models.chat import StreamEvent, StreamEventType, TokenUsage

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


class RelayState(str, Enum):
    INIT = "init"
    STREAMING = "streaming"
    TERMINATED = "terminated"


class _Cancelled(Exception):
    pass


async def _read_line(iterator: AsyncIterator[str]) -> str | None:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return None


async def _discard(read: "asyncio.Future[str | None]") -> None:
    """Cancel a pending read and wait until it has unwound."""
    read.cancel()
    with contextlib.suppress(asyncio.CancelledError, RagRelayError):
        await read


class StreamRelay:
    """Turns an upstream completion event stream into normalized events.

    One relay per request: ``INIT -> STREAMING -> TERMINATED``. Nothing is
    emitted once terminated.
    """

    def __init__(self, message_id: str | None = None):
        self.state = RelayState.INIT
        self.message_id = message_id or f"msg_{uuid.uuid4().hex}"
        self._usage: Optional[TokenUsage] = None

    @property
    def terminated(self) -> bool:
        return self.state is RelayState.TERMINATED

    def fail(self, error: str) -> StreamEvent | None:
        """Terminate with a single error event, None if already terminated."""
        if self.terminated:
            return None
        self.state = RelayState.TERMINATED
        return StreamEvent(type=StreamEventType.ERROR, error=error)

    async def relay(
        self,
        lines: AsyncIterable[str],
        cancelled: asyncio.Event | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Relay upstream lines as events, starting with ``start``.

        Args:
            lines: Raw upstream event-stream lines.
            cancelled: When set, the pending read is abandoned and the relay
                ends without another event.

        Yields:
            Normalized stream events, in upstream order.
        """
        if self.state is not RelayState.INIT:
            raise RuntimeError(f"relay is {self.state.value}, expected init")

        self.state = RelayState.STREAMING
        yield StreamEvent(type=StreamEventType.START, id=self.message_id)

        iterator = lines.__aiter__()
        stop_waiter = asyncio.ensure_future(cancelled.wait()) if cancelled else None
        try:
            while not self.terminated:
                try:
                    line = await self._next_line(iterator, stop_waiter)
                except _Cancelled:
                    self.state = RelayState.TERMINATED
                    logger.info(f"[{self.message_id}] cancelled by caller")
                    return
                except RagRelayError as e:
                    logger.warning(f"[{self.message_id}] upstream read failed: {e.message}")
                    yield self.fail(e.message)
                    return

                if line is None:
                    logger.warning(f"[{self.message_id}] upstream closed without a terminal event")
                    yield self.fail("stream ended before completion")
                    return

                for event in self.handle_line(line):
                    yield event
        finally:
            if stop_waiter is not None:
                stop_waiter.cancel()

    async def _next_line(
        self,
        iterator: AsyncIterator[str],
        stop_waiter: "asyncio.Future[Any] | None",
    ) -> str | None:
        """Next upstream line, None at end of stream."""
        if stop_waiter is None:
            return await _read_line(iterator)
        if stop_waiter.done():
            raise _Cancelled()

        read = asyncio.ensure_future(_read_line(iterator))
        try:
            await asyncio.wait({read, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            # Our own task was cancelled mid-read; the read must not outlive it
            await _discard(read)
            raise

        if not stop_waiter.done():
            return read.result()

        # Cancellation wins over a line that arrived in the same tick
        await _discard(read)
        raise _Cancelled()

    def handle_line(self, line: str) -> list[StreamEvent]:
        """Events produced by one upstream line."""
        if self.terminated:
            return []

        line = line.strip()
        if not line.startswith("data:"):
            return []
        data = line[len("data:"):].strip()
        if not data:
            return []
        if data == DONE_SENTINEL:
            return [self._done()]

        try:
            chunk = json.loads(data)
        except ValueError:
            logger.debug(f"[{self.message_id}] skipping unparsable line: {data[:120]}")
            return []
        if not isinstance(chunk, dict):
            return []

        error = chunk.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            return [self.fail(message or "provider returned an error")]

        usage = TokenUsage.from_provider(chunk.get("usage"))
        if usage is not None:
            self._usage = usage

        choices = chunk.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return []
        choice = choices[0]

        events = []
        delta = choice.get("delta")
        content = delta.get("content") if isinstance(delta, dict) else None
        if isinstance(content, str) and content:
            events.append(StreamEvent(type=StreamEventType.CONTENT, delta=content))
        if choice.get("finish_reason"):
            events.append(self._done())
        return events

    def _done(self) -> StreamEvent:
        self.state = RelayState.TERMINATED
        return StreamEvent(type=StreamEventType.DONE, usage=self._usage)
