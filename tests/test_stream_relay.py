"""Tests for the stream relay state machine."""

import asyncio
import json

import pytest

from ragrelay.core.errors import NetworkError
from ragrelay.core.models.chat import StreamEventType
from ragrelay.core.services.stream_relay import RelayState, StreamRelay

from helpers import delta


def data(chunk) -> str:
    return "data: " + (chunk if isinstance(chunk, str) else json.dumps(chunk))


async def lines_from(*items):
    for item in items:
        if isinstance(item, Exception):
            raise item
        yield item


async def collect(relay: StreamRelay, lines, cancelled=None):
    return [event async for event in relay.relay(lines, cancelled)]


def types(events):
    return [e.type for e in events]


class TestRelay:

    @pytest.mark.asyncio
    async def test_deltas_then_done(self):
        relay = StreamRelay()
        events = await collect(relay, lines_from(data(delta("Hel")), "", data(delta("lo")), data("[DONE]")))

        assert types(events) == [
            StreamEventType.START,
            StreamEventType.CONTENT,
            StreamEventType.CONTENT,
            StreamEventType.DONE,
        ]
        assert events[0].id == relay.message_id
        assert relay.message_id.startswith("msg_")
        assert "".join(e.delta for e in events) == "Hello"
        assert relay.state is RelayState.TERMINATED

    @pytest.mark.asyncio
    async def test_finish_reason_terminates(self):
        events = await collect(
            StreamRelay(),
            lines_from(data(delta("Hi", finish_reason="stop")), data(delta("ignored")), data("[DONE]")),
        )
        assert types(events) == [StreamEventType.START, StreamEventType.CONTENT, StreamEventType.DONE]

    @pytest.mark.asyncio
    async def test_usage_reported_on_done(self):
        usage_chunk = {"choices": [], "usage": {"prompt_tokens": 3, "completion_tokens": 4, "total_tokens": 7}}
        events = await collect(StreamRelay(), lines_from(data(delta("x")), data(usage_chunk), data("[DONE]")))
        assert events[-1].usage.to_dict() == {"promptTokens": 3, "completionTokens": 4, "totalTokens": 7}

    @pytest.mark.asyncio
    async def test_error_object(self):
        events = await collect(
            StreamRelay(),
            lines_from(data(delta("a")), data({"error": {"message": "overloaded"}}), data(delta("b"))),
        )
        assert types(events) == [StreamEventType.START, StreamEventType.CONTENT, StreamEventType.ERROR]
        assert events[-1].error == "overloaded"

    @pytest.mark.asyncio
    async def test_skips_noise(self):
        events = await collect(
            StreamRelay(),
            lines_from(": keep-alive", "event: ping", "data:", "data: {broken", data("[1, 2]"), "data:[DONE]"),
        )
        assert types(events) == [StreamEventType.START, StreamEventType.DONE]

    @pytest.mark.asyncio
    async def test_end_without_terminal_event(self):
        events = await collect(StreamRelay(), lines_from(data(delta("partial"))))
        assert types(events)[-1] is StreamEventType.ERROR
        assert events[-1].error == "stream ended before completion"

    @pytest.mark.asyncio
    async def test_read_failure(self):
        events = await collect(StreamRelay(), lines_from(data(delta("a")), NetworkError("connection reset")))
        assert types(events)[-1] is StreamEventType.ERROR
        assert events[-1].error == "connection reset"

    @pytest.mark.asyncio
    async def test_exactly_one_terminal_event(self):
        events = await collect(
            StreamRelay(),
            lines_from(data(delta("a", finish_reason="stop")), data("[DONE]"), data({"error": "late"})),
        )
        terminal = [e for e in events if e.type in (StreamEventType.DONE, StreamEventType.ERROR)]
        assert len(terminal) == 1

    @pytest.mark.asyncio
    async def test_relay_runs_once(self):
        relay = StreamRelay()
        await collect(relay, lines_from(data("[DONE]")))
        with pytest.raises(RuntimeError):
            await collect(relay, lines_from(data("[DONE]")))


class TestCancellation:

    @pytest.mark.asyncio
    async def test_cancel_abandons_pending_read(self):
        cancelled = asyncio.Event()
        upstream_closed = asyncio.Event()

        async def slow_lines():
            try:
                yield data(delta("first"))
                await asyncio.sleep(10)
                yield data(delta("never"))
            finally:
                upstream_closed.set()

        relay = StreamRelay()
        events = []

        async def consume():
            async for event in relay.relay(slow_lines(), cancelled):
                events.append(event)
                if event.type is StreamEventType.CONTENT:
                    cancelled.set()

        await asyncio.wait_for(consume(), timeout=2)

        assert types(events) == [StreamEventType.START, StreamEventType.CONTENT]
        assert relay.terminated
        assert upstream_closed.is_set()

    @pytest.mark.asyncio
    async def test_consumer_task_cancelled_mid_read(self):
        cancelled = asyncio.Event()
        got_content = asyncio.Event()
        upstream_closed = asyncio.Event()

        async def slow_lines():
            try:
                yield data(delta("first"))
                await asyncio.sleep(10)
                yield data(delta("never"))
            finally:
                upstream_closed.set()

        async def consume():
            async for event in StreamRelay().relay(slow_lines(), cancelled):
                if event.type is StreamEventType.CONTENT:
                    got_content.set()

        task = asyncio.create_task(consume())
        await asyncio.wait_for(got_content.wait(), timeout=2)
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        pending_reads = [
            t for t in asyncio.all_tasks()
            if not t.done() and "_read_line" in repr(t.get_coro())
        ]
        assert pending_reads == []
        assert upstream_closed.is_set()

    @pytest.mark.asyncio
    async def test_cancel_before_first_read(self):
        cancelled = asyncio.Event()
        cancelled.set()
        events = await collect(StreamRelay(), lines_from(data(delta("x"))), cancelled)
        assert types(events) == [StreamEventType.START]


class TestFail:

    def test_fail_once(self):
        relay = StreamRelay()
        event = relay.fail("boom")
        assert event.type is StreamEventType.ERROR
        assert relay.fail("again") is None

    def test_handle_line_after_termination(self):
        relay = StreamRelay()
        relay.fail("boom")
        assert relay.handle_line(data(delta("x"))) == []

    def test_event_encoding(self):
        relay = StreamRelay(message_id="msg_1")
        (event,) = relay.handle_line(data(delta("héllo")))
        assert event.encode() == 'data: {"type": "content", "delta": "héllo"}\n\n'
