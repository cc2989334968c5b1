#!/usr/bin/env python3
"""
Tests for the single-pass streaming consumer: progress callbacks,
cancellation and end-of-stream handling.
"""

import asyncio
import json

import pytest

from facilitator.llm.exceptions import StreamCancelled
from facilitator.llm.streaming.consumer import (
    CancellationToken,
    StreamingCompletionConsumer,
)


def frame(content: str) -> bytes:
    return f"data: {json.dumps({'content': content})}\n\n".encode()


async def iterate(*chunks: bytes):
    for chunk in chunks:
        yield chunk


class TestProgress:
    """Test progress callbacks during consumption."""

    @pytest.mark.asyncio
    async def test_one_callback_per_content_frame(self):
        seen: list[str] = []
        consumer = StreamingCompletionConsumer()

        result = await consumer.consume(
            iterate(frame("Hel") + frame("lo"), frame(" world"), b"data: [DONE]\n\n"),
            on_progress=seen.append,
        )

        assert result.text == "Hello world"
        assert seen == ["Hel", "Hello", "Hello world"]

    @pytest.mark.asyncio
    async def test_async_callback_is_awaited(self):
        seen: list[str] = []

        async def on_progress(text: str) -> None:
            await asyncio.sleep(0)
            seen.append(text)

        consumer = StreamingCompletionConsumer()
        await consumer.consume(iterate(frame("a"), frame("b")), on_progress=on_progress)
        assert seen == ["a", "ab"]

    @pytest.mark.asyncio
    async def test_progress_is_prefix_of_final_text(self):
        seen: list[str] = []
        consumer = StreamingCompletionConsumer()
        result = await consumer.consume(
            iterate(frame("一"), frame("二"), frame("三")), on_progress=seen.append
        )
        for partial in seen:
            assert result.text.startswith(partial)
        assert seen[-1] == result.text

    @pytest.mark.asyncio
    async def test_empty_stream(self):
        consumer = StreamingCompletionConsumer()
        result = await consumer.consume(iterate())
        assert result.text == ""
        assert result.stats.content_frames == 0

    @pytest.mark.asyncio
    async def test_stream_end_without_done_sentinel(self):
        consumer = StreamingCompletionConsumer()
        result = await consumer.consume(iterate(frame("only")))
        assert result.text == "only"

    @pytest.mark.asyncio
    async def test_data_after_done_is_still_consumed(self):
        consumer = StreamingCompletionConsumer()
        result = await consumer.consume(
            iterate(frame("a"), b"data: [DONE]\n\n", frame("b"))
        )
        assert result.text == "ab"


class TestCancellation:
    """Test cancellation through the token."""

    @pytest.mark.asyncio
    async def test_cancel_before_consume(self):
        token = CancellationToken()
        token.cancel("user left")
        consumer = StreamingCompletionConsumer(endpoint="/api/pre-mortem")

        with pytest.raises(StreamCancelled) as exc_info:
            await consumer.consume(iterate(frame("x")), cancel=token)
        assert exc_info.value.endpoint == "/api/pre-mortem"
        assert "user left" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_cancel_while_waiting_for_chunk(self):
        token = CancellationToken()
        release = asyncio.Event()
        seen: list[str] = []

        async def slow_stream():
            yield frame("first")
            await release.wait()
            yield frame("never")

        consumer = StreamingCompletionConsumer()
        task = asyncio.create_task(
            consumer.consume(slow_stream(), on_progress=seen.append, cancel=token)
        )
        while not seen:
            await asyncio.sleep(0)

        token.cancel()
        with pytest.raises(StreamCancelled):
            await asyncio.wait_for(task, timeout=1.0)
        assert seen == ["first"]

    @pytest.mark.asyncio
    async def test_cancel_from_callback_stops_further_callbacks(self):
        token = CancellationToken()
        seen: list[str] = []

        def on_progress(text: str) -> None:
            seen.append(text)
            token.cancel()

        consumer = StreamingCompletionConsumer()
        with pytest.raises(StreamCancelled):
            await consumer.consume(
                iterate(frame("a") + frame("b"), frame("c")),
                on_progress=on_progress,
                cancel=token,
            )
        assert seen == ["a"]

    @pytest.mark.asyncio
    async def test_token_is_idempotent(self):
        token = CancellationToken()
        assert not token.cancelled
        token.cancel("first")
        token.cancel("second")
        assert token.cancelled
        assert token.reason == "first"
        await asyncio.wait_for(token.wait(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_uncancelled_token_does_not_interfere(self):
        token = CancellationToken()
        consumer = StreamingCompletionConsumer()
        result = await consumer.consume(iterate(frame("a"), frame("b")), cancel=token)
        assert result.text == "ab"
