"""
Single-pass consumer for SSE completion streams.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from ..exceptions import StreamCancelled
from .models import StreamResult
from .parser import ChunkAccumulator

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], Awaitable[None] | None]


class CancellationToken:
    """Cancellation handle shared between a caller and one streaming call."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


async def _next_chunk(chunks: AsyncIterator[bytes]) -> bytes | None:
    try:
        return await anext(chunks)
    except StopAsyncIteration:
        return None


class StreamingCompletionConsumer:
    """
    Decode, accumulate and finish one completion stream.

    The consumer owns no connection: it pulls byte chunks from an async
    iterator until the iterator is exhausted. Extraction of a structured
    result is left to the caller and runs once on the returned text.
    """

    def __init__(self, encoding: str = "utf-8", endpoint: str = "unknown"):
        self.encoding = encoding
        self.endpoint = endpoint

    async def consume(
        self,
        chunks: AsyncIterator[bytes],
        *,
        on_progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> StreamResult:
        """
        Run the decode-accumulate loop to the end of the transport stream.

        ``on_progress`` receives the full accumulated text after every content
        frame. Triggering ``cancel`` aborts the pending read, stops further
        progress callbacks and raises StreamCancelled.
        """
        self._check_cancelled(cancel)
        accumulator = ChunkAccumulator(self.encoding)

        while True:
            chunk = await self._pull(chunks, cancel)
            if chunk is None:
                break

            deltas = accumulator.feed(chunk)
            if not deltas or on_progress is None:
                continue

            # One callback per content frame, each seeing the text up to it.
            text = accumulator.text
            offset = len(text) - sum(len(d) for d in deltas)
            for delta in deltas:
                self._check_cancelled(cancel)
                offset += len(delta)
                result = on_progress(text[:offset])
                if inspect.isawaitable(result):
                    await result

        stats = accumulator.finish()
        logger.debug(
            f"Stream from {self.endpoint} finished: {stats.content_frames} "
            f"content frames, {stats.skipped_frames} skipped, "
            f"{stats.characters} chars in {stats.total_duration:.2f}s"
        )
        return StreamResult(text=accumulator.text, stats=stats)

    async def _pull(
        self, chunks: AsyncIterator[bytes], cancel: CancellationToken | None
    ) -> bytes | None:
        """Read the next chunk, racing the read against the cancel token."""
        if cancel is None:
            return await _next_chunk(chunks)

        self._check_cancelled(cancel)
        read = asyncio.ensure_future(_next_chunk(chunks))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait(
                {read, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for fut in (read, waiter):
                if not fut.done():
                    fut.cancel()

        self._check_cancelled(cancel)
        return read.result()

    def _check_cancelled(self, cancel: CancellationToken | None) -> None:
        if cancel is not None and cancel.cancelled:
            raise StreamCancelled(
                f"Stream cancelled: {cancel.reason}", endpoint=self.endpoint
            )
