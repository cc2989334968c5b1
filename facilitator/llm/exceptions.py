"""
Error handling for workshop completion calls.

This module provides the error taxonomy with rich context:
- Transport failures (network, non-2xx, missing body, timeouts)
- Cancellation of in-flight streams
- Per-frame parse skips that never leave the stream consumer
- Result extraction misses on the finished text
"""

from __future__ import annotations


class WorkshopClientError(Exception):
    """Base client error with rich context."""

    def __init__(
        self,
        message: str,
        endpoint: str = "unknown",
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code
        self.response_data = response_data or {}


class TransportFailure(WorkshopClientError):
    """Network failure or non-2xx status on any call."""
    pass


class StreamTransportFailure(TransportFailure):
    """Streaming request failed before or while reading the body."""
    pass


class NoResponseBody(StreamTransportFailure):
    """The transport returned no readable body to stream."""
    pass


class StreamCancelled(WorkshopClientError):
    """The stream was aborted through its cancellation token."""
    pass


class FrameParseSkip(WorkshopClientError):
    """A single SSE frame could not be decoded and was skipped."""

    def __init__(self, message: str, raw_data: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.raw_data = raw_data


class ResultExtractionMiss(WorkshopClientError):
    """The finished text holds no usable JSON object."""

    def __init__(self, message: str, text: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.text = text


class ResponseFormatError(WorkshopClientError):
    """A non-streaming response body was not the expected JSON."""
    pass
