"""
Completion API integration for the facilitation workshop.

This package provides:
- A single HTTP client for streaming and non-streaming completion endpoints
- SSE stream consumption with cancellation and timeouts
- The client error taxonomy
"""

from __future__ import annotations

from .client import WorkshopAPIClient
from .exceptions import (
    FrameParseSkip,
    NoResponseBody,
    ResponseFormatError,
    ResultExtractionMiss,
    StreamCancelled,
    StreamTransportFailure,
    TransportFailure,
    WorkshopClientError,
)
from .models import (
    ENDPOINTS,
    WORKSHOPS_PATH,
    ClientConfig,
    CompletionEndpoint,
    EndpointName,
)
from .streaming import CancellationToken, StreamingCompletionConsumer

__all__ = [
    "ENDPOINTS",
    "WORKSHOPS_PATH",
    # Streaming
    "CancellationToken",
    "ClientConfig",
    "CompletionEndpoint",
    "EndpointName",
    # Exceptions
    "FrameParseSkip",
    "NoResponseBody",
    "ResponseFormatError",
    "ResultExtractionMiss",
    "StreamCancelled",
    "StreamTransportFailure",
    "StreamingCompletionConsumer",
    "TransportFailure",
    # Client
    "WorkshopAPIClient",
    "WorkshopClientError",
]
