"""
Streaming functionality for completion endpoints.

This package contains:
- SSE line decoding across chunk boundaries
- Chunk accumulation into the full message
- JSON object extraction from finished text
- The single-pass stream consumer with cancellation
"""

from __future__ import annotations

from .consumer import CancellationToken, StreamingCompletionConsumer
from .models import StreamFrame, StreamResult, StreamStats
from .parser import (
    ChunkAccumulator,
    SSELineDecoder,
    extract_json_object,
    find_json_object,
    parse_frame,
)

__all__ = [
    "CancellationToken",
    "ChunkAccumulator",
    "SSELineDecoder",
    "StreamFrame",
    "StreamResult",
    "StreamStats",
    "StreamingCompletionConsumer",
    "extract_json_object",
    "find_json_object",
    "parse_frame",
]
