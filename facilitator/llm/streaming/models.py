"""
Streaming-specific dataclasses for SSE completion streams.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SSEFrameType(Enum):
    """Kinds of ``data:`` frames seen on a completion stream."""
    CONTENT = "content"
    DONE = "done"
    ERROR = "error"
    EMPTY = "empty"


@dataclass(frozen=True)
class StreamFrame:
    """One decoded ``data:`` line."""
    frame_type: SSEFrameType
    raw_data: str
    data: dict[str, Any] | None = None
    content: str | None = None
    error: str | None = None


@dataclass
class AccumulatorState:
    """Mutable state for one stream's accumulation."""
    content_buffer: str = ""
    frames_total: int = 0
    content_frames: int = 0
    skipped_frames: int = 0
    ignored_lines: int = 0
    bytes_received: int = 0
    started_at: float = field(default_factory=time.perf_counter)
    last_chunk_at: float | None = None

    def update_timing(self) -> None:
        self.last_chunk_at = time.perf_counter()

    @property
    def streaming_duration(self) -> float:
        if self.last_chunk_at is None:
            return 0.0
        return self.last_chunk_at - self.started_at


@dataclass(frozen=True)
class StreamStats:
    """Statistics for a finished stream."""
    frames_total: int
    content_frames: int
    skipped_frames: int
    ignored_lines: int
    bytes_received: int
    total_duration: float
    characters: int


@dataclass(frozen=True)
class StreamResult:
    """Accumulated text of a finished stream plus its statistics."""
    text: str
    stats: StreamStats
