"""
SSE line decoding, frame parsing and chunk accumulation for completion streams.

The backend writes one ``data: <json>`` line per content delta followed by a
blank line, and finishes with ``data: [DONE]``. Chunk boundaries from the
transport can fall anywhere, including inside a multi-byte character.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any

from ..exceptions import FrameParseSkip, ResultExtractionMiss
from .models import AccumulatorState, SSEFrameType, StreamFrame, StreamStats

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class SSELineDecoder:
    """
    Incremental bytes-to-lines decoder.

    Keeps the partial code point state of a UTF-8 incremental decoder and a
    line buffer holding at most one unterminated line between calls.
    """

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    @property
    def buffer(self) -> str:
        """The residual partial line carried into the next pass."""
        return self._buffer

    def feed(self, chunk: bytes) -> list[str]:
        """Decode a chunk and return the complete lines it finishes."""
        text = self._buffer + self._decoder.decode(chunk)
        lines = text.split("\n")
        self._buffer = lines.pop()
        return [line.removesuffix("\r") for line in lines]

    def close(self) -> str:
        """Flush the decoder and hand back whatever partial line remains."""
        residual = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        return residual


def parse_frame(line: str) -> StreamFrame | None:
    """
    Parse one complete line into a frame.

    Returns None for lines that are not ``data:`` fields (keep-alive blank
    lines, ``event:``, ``id:``, comments). Raises FrameParseSkip when the
    payload is not valid JSON.
    """
    if not line.startswith(DATA_PREFIX):
        return None

    data_content = line[len(DATA_PREFIX):]

    if data_content == DONE_SENTINEL:
        return StreamFrame(frame_type=SSEFrameType.DONE, raw_data=data_content)

    try:
        parsed = json.loads(data_content)
    except json.JSONDecodeError as e:
        raise FrameParseSkip(
            f"JSON decode error: {e}", raw_data=data_content
        ) from e

    if not isinstance(parsed, dict):
        return StreamFrame(frame_type=SSEFrameType.EMPTY, raw_data=data_content)

    content = parsed.get("content")
    if isinstance(content, str) and content:
        return StreamFrame(
            frame_type=SSEFrameType.CONTENT,
            raw_data=data_content,
            data=parsed,
            content=content,
        )

    if error := parsed.get("error"):
        return StreamFrame(
            frame_type=SSEFrameType.ERROR,
            raw_data=data_content,
            data=parsed,
            error=str(error),
        )

    return StreamFrame(
        frame_type=SSEFrameType.EMPTY, raw_data=data_content, data=parsed
    )


class ChunkAccumulator:
    """
    Turns raw byte chunks into accumulated text.

    One instance serves exactly one stream; the accumulated text only ever
    grows while it is alive.
    """

    def __init__(self, encoding: str = "utf-8"):
        self.state = AccumulatorState()
        self._lines = SSELineDecoder(encoding)

    @property
    def text(self) -> str:
        return self.state.content_buffer

    def feed(self, chunk: bytes) -> list[str]:
        """
        Process one transport chunk.

        Returns the content deltas appended by this chunk, in arrival order.
        """
        self.state.bytes_received += len(chunk)
        self.state.update_timing()

        deltas: list[str] = []
        for line in self._lines.feed(chunk):
            frame = self._parse_line(line)
            if frame is None:
                continue
            if frame.frame_type == SSEFrameType.CONTENT and frame.content:
                self.state.content_buffer += frame.content
                self.state.content_frames += 1
                deltas.append(frame.content)
            elif frame.frame_type == SSEFrameType.ERROR:
                logger.warning(f"Stream reported an error frame: {frame.error}")
        return deltas

    def finish(self) -> StreamStats:
        """Close the line decoder and produce the stream statistics."""
        residual = self._lines.close()
        if residual:
            logger.debug(
                f"Discarding unterminated trailing line ({len(residual)} chars)"
            )
        return StreamStats(
            frames_total=self.state.frames_total,
            content_frames=self.state.content_frames,
            skipped_frames=self.state.skipped_frames,
            ignored_lines=self.state.ignored_lines,
            bytes_received=self.state.bytes_received,
            total_duration=self.state.streaming_duration,
            characters=len(self.state.content_buffer),
        )

    def _parse_line(self, line: str) -> StreamFrame | None:
        try:
            frame = parse_frame(line)
        except FrameParseSkip as e:
            self.state.frames_total += 1
            self.state.skipped_frames += 1
            logger.debug(f"Skipping malformed frame: {e}")
            return None

        if frame is None:
            self.state.ignored_lines += 1
        else:
            self.state.frames_total += 1
        return frame


def extract_json_object(text: str) -> dict[str, Any]:
    """
    Parse the span from the first ``{`` to the last ``}`` of ``text``.

    Pure function of its input. Raises ResultExtractionMiss when there is no
    such span, the span is not valid JSON, or it is not a JSON object.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise ResultExtractionMiss("No JSON object span in text", text=text)

    try:
        parsed = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise ResultExtractionMiss(
            f"JSON object span does not parse: {e}", text=text
        ) from e

    if not isinstance(parsed, dict):
        raise ResultExtractionMiss("JSON span is not an object", text=text)
    return parsed


def find_json_object(text: str) -> dict[str, Any] | None:
    """Same as extract_json_object but returns None on a miss."""
    try:
        return extract_json_object(text)
    except ResultExtractionMiss:
        return None
