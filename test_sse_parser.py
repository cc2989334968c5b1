#!/usr/bin/env python3
"""
Tests for SSE line decoding, frame parsing and JSON object extraction.
"""

import json

import pytest

from facilitator.llm.exceptions import FrameParseSkip, ResultExtractionMiss
from facilitator.llm.streaming.models import SSEFrameType
from facilitator.llm.streaming.parser import (
    ChunkAccumulator,
    SSELineDecoder,
    extract_json_object,
    find_json_object,
    parse_frame,
)


def sse_body(*deltas: str, done: bool = True) -> bytes:
    """Encode content deltas the way the backend writes them."""
    parts = [
        f"data: {json.dumps({'content': d}, ensure_ascii=False)}\n\n"
        for d in deltas
    ]
    if done:
        parts.append("data: [DONE]\n\n")
    return "".join(parts).encode("utf-8")


def split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


def accumulate(chunks: list[bytes]) -> ChunkAccumulator:
    accumulator = ChunkAccumulator()
    for chunk in chunks:
        accumulator.feed(chunk)
    accumulator.finish()
    return accumulator


class TestParseFrame:
    """Test single-line frame parsing."""

    def test_content_frame(self):
        frame = parse_frame('data: {"content": "Hel"}')
        assert frame is not None
        assert frame.frame_type == SSEFrameType.CONTENT
        assert frame.content == "Hel"

    def test_done_sentinel(self):
        frame = parse_frame("data: [DONE]")
        assert frame is not None
        assert frame.frame_type == SSEFrameType.DONE
        assert frame.content is None

    def test_non_data_lines_are_ignored(self):
        assert parse_frame("") is None
        assert parse_frame("event: message") is None
        assert parse_frame(": keep-alive") is None
        assert parse_frame("data:{\"content\": \"x\"}") is None

    def test_malformed_json_raises_skip(self):
        with pytest.raises(FrameParseSkip) as exc_info:
            parse_frame("data: {not json")
        assert exc_info.value.raw_data == "{not json"

    def test_error_frame(self):
        frame = parse_frame('data: {"error": "Failed to evaluate topic"}')
        assert frame is not None
        assert frame.frame_type == SSEFrameType.ERROR
        assert frame.error == "Failed to evaluate topic"

    def test_object_without_content_is_empty(self):
        frame = parse_frame('data: {"role": "assistant"}')
        assert frame is not None
        assert frame.frame_type == SSEFrameType.EMPTY

    def test_non_object_payload_is_empty(self):
        frame = parse_frame("data: 42")
        assert frame is not None
        assert frame.frame_type == SSEFrameType.EMPTY


class TestSSELineDecoder:
    """Test incremental line splitting across chunk boundaries."""

    def test_buffers_partial_line(self):
        decoder = SSELineDecoder()
        assert decoder.feed(b'data: {"con') == []
        assert decoder.buffer == 'data: {"con'
        assert decoder.feed(b'tent": "a"}\n') == ['data: {"content": "a"}']
        assert decoder.buffer == ""

    def test_strips_carriage_return(self):
        decoder = SSELineDecoder()
        assert decoder.feed(b"data: [DONE]\r\n\r\n") == ["data: [DONE]", ""]

    def test_multibyte_character_split_across_chunks(self):
        encoded = "data: 问题\n".encode()
        decoder = SSELineDecoder()
        lines = []
        for byte in encoded:
            lines.extend(decoder.feed(bytes([byte])))
        assert lines == ["data: 问题"]

    def test_close_returns_residual(self):
        decoder = SSELineDecoder()
        decoder.feed(b'data: {"content": "tail"}')
        assert decoder.close() == 'data: {"content": "tail"}'
        assert decoder.buffer == ""


class TestChunkAccumulator:
    """Test accumulation of content deltas."""

    def test_concatenates_deltas_in_order(self):
        body = sse_body("Hel", "lo")
        accumulator = accumulate([body])
        assert accumulator.text == "Hello"
        assert accumulator.state.content_frames == 2

    def test_chunk_boundaries_do_not_change_result(self):
        body = sse_body("话题", "评估：", '{"totalScore": 8}', " 完成")
        expected = "话题评估：{\"totalScore\": 8} 完成"

        for size in (1, 2, 3, 5, 7, 64, len(body)):
            accumulator = accumulate(split_every(body, size))
            assert accumulator.text == expected, f"chunk size {size}"

    def test_malformed_frame_is_skipped(self):
        body = (
            b'data: {"content": "A"}\n\n'
            b"data: {not json\n\n"
            b'data: {"content": "B"}\n\n'
            b"data: [DONE]\n\n"
        )
        accumulator = ChunkAccumulator()
        accumulator.feed(body)
        stats = accumulator.finish()
        assert accumulator.text == "AB"
        assert stats.skipped_frames == 1
        assert stats.content_frames == 2

    def test_non_data_lines_do_not_change_text(self):
        body = (
            b": keep-alive\n\n"
            b"event: message\n"
            b'data: {"content": "x"}\n\n'
            b"id: 7\n\n"
        )
        accumulator = ChunkAccumulator()
        accumulator.feed(body)
        stats = accumulator.finish()
        assert accumulator.text == "x"
        assert stats.ignored_lines > 0

    def test_unterminated_trailing_line_is_discarded(self):
        body = b'data: {"content": "A"}\n\ndata: {"content": "B"}'
        accumulator = accumulate([body])
        assert accumulator.text == "A"

    def test_feed_returns_new_deltas(self):
        accumulator = ChunkAccumulator()
        assert accumulator.feed(b'data: {"content": "a"}\n') == ["a"]
        assert accumulator.feed(b'data: {"content": "b"}\ndata: {"con') == ["b"]
        assert accumulator.feed(b'tent": "c"}\n') == ["c"]

    def test_stats(self):
        body = sse_body("abc")
        accumulator = ChunkAccumulator()
        accumulator.feed(body)
        stats = accumulator.finish()
        assert stats.bytes_received == len(body)
        assert stats.characters == 3
        assert stats.frames_total == 2  # content + [DONE]


class TestExtractJsonObject:
    """Test extraction of the structured result from finished text."""

    def test_extracts_object_surrounded_by_noise(self):
        text = 'Here is the result:\n```json\n{"totalScore": 7, "suggestions": ["a"]}\n```'
        assert extract_json_object(text) == {"totalScore": 7, "suggestions": ["a"]}

    def test_nested_braces_use_first_and_last(self):
        text = 'x {"a": {"b": 1}} y'
        assert extract_json_object(text) == {"a": {"b": 1}}

    def test_no_brace_is_a_miss(self):
        with pytest.raises(ResultExtractionMiss):
            extract_json_object("No structured answer here")

    def test_closing_before_opening_is_a_miss(self):
        with pytest.raises(ResultExtractionMiss):
            extract_json_object("} then {")

    def test_invalid_span_is_a_miss(self):
        with pytest.raises(ResultExtractionMiss) as exc_info:
            extract_json_object("{totalScore: 7}")
        assert exc_info.value.text == "{totalScore: 7}"

    def test_two_objects_make_invalid_span(self):
        assert find_json_object('{"a": 1} and {"b": 2}') is None

    def test_extraction_is_repeatable(self):
        text = 'prefix {"warning": "w"} suffix'
        assert extract_json_object(text) == extract_json_object(text)

    def test_find_returns_none_on_miss(self):
        assert find_json_object("") is None
        assert find_json_object('{"ok": true}') == {"ok": True}
