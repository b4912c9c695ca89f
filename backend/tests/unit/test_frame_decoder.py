"""
Unit tests for incremental frame decoding.

WHAT: Test SSE and NDJSON framing under arbitrary chunk splits
WHY: Chunk boundaries fall anywhere on the wire
HOW: Feed bodies in pieces and compare the frames produced
"""

import pytest

from quickchat.llm.frame_decoder import FrameDecoder, DONE_SENTINEL, looks_like_sse


def decode_all(chunks):
    decoder = FrameDecoder()
    frames = []
    for chunk in chunks:
        frames.extend(decoder.feed(chunk))
    frames.extend(decoder.flush())
    return frames


def split_every(data: bytes, size: int):
    return [data[i:i + size] for i in range(0, len(data), size)]


SSE_BODY = (
    'data: {"choices":[{"delta":{"content":"Hel"}}]}\n\n'
    'data: {"choices":[{"delta":{"content":"lo"}}]}\n\n'
    "data: [DONE]\n\n"
).encode("utf-8")


@pytest.mark.unit
class TestSSEFraming:
    """Test SSE block extraction."""

    def test_whole_body(self):
        frames = decode_all([SSE_BODY])
        assert frames == [
            '{"choices":[{"delta":{"content":"Hel"}}]}',
            '{"choices":[{"delta":{"content":"lo"}}]}',
            DONE_SENTINEL,
        ]

    @pytest.mark.parametrize("size", [1, 2, 3, 7, 16])
    def test_any_chunk_split_gives_same_frames(self, size):
        assert decode_all(split_every(SSE_BODY, size)) == decode_all([SSE_BODY])

    def test_event_and_comment_lines_ignored(self):
        body = b'event: content_block_delta\ndata: {"a":1}\n\n: keep-alive\n\n'
        assert decode_all([body]) == ['{"a":1}']

    def test_multiple_data_lines_joined(self):
        body = b"data: {\"a\":\ndata: 1}\n\n"
        assert decode_all([body]) == ['{"a":\n1}']

    def test_crlf_line_endings(self):
        body = b'data: {"a":1}\r\n\r\ndata: {"b":2}\r\n\r\n'
        assert decode_all([body]) == ['{"a":1}', '{"b":2}']

    def test_crlf_split_across_chunks(self):
        assert decode_all([b'data: {"a":1}\r', b"\n\r", b"\n"]) == ['{"a":1}']

    def test_trailing_frame_without_terminator_flushed(self):
        decoder = FrameDecoder()
        assert decoder.feed(b'data: {"a":1}') == []
        assert decoder.flush() == ['{"a":1}']

    def test_nothing_after_done(self):
        decoder = FrameDecoder()
        frames = decoder.feed(b'data: [DONE]\n\ndata: {"late":true}\n\n')
        assert frames == [DONE_SENTINEL]
        assert decoder.done is True
        assert decoder.feed(b'data: {"later":true}\n\n') == []
        assert decoder.flush() == []

    def test_sse_detection_is_sticky(self):
        decoder = FrameDecoder()
        decoder.feed(b'data: {"a":1}\n\n')
        assert decoder.is_sse is True
        # a bare JSON line is not a frame once the stream is SSE
        assert decoder.feed(b'{"b":2}\n') == []


@pytest.mark.unit
class TestNDJSONFraming:
    """Test newline-delimited JSON extraction."""

    def test_lines(self):
        body = b'{"a":1}\n{"b":2}\n'
        assert decode_all([body]) == ['{"a":1}', '{"b":2}']

    def test_blank_and_non_json_lines_skipped(self):
        body = b'\n  \nnot json\n{"a":1}\n'
        assert decode_all([body]) == ['{"a":1}']

    def test_done_ends_stream(self):
        decoder = FrameDecoder()
        frames = decoder.feed(b'{"a":1}\n[DONE]\n{"b":2}\n')
        assert frames == ['{"a":1}', DONE_SENTINEL]
        assert decoder.done is True

    def test_split_line(self):
        assert decode_all([b'{"a":', b"1}\n"]) == ['{"a":1}']

    def test_unterminated_last_line_flushed(self):
        assert decode_all([b'{"a":1}\n{"b":2}']) == ['{"a":1}', '{"b":2}']

    def test_data_colon_inside_answer_text_stays_ndjson(self):
        lines = [
            '{"choices":[{"delta":{"content":"Set the metadata: field"}}]}',
            '{"choices":[{"delta":{"content":" or embed data:image/png"}}]}',
            '{"choices":[{"delta":{"content":" here."}}]}',
        ]
        decoder = FrameDecoder()
        frames = decoder.feed(("\n".join(lines) + "\n").encode()) + decoder.flush()

        assert frames == lines
        assert decoder.is_sse is False


@pytest.mark.unit
class TestUTF8:
    """Test multi-byte characters split across chunks."""

    def test_split_multibyte_character(self):
        text = 'data: {"t":"héllo 世界 👋"}\n\n'
        data = text.encode("utf-8")
        expected = decode_all([data])
        assert expected == ['{"t":"héllo 世界 👋"}']
        for size in (1, 2, 3, 5):
            assert decode_all(split_every(data, size)) == expected

    def test_str_chunks_accepted(self):
        assert decode_all(['data: {"a":"ü"}\n\n']) == ['{"a":"ü"}']


@pytest.mark.unit
class TestWholeBody:
    """Test whole-document parsing of the received body."""

    def test_single_json_document(self):
        decoder = FrameDecoder()
        decoder.feed(b'{"choices":[{"message":\n{"content":"Hi"}}]}')
        decoder.flush()
        assert decoder.parse_whole_body() == {"choices": [{"message": {"content": "Hi"}}]}

    def test_json_array_body(self):
        decoder = FrameDecoder()
        decoder.feed(b'[{"a":1},\n{"a":2}]')
        decoder.flush()
        assert decoder.parse_whole_body() == [{"a": 1}, {"a": 2}]

    def test_not_json(self):
        decoder = FrameDecoder()
        decoder.feed(b"<html>oops</html>")
        decoder.flush()
        assert decoder.parse_whole_body() is None
        assert decoder.transcript_excerpt(6) == "<html>"

    def test_empty_body(self):
        decoder = FrameDecoder()
        decoder.flush()
        assert decoder.parse_whole_body() is None


@pytest.mark.unit
def test_looks_like_sse():
    assert looks_like_sse("event: x\ndata: 1")
    assert not looks_like_sse('{"a":1}')
    assert looks_like_sse('data: {"a":1}')
    assert not looks_like_sse('{"t":"metadata: x"}\n{"t":"data:image/png"}')
