"""
Tests for SSE line parsing and incremental decoding.
"""

from fanout_lab.errors import ProtocolError
from fanout_lab.streaming import Content, Done, Skip, SSEDecoder, parse_line


class TestParseLine:
    """Classification of single SSE lines."""

    def test_content_frame(self):
        frame = parse_line('data: {"choices":[{"delta":{"content":"Hi"}}]}')
        assert frame == Content("Hi")

    def test_data_without_space(self):
        frame = parse_line('data:{"choices":[{"delta":{"content":"x"}}]}')
        assert frame == Content("x")

    def test_done_sentinel(self):
        assert isinstance(parse_line("data: [DONE]"), Done)
        assert isinstance(parse_line("data: [DONE]\r"), Done)

    def test_comment_and_blank_lines_are_skipped(self):
        assert isinstance(parse_line(": keep-alive"), Skip)
        assert isinstance(parse_line(""), Skip)
        assert isinstance(parse_line("event: message"), Skip)

    def test_malformed_json_is_skipped_with_protocol_error(self):
        frame = parse_line("data: {not json")
        assert isinstance(frame, Skip)
        assert isinstance(frame.error, ProtocolError)

    def test_delta_without_content(self):
        frame = parse_line('data: {"choices":[{"delta":{"role":"assistant"}}]}')
        assert isinstance(frame, Skip)
        assert frame.error is None

    def test_empty_content_is_skipped(self):
        assert isinstance(parse_line('data: {"choices":[{"delta":{"content":""}}]}'), Skip)

    def test_missing_choices(self):
        assert isinstance(parse_line('data: {"usage":{"total_tokens":3}}'), Skip)
        assert isinstance(parse_line('data: {"choices":[]}'), Skip)


class TestSSEDecoder:
    """Reassembly of lines split across chunks."""

    def test_line_split_across_chunks(self):
        decoder = SSEDecoder()
        first = decoder.feed(b'data: {"choices":[{"delta":{"content":"H')
        assert first == []
        assert decoder.pending.startswith("data:")

        second = decoder.feed(b'i"}}]}\n\ndata: [DONE]\n\n')
        contents = [f for f in second if isinstance(f, Content)]
        assert contents == [Content("Hi")]
        assert any(isinstance(f, Done) for f in second)

    def test_multibyte_character_split_across_chunks(self):
        body = 'data: {"choices":[{"delta":{"content":"café"}}]}\n'.encode("utf-8")
        split = body.index("é".encode("utf-8")) + 1
        decoder = SSEDecoder()
        frames = decoder.feed(body[:split]) + decoder.feed(body[split:])
        assert frames == [Content("café")]

    def test_malformed_frame_does_not_stop_later_frames(self):
        decoder = SSEDecoder()
        frames = decoder.feed(
            b"data: {broken\n"
            b'data: {"choices":[{"delta":{"content":"ok"}}]}\n'
        )
        assert isinstance(frames[0], Skip)
        assert frames[1] == Content("ok")

    def test_crlf_line_endings(self):
        decoder = SSEDecoder()
        frames = decoder.feed(b'data: {"choices":[{"delta":{"content":"a"}}]}\r\n\r\ndata: [DONE]\r\n')
        assert Content("a") in frames
        assert any(isinstance(f, Done) for f in frames)

    def test_flush_emits_final_unterminated_line(self):
        decoder = SSEDecoder()
        assert decoder.feed(b'data: {"choices":[{"delta":{"content":"end"}}]}') == []
        assert decoder.flush() == [Content("end")]
        assert decoder.pending == ""

    def test_flush_on_empty_buffer(self):
        assert SSEDecoder().flush() == []
