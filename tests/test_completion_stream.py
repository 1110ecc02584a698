"""
Tests for CompletionStream.
"""

import pytest

from fanout_lab.errors import NetworkError, RequestTimeoutError
from fanout_lab.streaming import CompletionStream

from .conftest import FakeClock, iter_chunks, sse_body


class TestCompletionStream:
    """Ordered updates and the final result."""

    async def test_split_chunk_then_done(self):
        stream = CompletionStream(
            iter_chunks(
                b'data: {"choices":[{"delta":{"content":"H',
                b'i"}}]}\n\n',
                b"data: [DONE]\n\n",
            )
        )
        updates = [update async for update in stream]

        assert [u.content for u in updates] == ["Hi"]
        assert stream.result.success is True
        assert stream.result.full_response == "Hi"
        assert stream.result.total_tokens == 1

    async def test_updates_arrive_in_order(self):
        stream = CompletionStream(iter_chunks(sse_body("one ", "two ", "three")))
        contents = [update.content async for update in stream]
        assert contents == ["one ", "two ", "three"]
        assert stream.result.full_response == "one two three"

    async def test_running_token_totals(self):
        stream = CompletionStream(iter_chunks(sse_body("abcd", "abcdefgh")))
        totals = [update.total_tokens async for update in stream]
        assert totals == [1, 3]

    async def test_frames_after_done_are_ignored(self):
        body = sse_body("kept") + sse_body("dropped", done=False)
        stream = CompletionStream(iter_chunks(body))
        contents = [update.content async for update in stream]
        assert contents == ["kept"]

    async def test_end_of_body_without_done_succeeds(self):
        stream = CompletionStream(iter_chunks(sse_body("partial", done=False)))
        result = await stream.collect()
        assert result.success is True
        assert result.full_response == "partial"

    async def test_malformed_frames_are_counted_and_skipped(self):
        stream = CompletionStream(iter_chunks(b"data: {oops\n\n", sse_body("fine")))
        result = await stream.collect()
        assert result.full_response == "fine"
        assert stream.skipped_frames == 1

    async def test_transport_error_ends_stream_with_failure(self):
        async def broken():
            yield sse_body("part", done=False)
            raise NetworkError("connection reset")

        stream = CompletionStream(broken())
        contents = [update.content async for update in stream]

        assert contents == ["part"]
        assert stream.result.success is False
        assert "connection reset" in stream.result.error
        assert stream.result.total_tokens == 0

    async def test_timeout_reports_configured_duration(self):
        async def slow():
            raise RequestTimeoutError(2.5)
            yield b""  # pragma: no cover

        result = await CompletionStream(slow()).collect()
        assert result.success is False
        assert result.duration_ms == 2500.0

    async def test_duration_and_throughput_use_clock(self):
        clock = FakeClock()

        async def timed_chunks():
            clock.advance(0.5)
            yield sse_body("abcdefgh", done=False)
            clock.advance(0.5)
            yield b"data: [DONE]\n\n"

        result = await CompletionStream(timed_chunks(), clock=clock).collect()
        assert result.duration_ms == pytest.approx(1000.0)
        assert result.tokens_per_second == pytest.approx(2.0)
        assert result.ttft_ms == pytest.approx(500.0)

    async def test_inter_chunk_latency_is_reported(self):
        clock = FakeClock()

        async def spaced_chunks():
            yield sse_body("a", done=False)
            clock.advance(0.2)
            yield sse_body("b", done=False)
            clock.advance(0.4)
            yield sse_body("c")

        result = await CompletionStream(spaced_chunks(), clock=clock).collect()
        assert result.chunk_count == 3
        assert result.avg_inter_chunk_ms == pytest.approx(300.0)
        assert result.to_dict()["avg_inter_chunk_ms"] == pytest.approx(300.0)

    async def test_collect_calls_on_update(self):
        seen = []
        await CompletionStream(iter_chunks(sse_body("a", "b"))).collect(seen.append)
        assert [u.content for u in seen] == ["a", "b"]

    async def test_single_iteration_only(self):
        stream = CompletionStream(iter_chunks(sse_body("x")))
        await stream.collect()
        with pytest.raises(RuntimeError):
            stream.__aiter__()
