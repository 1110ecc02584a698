"""
Streaming completion consumer.

`CompletionStream` turns an async iterable of raw body chunks into an
ordered, finite sequence of `StreamUpdate` values. It is iterated once:

    stream = CompletionStream(chunks)
    async for update in stream:
        print(update.content, update.tokens_per_second)
    print(stream.result.full_response)

Transport errors never escape the iteration. They end it and are reported
through `stream.result` with ``success=False``.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Callable, Optional, Union

from ..errors import RequestTimeoutError
from ..instrumentation.timing import StreamingTimer, estimate_tokens, tokens_per_second
from .parser import Content, Done, Frame, SSEDecoder, Skip

logger = logging.getLogger(__name__)

Chunk = Union[bytes, str]


@dataclass(frozen=True)
class StreamUpdate:
    """One content fragment plus running throughput stats."""

    content: str
    tokens_per_second: float
    total_tokens: int


@dataclass(frozen=True)
class StreamingResult:
    """Final outcome of a streamed completion."""

    success: bool
    full_response: str
    duration_ms: float
    tokens_per_second: float
    total_tokens: int
    error: Optional[str] = None
    ttft_ms: Optional[float] = None
    chunk_count: int = 0
    avg_inter_chunk_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "full_response": self.full_response,
            "duration_ms": self.duration_ms,
            "tokens_per_second": self.tokens_per_second,
            "total_tokens": self.total_tokens,
            "error": self.error,
            "ttft_ms": self.ttft_ms,
            "chunk_count": self.chunk_count,
            "avg_inter_chunk_ms": self.avg_inter_chunk_ms,
        }


class CompletionStream:
    """Async iterator of `StreamUpdate` over an SSE chat-completion body."""

    def __init__(
        self,
        source: AsyncIterable[Chunk],
        clock: Callable[[], float] = time.perf_counter,
        name: str = "completion_stream",
    ):
        self._source = source
        self._timer = StreamingTimer(name, clock=clock)
        self._decoder = SSEDecoder()
        self._parts: list[str] = []
        self._result: Optional[StreamingResult] = None
        self._started = False
        self.skipped_frames = 0

    @property
    def result(self) -> Optional[StreamingResult]:
        """Final result, available once iteration has finished."""
        return self._result

    def __aiter__(self) -> AsyncIterator[StreamUpdate]:
        if self._started:
            raise RuntimeError("CompletionStream can only be iterated once")
        self._started = True
        return self._run()

    async def collect(
        self,
        on_update: Optional[Callable[[StreamUpdate], Any]] = None,
    ) -> StreamingResult:
        """Drain the stream, calling `on_update` for each fragment in order."""
        async for update in self:
            if on_update is not None:
                on_update(update)
        return self._result

    async def _run(self) -> AsyncIterator[StreamUpdate]:
        self._timer.start()
        try:
            try:
                async for chunk in self._source:
                    for frame in self._decoder.feed(chunk):
                        if isinstance(frame, Done):
                            self._finish()
                            return
                        update = self._consume(frame)
                        if update is not None:
                            yield update
                for frame in self._decoder.flush():
                    if isinstance(frame, Done):
                        break
                    update = self._consume(frame)
                    if update is not None:
                        yield update
            except Exception as e:
                self._fail(e)
                return
            self._finish()
        finally:
            await self._close_source()

    def _consume(self, frame: Frame) -> Optional[StreamUpdate]:
        if isinstance(frame, Skip):
            if frame.error is not None:
                self.skipped_frames += 1
                logger.debug("Skipping SSE frame: %s", frame.error)
            return None

        assert isinstance(frame, Content)
        self._parts.append(frame.fragment)
        self._timer.record_chunk(estimate_tokens(frame.fragment))
        return StreamUpdate(
            content=frame.fragment,
            tokens_per_second=self._timer.tokens_per_second,
            total_tokens=self._timer.total_tokens,
        )

    def _finish(self) -> None:
        self._timer.stop()
        self._result = StreamingResult(
            success=True,
            full_response="".join(self._parts),
            duration_ms=self._timer.elapsed_ms,
            tokens_per_second=tokens_per_second(self._timer.total_tokens, self._timer.elapsed_seconds),
            total_tokens=self._timer.total_tokens,
            ttft_ms=self._timer.ttft_ms,
            chunk_count=self._timer.chunk_count,
            avg_inter_chunk_ms=self._timer.avg_inter_token_latency_ms,
        )

    def _fail(self, error: Exception) -> None:
        self._timer.stop()
        duration_ms = self._timer.elapsed_ms
        if isinstance(error, RequestTimeoutError):
            duration_ms = error.timeout_seconds * 1000
        self._result = StreamingResult(
            success=False,
            full_response="",
            duration_ms=duration_ms,
            tokens_per_second=0.0,
            total_tokens=0,
            error=str(error) or error.__class__.__name__,
        )

    async def _close_source(self) -> None:
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()
