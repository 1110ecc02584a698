"""
Timing utilities for model fan-out runs.

Provides timers and helpers for capturing:
- TTFT (Time to First Token)
- Total latency
- Token throughput (tokens/sec)

Token counts for streamed text are estimated, not tokenized: one token per
four UTF-8 bytes, rounded up. Throughput numbers for streaming runs are
defined relative to this estimate.
"""

import math
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

Clock = Callable[[], float]

BYTES_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Estimate the token count of `text` as ceil(utf-8 bytes / 4)."""
    if not text:
        return 0
    return math.ceil(len(text.encode("utf-8")) / BYTES_PER_TOKEN)


def tokens_per_second(tokens: int, seconds: float) -> float:
    """Throughput, or 0.0 when no time has elapsed."""
    if seconds <= 0 or tokens <= 0:
        return 0.0
    return tokens / seconds


class Timer:
    """Simple timer for manual timing control."""

    def __init__(self, name: str = "timer", clock: Clock = time.perf_counter):
        self.name = name
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.ttft: Optional[float] = None
        self._clock = clock
        self._running = False

    def start(self) -> "Timer":
        """Start the timer."""
        self.start_time = self._clock()
        self._running = True
        return self

    def stop(self) -> "Timer":
        """Stop the timer."""
        self.end_time = self._clock()
        self._running = False
        return self

    @property
    def elapsed_seconds(self) -> float:
        end = self.end_time if not self._running else self._clock()
        return end - self.start_time

    @property
    def elapsed_ms(self) -> float:
        """Elapsed time in milliseconds."""
        return self.elapsed_seconds * 1000

    @property
    def ttft_ms(self) -> Optional[float]:
        """Time to first token in milliseconds."""
        if self.ttft is None:
            return None
        return (self.ttft - self.start_time) * 1000


@asynccontextmanager
async def async_timed(name: str = "operation", clock: Clock = time.perf_counter) -> AsyncIterator[Timer]:
    """Async context manager for timing async operations.

    Usage:
        async with async_timed("chat_completion") as timer:
            response = await client.complete(...)
        print(f"Elapsed: {timer.elapsed_ms}ms")
    """
    timer = Timer(name, clock=clock).start()
    try:
        yield timer
    finally:
        timer.stop()


class StreamingTimer(Timer):
    """Timer specialized for streaming responses.

    Tracks chunk arrival times and a running token estimate.
    """

    def __init__(self, name: str = "streaming", clock: Clock = time.perf_counter):
        super().__init__(name, clock=clock)
        self.token_times: list[float] = []
        self.chunk_count: int = 0
        self.total_tokens: int = 0

    def record_chunk(self, token_count: int = 1) -> "StreamingTimer":
        """Record a chunk arrival carrying `token_count` tokens."""
        current_time = self._clock()
        if self.ttft is None:
            self.ttft = current_time
        self.token_times.append(current_time)
        self.chunk_count += 1
        self.total_tokens += token_count
        return self

    @property
    def tokens_per_second(self) -> float:
        """Running throughput over the elapsed time so far."""
        return tokens_per_second(self.total_tokens, self.elapsed_seconds)

    @property
    def inter_token_latencies_ms(self) -> list[float]:
        """List of inter-chunk latencies in milliseconds."""
        if len(self.token_times) < 2:
            return []
        latencies = []
        prev = self.token_times[0]
        for t in self.token_times[1:]:
            latencies.append((t - prev) * 1000)
            prev = t
        return latencies

    @property
    def avg_inter_token_latency_ms(self) -> float:
        """Average inter-chunk latency in milliseconds."""
        latencies = self.inter_token_latencies_ms
        if not latencies:
            return 0.0
        return sum(latencies) / len(latencies)
