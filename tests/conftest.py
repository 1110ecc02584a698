"""
Shared fixtures: a manual clock and fake endpoint clients.
"""

import asyncio
import json
from typing import Optional

import pytest

from fanout_lab.config import EndpointConfig
from fanout_lab.errors import NetworkError, RequestTimeoutError
from fanout_lab.streaming import CompletionStream


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def sse_body(*fragments: str, done: bool = True) -> bytes:
    """Encode content fragments as an OpenAI-style SSE body."""
    lines = []
    for fragment in fragments:
        lines.append('data: {"choices":[{"delta":{"content":%s}}]}\n\n' % json.dumps(fragment))
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


async def iter_chunks(*chunks):
    for chunk in chunks:
        await asyncio.sleep(0)
        yield chunk


class FakeEndpointClient:
    """Stands in for EndpointClient; behaviour is scripted per model."""

    def __init__(
        self,
        failing: Optional[set] = None,
        delay: float = 0.0,
        log: Optional[list] = None,
        fail_delay: Optional[float] = None,
        timing_out: Optional[set] = None,
        usage: Optional[dict] = None,
    ):
        self.failing = failing or set()
        self.timing_out = timing_out or set()
        self.delay = delay
        self.fail_delay = delay if fail_delay is None else fail_delay
        self.usage = usage or {"prompt_tokens": 5, "completion_tokens": 7, "total_tokens": 12}
        self.log = log if log is not None else []
        self.calls = []
        self.closed = False

    async def complete(self, model, messages, **params):
        self.log.append(("start", model, messages[-1]["content"]))
        self.calls.append(model)
        if model in self.timing_out:
            await asyncio.sleep(self.fail_delay)
            self.log.append(("end", model, messages[-1]["content"]))
            raise RequestTimeoutError(5.0)
        if model in self.failing:
            await asyncio.sleep(self.fail_delay)
            self.log.append(("end", model, messages[-1]["content"]))
            raise NetworkError(f"connection refused for {model}")
        await asyncio.sleep(self.delay)
        self.log.append(("end", model, messages[-1]["content"]))
        return {
            "choices": [{"message": {"role": "assistant", "content": f"reply from {model}"}}],
            "usage": dict(self.usage),
        }

    def stream_chat(self, model, messages, **params):
        self.calls.append(model)
        if model in self.failing:
            return CompletionStream(self._failing_body(model))
        return CompletionStream(iter_chunks(sse_body("Hel", "lo", " world")))

    async def _failing_body(self, model):
        raise NetworkError(f"stream reset for {model}")
        yield b""  # pragma: no cover

    async def aclose(self):
        self.closed = True


@pytest.fixture
def endpoint():
    return EndpointConfig(base_url="http://test.local/v1", api_key="sk-test", timeout_seconds=5.0)
