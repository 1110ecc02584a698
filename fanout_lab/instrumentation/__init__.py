"""
Instrumentation module for model fan-out runs.

Provides timing utilities, the token estimate, and tracing integrations.
"""

from .timing import (
    Timer,
    StreamingTimer,
    async_timed,
    estimate_tokens,
    tokens_per_second,
)

from .traces import (
    Tracer,
    TracingConfig,
)

__all__ = [
    # Timing
    "Timer",
    "StreamingTimer",
    "async_timed",
    "estimate_tokens",
    "tokens_per_second",
    # Tracing
    "Tracer",
    "TracingConfig",
]
