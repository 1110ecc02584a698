"""
LLM Fan-out Lab - concurrent multi-model testing against OpenAI-compatible endpoints.

Sends one prompt (or an A/B pair) to many models at once and reports latency,
throughput and token usage per model.

Key modules:
- streaming: SSE parsing and streamed completions
- resources: connection pool, result cache and run context
- client: aiohttp inference endpoint client
- harness: orchestration, result records and reporting
- instrumentation: timing utilities and tracing integration
- scenarios: default models and sample prompts
"""

__version__ = "0.1.0"

from . import errors
from . import config
from . import instrumentation
from . import streaming
from . import resources
from . import client
from . import harness
from . import scenarios

__all__ = [
    "errors",
    "config",
    "instrumentation",
    "streaming",
    "resources",
    "client",
    "harness",
    "scenarios",
]
