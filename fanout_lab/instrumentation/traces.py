"""
Tracing utilities for model fan-out runs.

Provides OpenTelemetry spans around each unit of work and optional Langfuse
generation recording for completed LLM calls.

The tracer owns its own TracerProvider instead of installing a global one,
so each run (and each test) gets an isolated pipeline.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from langfuse import Langfuse
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.trace import Status, StatusCode

logger = logging.getLogger(__name__)


class TracingConfig:
    """Configuration for tracing setup."""

    def __init__(
        self,
        service_name: str = "llm-fanout-lab",
        enable_console_export: bool = False,
        exporter: Optional[SpanExporter] = None,
        enable_langfuse: bool = False,
        langfuse_public_key: Optional[str] = None,
        langfuse_secret_key: Optional[str] = None,
        langfuse_host: Optional[str] = None,
    ):
        self.service_name = service_name
        self.enable_console_export = enable_console_export
        self.exporter = exporter
        self.enable_langfuse = enable_langfuse
        self.langfuse_public_key = langfuse_public_key or os.getenv("LANGFUSE_PUBLIC_KEY")
        self.langfuse_secret_key = langfuse_secret_key or os.getenv("LANGFUSE_SECRET_KEY")
        self.langfuse_host = langfuse_host or os.getenv("LANGFUSE_HOST", "https://cloud.langfuse.com")

    @classmethod
    def from_env(cls) -> "TracingConfig":
        """Enable Langfuse when both keys are present in the environment."""
        return cls(
            enable_console_export=os.getenv("FANOUT_TRACE_CONSOLE", "").lower() in ("1", "true", "yes"),
            enable_langfuse=bool(os.getenv("LANGFUSE_PUBLIC_KEY") and os.getenv("LANGFUSE_SECRET_KEY")),
        )


class Tracer:
    """Unified tracer over OpenTelemetry spans and Langfuse generations."""

    def __init__(self, config: Optional[TracingConfig] = None):
        self.config = config or TracingConfig()
        self._provider: Optional[TracerProvider] = None
        self._otel_tracer = None
        self._langfuse_client: Optional[Langfuse] = None
        self._initialized = False

    def initialize(self) -> "Tracer":
        """Initialize tracing backends."""
        if self._initialized:
            return self

        resource = Resource.create({"service.name": self.config.service_name})
        self._provider = TracerProvider(resource=resource)
        if self.config.enable_console_export:
            self._provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
        if self.config.exporter is not None:
            self._provider.add_span_processor(SimpleSpanProcessor(self.config.exporter))
        self._otel_tracer = self._provider.get_tracer(self.config.service_name)

        if self.config.enable_langfuse:
            if self.config.langfuse_public_key and self.config.langfuse_secret_key:
                self._langfuse_client = Langfuse(
                    public_key=self.config.langfuse_public_key,
                    secret_key=self.config.langfuse_secret_key,
                    host=self.config.langfuse_host,
                )
            else:
                logger.warning("Langfuse enabled but LANGFUSE_PUBLIC_KEY/LANGFUSE_SECRET_KEY are not set")

        self._initialized = True
        return self

    @property
    def langfuse_enabled(self) -> bool:
        return self._langfuse_client is not None

    def shutdown(self) -> None:
        """Flush and shut down tracing backends."""
        if self._provider is not None:
            self._provider.shutdown()
            self._provider = None
            self._otel_tracer = None
        if self._langfuse_client is not None:
            self._langfuse_client.flush()
            self._langfuse_client = None
        self._initialized = False

    @asynccontextmanager
    async def async_span(
        self,
        name: str,
        attributes: Optional[dict] = None,
    ) -> AsyncIterator[Any]:
        """Create a traced span for async operations.

        Usage:
            async with tracer.async_span("fanout.unit", {"llm.model": model}) as span:
                # do async work
        """
        if not self._initialized:
            self.initialize()

        span_obj = self._otel_tracer.start_span(name)
        for key, value in (attributes or {}).items():
            if value is not None:
                span_obj.set_attribute(key, value)

        try:
            yield span_obj
        except Exception as e:
            span_obj.set_status(Status(StatusCode.ERROR, str(e)))
            span_obj.record_exception(e)
            raise
        finally:
            span_obj.end()

    def record_generation(
        self,
        name: str,
        model: str,
        prompt: str,
        output: Optional[str],
        usage: Optional[dict] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        """Record a completed LLM call to Langfuse, if configured.

        Recording failures are logged and never raised.
        """
        if self._langfuse_client is None:
            return
        try:
            with self._langfuse_client.start_as_current_observation(
                name=name,
                as_type="generation",
                model=model,
            ) as obs:
                obs.update(
                    input={"prompt": prompt[:500]},
                    output=output[:1000] if output else None,
                    usage_details=usage,
                    metadata=metadata or {},
                )
        except Exception as e:
            logger.warning("Error recording Langfuse generation %s: %s", name, e)
