"""
Tests for span creation and Langfuse recording.
"""

from unittest.mock import MagicMock, patch

import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from fanout_lab.instrumentation import Tracer, TracingConfig


class TestTracer:
    """OpenTelemetry spans on a private provider."""

    async def test_span_attributes(self):
        exporter = InMemorySpanExporter()
        tracer = Tracer(TracingConfig(exporter=exporter)).initialize()

        async with tracer.async_span("fanout.unit", {"llm.model": "m1", "skipped": None}) as span:
            span.set_attribute("fanout.status", "completed")
        tracer.shutdown()

        (finished,) = exporter.get_finished_spans()
        assert finished.name == "fanout.unit"
        assert finished.attributes["llm.model"] == "m1"
        assert "skipped" not in finished.attributes

    async def test_span_records_error(self):
        exporter = InMemorySpanExporter()
        tracer = Tracer(TracingConfig(exporter=exporter)).initialize()

        with pytest.raises(ValueError):
            async with tracer.async_span("boom"):
                raise ValueError("bad")

        (finished,) = exporter.get_finished_spans()
        assert finished.status.status_code is StatusCode.ERROR

    def test_langfuse_disabled_by_default(self):
        tracer = Tracer(TracingConfig()).initialize()
        assert tracer.langfuse_enabled is False
        tracer.record_generation("g", "m", "prompt", "output")

    def test_langfuse_failure_is_logged_not_raised(self):
        tracer = Tracer(TracingConfig()).initialize()
        client = MagicMock()
        client.start_as_current_observation.side_effect = RuntimeError("ingest down")
        tracer._langfuse_client = client

        with patch("fanout_lab.instrumentation.traces.logger") as log:
            tracer.record_generation("g", "m", "prompt", "output")

        log.warning.assert_called_once()
        assert "ingest down" in str(log.warning.call_args)
