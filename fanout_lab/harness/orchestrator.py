"""
Concurrent test orchestrator.

Fans one prompt (or an A/B pair of prompts) out to many models at once and
fans the results back in. Each (model, prompt) pair is a unit of work running
as its own asyncio task. Units own their `ModelResult`; any exception inside
a unit is converted into a failed result, so the barrier over all units
always resolves and every requested pair gets a result.
"""

import asyncio
import hashlib
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from ..config import EndpointConfig
from ..errors import RequestTimeoutError
from ..instrumentation.timing import async_timed, estimate_tokens, tokens_per_second
from ..resources.context import RunContext
from .results import (
    SLOT_A,
    SLOT_B,
    ModelResult,
    ResultPatch,
    RunSummary,
    UnitStatus,
    apply_patch,
    reasoning_tokens_from_usage,
    summarize,
)

logger = logging.getLogger(__name__)

ResultObserver = Callable[[ModelResult], Any]

MODE_TEST = "test"
MODE_COMPARISON = "comparison"


@dataclass
class RunReport:
    """Results of one orchestrated run."""

    mode: str
    results: list[ModelResult]
    summary: RunSummary
    campaign_started_at: datetime
    end_time: datetime
    prompts: dict
    streaming: bool = False
    metadata: dict = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        """Fraction of units that completed."""
        if not self.results:
            return 0.0
        return self.summary.success_count / len(self.results)

    def for_slot(self, slot: Optional[str]) -> list[ModelResult]:
        return [r for r in self.results if r.prompt_slot == slot]

    def to_dict(self) -> dict:
        """Convert report to dictionary for serialization."""
        return {
            "mode": self.mode,
            "prompts": self.prompts,
            "streaming": self.streaming,
            "results": [r.to_dict() for r in self.results],
            "summary": self.summary.to_dict(),
            "campaign_started_at": self.campaign_started_at.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_seconds": (self.end_time - self.campaign_started_at).total_seconds(),
            "success_rate": self.success_rate,
            "metadata": self.metadata,
        }

    def save(self, path: Path) -> None:
        """Save report to a JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)


def cache_key(model: str, prompt: str, system_prompt: Optional[str] = None) -> str:
    """Result cache key for a (model, prompt) pair."""
    digest = hashlib.sha256(f"{system_prompt or ''}\x1f{prompt}".encode("utf-8")).hexdigest()
    return f"{model}:{digest}"


def _response_text(response: dict) -> Optional[str]:
    try:
        return response["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None


class _TestUnit:
    """One (model, prompt) request and the result it owns."""

    def __init__(
        self,
        orchestrator: "ConcurrentTestOrchestrator",
        model: str,
        prompt: str,
        slot: Optional[str],
        streaming: bool,
        campaign_started_at: datetime,
        mode: str = MODE_TEST,
    ):
        self._orchestrator = orchestrator
        self.mode = mode
        self.prompt = prompt
        self.result = ModelResult(
            model=model,
            prompt_slot=slot,
            streaming=streaming,
            campaign_started_at=campaign_started_at,
        )
        self._started_at: Optional[float] = None

    @property
    def model(self) -> str:
        return self.result.model

    def _update(self, patch: ResultPatch) -> None:
        self.result = apply_patch(self.result, patch)
        self._orchestrator._notify(self.result)

    def _messages(self) -> list[dict]:
        messages = []
        if self._orchestrator.system_prompt:
            messages.append({"role": "system", "content": self._orchestrator.system_prompt})
        messages.append({"role": "user", "content": self.prompt})
        return messages

    def _elapsed_ms(self) -> float:
        if self._started_at is None:
            return 0.0
        return (time.perf_counter() - self._started_at) * 1000

    async def run(self) -> ModelResult:
        orchestrator = self._orchestrator
        attributes = {
            "llm.model": self.model,
            "fanout.prompt_slot": self.result.prompt_slot or "-",
            "fanout.streaming": self.result.streaming,
        }
        async with orchestrator.context.tracer.async_span("fanout.unit", attributes) as span:
            self._started_at = time.perf_counter()
            self._update(ResultPatch(status=UnitStatus.RUNNING))
            try:
                client = orchestrator.context.pool.acquire(orchestrator.endpoint)
                if self.result.streaming:
                    await self._run_streaming(client)
                else:
                    await self._run_standard(client)
            except Exception as e:
                duration_ms = self._elapsed_ms()
                if isinstance(e, RequestTimeoutError):
                    duration_ms = e.timeout_seconds * 1000
                logger.debug("Unit %s failed: %s", self.model, e)
                self._update(
                    ResultPatch(
                        status=UnitStatus.FAILED,
                        duration_ms=duration_ms,
                        error=str(e) or e.__class__.__name__,
                    )
                )

            span.set_attribute("fanout.status", self.result.status.value)
            if self.result.duration_ms is not None:
                span.set_attribute("fanout.duration_ms", self.result.duration_ms)

        if self.result.success:
            orchestrator.context.tracer.record_generation(
                name=f"fanout_{self.mode}",
                model=self.model,
                prompt=self.prompt,
                output=self.result.response,
                usage={
                    "input": self.result.input_tokens or 0,
                    "output": self.result.output_tokens or 0,
                    "total": self.result.total_tokens or 0,
                },
                metadata={
                    "prompt_slot": self.result.prompt_slot,
                    "streaming": self.result.streaming,
                    "duration_ms": self.result.duration_ms,
                    "cached": self.result.cached,
                },
            )
        return self.result

    async def _run_standard(self, client: Any) -> None:
        orchestrator = self._orchestrator
        messages = self._messages()
        fetched = False

        # Cache entries keep the measured duration; a hit replays it.
        async def fetch() -> dict:
            nonlocal fetched
            fetched = True
            async with async_timed(f"unit:{self.model}") as timer:
                response = await client.complete(self.model, messages)
            return {"response": response, "duration_ms": timer.elapsed_ms}

        if orchestrator.use_cache:
            key = cache_key(self.model, self.prompt, orchestrator.system_prompt)
            measured = await orchestrator.context.cache.get_or_set(key, fetch)
        else:
            measured = await fetch()

        response = measured["response"]
        duration_ms = measured["duration_ms"]
        usage = response.get("usage") or {}
        input_tokens = usage.get("prompt_tokens")
        output_tokens = usage.get("completion_tokens")
        total_tokens = usage.get("total_tokens")
        if total_tokens is None and (input_tokens is not None or output_tokens is not None):
            total_tokens = (input_tokens or 0) + (output_tokens or 0)

        self._update(
            ResultPatch(
                status=UnitStatus.COMPLETED,
                duration_ms=duration_ms,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=total_tokens,
                reasoning_tokens=reasoning_tokens_from_usage(total_tokens, input_tokens, output_tokens),
                tokens_per_second=tokens_per_second(output_tokens or 0, duration_ms / 1000),
                response=_response_text(response),
                cached=not fetched,
            )
        )

    async def _run_streaming(self, client: Any) -> None:
        stream = client.stream_chat(self.model, self._messages())
        async for update in stream:
            self._update(
                ResultPatch(
                    tokens_per_second=update.tokens_per_second,
                    total_tokens=update.total_tokens,
                )
            )

        outcome = stream.result
        if not outcome.success:
            self._update(
                ResultPatch(
                    status=UnitStatus.FAILED,
                    duration_ms=outcome.duration_ms,
                    tokens_per_second=0.0,
                    total_tokens=0,
                    error=outcome.error,
                )
            )
            return

        prompt_text = "".join(message["content"] for message in self._messages())
        self._update(
            ResultPatch(
                status=UnitStatus.COMPLETED,
                duration_ms=outcome.duration_ms,
                input_tokens=estimate_tokens(prompt_text),
                output_tokens=outcome.total_tokens,
                total_tokens=outcome.total_tokens,
                tokens_per_second=outcome.tokens_per_second,
                response=outcome.full_response,
            )
        )


class ConcurrentTestOrchestrator:
    """Runs every unit of a test or comparison concurrently.

    Usage:
        async with RunContext() as ctx:
            orchestrator = ConcurrentTestOrchestrator(ctx, EndpointConfig.from_env())
            report = await orchestrator.run_test(["openai/gpt-4.1", "google/gemini-2.5-flash"], "Hi")
            print(report.summary.success_count)
    """

    def __init__(
        self,
        context: RunContext,
        endpoint: EndpointConfig,
        observer: Optional[ResultObserver] = None,
        use_cache: bool = True,
        system_prompt: Optional[str] = None,
        verbose: bool = False,
    ):
        self.context = context
        self.endpoint = endpoint
        self.observer = observer
        self.use_cache = use_cache
        self.system_prompt = system_prompt
        self.verbose = verbose
        self.units_launched = 0

    def _notify(self, result: ModelResult) -> None:
        if self.observer is None:
            return
        try:
            self.observer(result)
        except Exception as e:
            logger.warning("Result observer failed for %s: %s", result.model, e)

    @staticmethod
    def _validate(models: Sequence[str], *prompts: str) -> list[str]:
        model_list = [m for m in models if m and m.strip()]
        if not model_list:
            raise ValueError("At least one model is required")
        for prompt in prompts:
            if not prompt or not prompt.strip():
                raise ValueError("Prompt must not be empty")
        return model_list

    async def run_test(self, models: Sequence[str], prompt: str, streaming: bool = False) -> RunReport:
        """Send `prompt` to every model at once."""
        model_list = self._validate(models, prompt)
        campaign_started_at = datetime.now()

        if self.verbose:
            print(f"\nTesting {len(model_list)} models concurrently")
            print(f"  Streaming: {streaming}")

        units = [
            _TestUnit(self, model, prompt, None, streaming, campaign_started_at, MODE_TEST)
            for model in model_list
        ]
        results = await self._run_units(units)

        return RunReport(
            mode=MODE_TEST,
            results=results,
            summary=summarize(results),
            campaign_started_at=campaign_started_at,
            end_time=datetime.now(),
            prompts={"prompt": prompt},
            streaming=streaming,
            metadata={"endpoint": self.endpoint.to_dict()},
        )

    async def run_comparison(
        self,
        models: Sequence[str],
        prompt_a: str,
        prompt_b: str,
        streaming: bool = False,
    ) -> RunReport:
        """Send both prompts to every model, all 2N requests at once."""
        model_list = self._validate(models, prompt_a, prompt_b)
        campaign_started_at = datetime.now()

        if self.verbose:
            print(f"\nComparing 2 prompts across {len(model_list)} models ({2 * len(model_list)} requests)")

        units = []
        for model in model_list:
            units.append(_TestUnit(self, model, prompt_a, SLOT_A, streaming, campaign_started_at, MODE_COMPARISON))
            units.append(_TestUnit(self, model, prompt_b, SLOT_B, streaming, campaign_started_at, MODE_COMPARISON))
        results = await self._run_units(units)

        return RunReport(
            mode=MODE_COMPARISON,
            results=results,
            summary=summarize(results, comparison=True),
            campaign_started_at=campaign_started_at,
            end_time=datetime.now(),
            prompts={SLOT_A: prompt_a, SLOT_B: prompt_b},
            streaming=streaming,
            metadata={"endpoint": self.endpoint.to_dict()},
        )

    async def _run_units(self, units: list[_TestUnit]) -> list[ModelResult]:
        for unit in units:
            self._notify(unit.result)

        # Every task is created before the barrier is awaited.
        tasks = [
            asyncio.create_task(unit.run(), name=f"fanout:{unit.model}:{unit.result.prompt_slot or '-'}")
            for unit in units
        ]
        self.units_launched = len(tasks)
        await asyncio.gather(*tasks)

        if self.verbose:
            completed = sum(1 for unit in units if unit.result.success)
            print(f"  Completed: {completed}/{len(units)}")

        return [unit.result for unit in units]
