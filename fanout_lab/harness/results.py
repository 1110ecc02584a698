"""
Result records for fan-out runs.

A `ModelResult` is an immutable snapshot of one unit of work: one model, and
in comparison mode one prompt slot ("A" or "B"). Progress is recorded by
applying a `ResultPatch`, which returns a new snapshot. Status only moves
forward:

    pending -> running -> completed | failed

and completed/failed are final.
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from ..errors import InvalidTransitionError

SLOT_A = "A"
SLOT_B = "B"


class UnitStatus(str, Enum):
    """Lifecycle state of a unit of work."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (UnitStatus.COMPLETED, UnitStatus.FAILED)


_ALLOWED_TRANSITIONS = {
    UnitStatus.PENDING: {UnitStatus.PENDING, UnitStatus.RUNNING},
    UnitStatus.RUNNING: {UnitStatus.RUNNING, UnitStatus.COMPLETED, UnitStatus.FAILED},
    UnitStatus.COMPLETED: set(),
    UnitStatus.FAILED: set(),
}


@dataclass(frozen=True)
class ModelResult:
    """Snapshot of one (model, prompt) unit."""

    model: str
    prompt_slot: Optional[str] = None
    status: UnitStatus = UnitStatus.PENDING
    duration_ms: Optional[float] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    reasoning_tokens: Optional[int] = None
    tokens_per_second: Optional[float] = None
    error: Optional[str] = None
    response: Optional[str] = None
    streaming: bool = False
    cached: bool = False
    campaign_started_at: Optional[datetime] = None

    @property
    def key(self) -> tuple[str, Optional[str]]:
        return (self.model, self.prompt_slot)

    @property
    def success(self) -> bool:
        return self.status is UnitStatus.COMPLETED

    def to_dict(self) -> dict:
        return {
            "model": self.model,
            "prompt_slot": self.prompt_slot,
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "reasoning_tokens": self.reasoning_tokens,
            "tokens_per_second": self.tokens_per_second,
            "error": self.error,
            "response": self.response,
            "streaming": self.streaming,
            "cached": self.cached,
            "campaign_started_at": (
                self.campaign_started_at.isoformat() if self.campaign_started_at else None
            ),
        }


@dataclass(frozen=True)
class ResultPatch:
    """Named optional fields to merge into a `ModelResult`. None means unchanged."""

    status: Optional[UnitStatus] = None
    duration_ms: Optional[float] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    reasoning_tokens: Optional[int] = None
    tokens_per_second: Optional[float] = None
    error: Optional[str] = None
    response: Optional[str] = None
    cached: Optional[bool] = None


def apply_patch(result: ModelResult, patch: ResultPatch) -> ModelResult:
    """Return a new result with `patch` merged in.

    Raises InvalidTransitionError if `result` is already final or the patch
    would move its status backwards.
    """
    new_status = patch.status or result.status
    if new_status not in _ALLOWED_TRANSITIONS[result.status]:
        raise InvalidTransitionError(
            f"{result.model} [{result.prompt_slot or '-'}]: "
            f"cannot move from {result.status.value} to {new_status.value}"
        )
    changes = {
        f.name: getattr(patch, f.name)
        for f in dataclasses.fields(patch)
        if getattr(patch, f.name) is not None
    }
    return dataclasses.replace(result, **changes)


@dataclass(frozen=True)
class SlotSummary:
    """Per-prompt aggregates in comparison mode."""

    success_count: int
    failure_count: int
    avg_duration_ms: float
    total_tokens: int

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class RunSummary:
    """Aggregate view of a finished run. Derived, never persisted."""

    success_count: int
    failure_count: int
    avg_duration_ms: float
    median_duration_ms: float = 0.0
    fastest_model: Optional[str] = None
    slowest_model: Optional[str] = None
    avg_tokens_per_second: float = 0.0
    total_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_tokens: int = 0
    slots: dict = field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count

    def to_dict(self) -> dict:
        return {
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "avg_duration_ms": self.avg_duration_ms,
            "median_duration_ms": self.median_duration_ms,
            "fastest_model": self.fastest_model,
            "slowest_model": self.slowest_model,
            "avg_tokens_per_second": self.avg_tokens_per_second,
            "total_tokens": self.total_tokens,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "reasoning_tokens": self.reasoning_tokens,
            "slots": {slot: summary.to_dict() for slot, summary in self.slots.items()},
        }


def _average(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _median(values: list[float]) -> float:
    """Upper-middle element for even-sized runs, no interpolation."""
    if not values:
        return 0.0
    return sorted(values)[len(values) // 2]


def reasoning_tokens_from_usage(
    total_tokens: Optional[int],
    input_tokens: Optional[int],
    output_tokens: Optional[int],
) -> int:
    """Tokens the endpoint billed beyond prompt and completion.

    Only computed when all three counts are positive; otherwise 0.
    """
    if not (total_tokens and input_tokens and output_tokens):
        return 0
    return max(total_tokens - input_tokens - output_tokens, 0)


def _slot_summary(results: list[ModelResult]) -> SlotSummary:
    completed = [r for r in results if r.status is UnitStatus.COMPLETED]
    return SlotSummary(
        success_count=len(completed),
        failure_count=sum(1 for r in results if r.status is UnitStatus.FAILED),
        avg_duration_ms=_average([r.duration_ms or 0.0 for r in completed]),
        total_tokens=sum(r.total_tokens or 0 for r in completed),
    )


def summarize(results: Iterable[ModelResult], comparison: bool = False) -> RunSummary:
    """Aggregate terminal results. Pure; non-terminal results are ignored."""
    terminal = [r for r in results if r.status.terminal]
    completed = [r for r in terminal if r.status is UnitStatus.COMPLETED]
    durations = [r.duration_ms or 0.0 for r in completed]

    fastest = min(completed, key=lambda r: r.duration_ms or 0.0) if completed else None
    slowest = max(completed, key=lambda r: r.duration_ms or 0.0) if completed else None

    slots = {}
    if comparison:
        for slot in (SLOT_A, SLOT_B):
            slots[slot] = _slot_summary([r for r in terminal if r.prompt_slot == slot])

    return RunSummary(
        success_count=len(completed),
        failure_count=len(terminal) - len(completed),
        avg_duration_ms=_average(durations),
        median_duration_ms=_median(durations),
        fastest_model=fastest.model if fastest else None,
        slowest_model=slowest.model if slowest else None,
        avg_tokens_per_second=_average([r.tokens_per_second for r in completed if r.tokens_per_second]),
        total_tokens=sum(r.total_tokens or 0 for r in completed),
        input_tokens=sum(r.input_tokens or 0 for r in completed),
        output_tokens=sum(r.output_tokens or 0 for r in completed),
        reasoning_tokens=sum(r.reasoning_tokens or 0 for r in completed),
        slots=slots,
    )
