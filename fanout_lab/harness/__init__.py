"""
Fan-out harness for model tests.

Provides orchestration, result records and reporting.
"""

from .results import (
    ModelResult,
    ResultPatch,
    RunSummary,
    SlotSummary,
    UnitStatus,
    apply_patch,
    summarize,
)

from .orchestrator import (
    ConcurrentTestOrchestrator,
    RunReport,
)

from .reporter import ConsoleReporter

__all__ = [
    # Results
    "ModelResult",
    "ResultPatch",
    "RunSummary",
    "SlotSummary",
    "UnitStatus",
    "apply_patch",
    "summarize",
    # Orchestrator
    "ConcurrentTestOrchestrator",
    "RunReport",
    # Reporter
    "ConsoleReporter",
]
