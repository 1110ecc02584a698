"""
Console reporting for fan-out runs.

Provides a live observer that prints unit progress, summary and comparison
tables, and a diagnostics view of pool/cache statistics.
"""

from typing import Optional

from .orchestrator import RunReport
from .results import SLOT_A, SLOT_B, ModelResult, UnitStatus


class ConsoleReporter:
    """Generates console/CLI reports."""

    def __init__(self, use_color: bool = True, verbose: bool = False):
        self.use_color = use_color
        self.verbose = verbose
        self.lines_printed = 0

    def _color(self, text: str, color: str) -> str:
        """Apply ANSI color if enabled."""
        if not self.use_color:
            return text

        colors = {
            "green": "\033[92m",
            "red": "\033[91m",
            "yellow": "\033[93m",
            "blue": "\033[94m",
            "bold": "\033[1m",
            "reset": "\033[0m",
        }

        return f"{colors.get(color, '')}{text}{colors['reset']}"

    def format_duration(self, ms: Optional[float]) -> str:
        """Format duration for display."""
        if ms is None:
            return "N/A"
        if ms < 1000:
            return f"{ms:.1f}ms"
        return f"{ms / 1000:.2f}s"

    @staticmethod
    def _label(result: ModelResult) -> str:
        if result.prompt_slot:
            return f"{result.model} [{result.prompt_slot}]"
        return result.model

    def format_update(self, result: ModelResult) -> Optional[str]:
        """One progress line for a result snapshot, or None if nothing to show."""
        label = self._label(result)
        if result.status is UnitStatus.COMPLETED:
            line = f"  {self._color('done', 'green')}  {label}: {self.format_duration(result.duration_ms)}"
            if result.total_tokens:
                line += f", {result.total_tokens} tokens"
            if result.tokens_per_second:
                line += f", {result.tokens_per_second:.1f} tok/s"
            if result.cached:
                line += " (cached)"
            return line
        if result.status is UnitStatus.FAILED:
            return f"  {self._color('fail', 'red')}  {label}: {result.error}"
        if result.status is UnitStatus.RUNNING and self.verbose and result.total_tokens is None:
            return f"  {self._color('run ', 'yellow')}  {label}"
        return None

    def on_update(self, result: ModelResult) -> None:
        """Observer for ConcurrentTestOrchestrator."""
        line = self.format_update(result)
        if line is not None:
            print(line)
            self.lines_printed += 1

    def summary(self, report: RunReport) -> str:
        """Generate the final summary for a run."""
        summary = report.summary
        total = len(report.results)
        lines = []
        lines.append(self._color(f"\n{'=' * 60}", "blue"))
        lines.append(self._color("Final Summary", "bold"))
        lines.append(self._color(f"{'=' * 60}", "blue"))
        lines.append(f"  Successful: {summary.success_count}/{total}")
        lines.append(f"  Failed: {summary.failure_count}/{total}")

        if summary.success_count:
            lines.append("\nTiming Analysis:")
            lines.append(f"  {'Average:':<10} {self.format_duration(summary.avg_duration_ms)}")
            lines.append(f"  {'Median:':<10} {self.format_duration(summary.median_duration_ms)}")
            lines.append(f"  {'Fastest:':<10} {summary.fastest_model}")
            lines.append(f"  {'Slowest:':<10} {summary.slowest_model}")

            lines.append(
                f"\nToken Usage: {summary.total_tokens} total "
                f"({summary.input_tokens} input + {summary.output_tokens} output)"
            )
            if summary.reasoning_tokens:
                lines.append(f"Reasoning Tokens: {summary.reasoning_tokens}")
            if summary.avg_tokens_per_second > 0:
                lines.append(f"Throughput: {summary.avg_tokens_per_second:.1f} tokens/sec average")

        failures = [r for r in report.results if r.status is UnitStatus.FAILED]
        if failures:
            lines.append(f"\n{self._color('Errors:', 'red')}")
            for result in failures[:5]:
                lines.append(f"  - {self._label(result)}: {result.error}")
            if len(failures) > 5:
                lines.append(f"  ... and {len(failures) - 5} more")

        return "\n".join(lines)

    def comparison_table(self, report: RunReport) -> str:
        """Side-by-side table of prompt A vs prompt B per model."""
        headers = ["Model", "A time", "A tokens", "B time", "B tokens", "Faster"]
        col_widths = [36, 12, 10, 12, 10, 8]

        by_key = {r.key: r for r in report.results}
        models = list(dict.fromkeys(r.model for r in report.results))

        lines = []
        lines.append(self._color(f"\n{'=' * sum(col_widths)}", "blue"))
        lines.append(self._color("Prompt Comparison", "bold"))
        lines.append(self._color(f"{'=' * sum(col_widths)}", "blue"))
        lines.append(self._color("".join(f"{h:<{w}}" for h, w in zip(headers, col_widths)), "bold"))
        lines.append("-" * sum(col_widths))

        for model in models:
            a = by_key.get((model, SLOT_A))
            b = by_key.get((model, SLOT_B))
            name = model[:33] + "..." if len(model) > 36 else model
            row = [f"{name:<{col_widths[0]}}"]
            for result, (time_w, tok_w) in ((a, col_widths[1:3]), (b, col_widths[3:5])):
                if result is None or result.status is not UnitStatus.COMPLETED:
                    row.append(f"{'failed':<{time_w}}")
                    row.append(f"{'-':<{tok_w}}")
                else:
                    row.append(f"{self.format_duration(result.duration_ms):<{time_w}}")
                    row.append(f"{str(result.total_tokens or '-'):<{tok_w}}")
            faster = "-"
            if a and b and a.success and b.success:
                faster = SLOT_A if (a.duration_ms or 0) <= (b.duration_ms or 0) else SLOT_B
            row.append(f"{faster:<{col_widths[5]}}")
            lines.append("".join(row))

        for slot in (SLOT_A, SLOT_B):
            slot_summary = report.summary.slots.get(slot)
            prompt = report.prompts.get(slot, "")
            if slot_summary is None:
                continue
            lines.append(
                f"\nPrompt {slot}: \"{prompt[:50]}{'...' if len(prompt) > 50 else ''}\""
                f"  {slot_summary.success_count} ok / {slot_summary.failure_count} failed, "
                f"avg {self.format_duration(slot_summary.avg_duration_ms)}, "
                f"{slot_summary.total_tokens} tokens"
            )

        return "\n".join(lines)

    def diagnostics(self, stats: dict) -> str:
        """Render RunContext.stats() output."""
        pool = stats.get("pool", {})
        cache = stats.get("cache", {})
        lines = [self._color("\nDiagnostics", "bold")]
        lines.append(
            f"  Pool: {pool.get('total_connections', 0)}/{pool.get('max_pool_size', 0)} connections, "
            f"{pool.get('total_usage', 0)} acquires"
        )
        lines.append(
            f"  Cache: {cache.get('valid_entries', 0)} valid / {cache.get('expired_entries', 0)} expired entries, "
            f"hit rate {cache.get('hit_rate', 0.0):.2f}, "
            f"~{cache.get('memory_usage_estimate', 0)} bytes"
        )
        return "\n".join(lines)
