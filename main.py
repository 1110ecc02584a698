#!/usr/bin/env python3
"""
LLM Fan-out Lab - Main entry point.

Usage:
    python main.py [command] [options]

Commands:
    test      - Send one prompt to many models concurrently
    compare   - Send two prompts (A and B) to many models concurrently
"""

import argparse
import asyncio
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from fanout_lab.config import RunSettings
from fanout_lab.errors import FanoutError
from fanout_lab.harness import ConcurrentTestOrchestrator, ConsoleReporter
from fanout_lab.instrumentation import Tracer, TracingConfig
from fanout_lab.logging_setup import configure_logging
from fanout_lab.resources import RunContext
from fanout_lab.scenarios import (
    COMPARISON_MODELS,
    DEFAULT_MODELS,
    DEFAULT_SCENARIO,
    Scenario,
    get_scenario,
)

# Load environment variables from .env file
load_dotenv()


def _resolve_scenario(args) -> Scenario:
    """Scenario for this run; command-line flags override its settings."""
    if args.prompt:
        base = Scenario(name="custom", description="Prompt from the command line", prompt=args.prompt)
    elif args.scenario:
        base = get_scenario(args.scenario)
    else:
        base = DEFAULT_SCENARIO
    return replace(
        base,
        system_prompt=args.system or base.system_prompt,
        streaming=args.stream or base.streaming,
    )


def _save_report(report, args) -> None:
    if args.output_dir is None:
        return
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    path = args.output_dir / f"{report.mode}_{stamp}.json"
    report.save(path)
    print(f"\nResults saved to {path}")


async def run_test(args, settings: RunSettings):
    """Run a single-prompt test across models."""
    models = args.models or DEFAULT_MODELS
    scenario = _resolve_scenario(args)
    prompt = scenario.prompt
    reporter = ConsoleReporter(use_color=not args.no_color, verbose=args.verbose)

    print("=" * 70)
    print("CONCURRENT MODEL TEST")
    print("=" * 70)
    print(f"Models: {', '.join(models)}")
    print(f"Prompt: {prompt[:60]}{'...' if len(prompt) > 60 else ''}")

    tracer = Tracer(TracingConfig.from_env())
    async with RunContext(settings.pool, settings.cache, tracer=tracer) as ctx:
        orchestrator = ConcurrentTestOrchestrator(
            ctx,
            settings.endpoint,
            observer=reporter.on_update,
            use_cache=not args.no_cache,
            system_prompt=scenario.system_prompt,
            verbose=args.verbose,
        )
        report = await orchestrator.run_test(models, prompt, streaming=scenario.streaming)

        print(reporter.summary(report))
        if args.stats:
            print(reporter.diagnostics(ctx.stats()))

    _save_report(report, args)


async def run_compare(args, settings: RunSettings):
    """Run an A/B prompt comparison across models."""
    models = args.models or COMPARISON_MODELS
    scenario = _resolve_scenario(args)
    prompt_a = scenario.prompt
    if not args.prompt_b:
        raise FanoutError("compare requires --prompt-b")
    reporter = ConsoleReporter(use_color=not args.no_color, verbose=args.verbose)

    print("=" * 70)
    print("CONCURRENT PROMPT COMPARISON")
    print("=" * 70)
    print(f"Models: {', '.join(models)}")
    print(f"Prompt A: {prompt_a[:60]}{'...' if len(prompt_a) > 60 else ''}")
    print(f"Prompt B: {args.prompt_b[:60]}{'...' if len(args.prompt_b) > 60 else ''}")

    tracer = Tracer(TracingConfig.from_env())
    async with RunContext(settings.pool, settings.cache, tracer=tracer) as ctx:
        orchestrator = ConcurrentTestOrchestrator(
            ctx,
            settings.endpoint,
            observer=reporter.on_update,
            use_cache=not args.no_cache,
            system_prompt=scenario.system_prompt,
            verbose=args.verbose,
        )
        report = await orchestrator.run_comparison(models, prompt_a, args.prompt_b, streaming=scenario.streaming)

        print(reporter.comparison_table(report))
        print(reporter.summary(report))
        if args.stats:
            print(reporter.diagnostics(ctx.stats()))

    _save_report(report, args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="LLM Fan-out Lab - Test many models concurrently",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py test --prompt "What is 2+2?"
    python main.py test --models openai/gpt-4.1 google/gemini-2.5-flash --stream
    python main.py compare --prompt "Summarize TCP" --prompt-b "Explain TCP to a child"
        """,
    )

    parser.add_argument(
        "command",
        choices=["test", "compare"],
        help="Run mode",
    )
    parser.add_argument(
        "--models",
        nargs="+",
        help="Models to test (default: the built-in model set for the command)",
    )
    parser.add_argument(
        "--prompt",
        help="Prompt to send (prompt A for compare)",
    )
    parser.add_argument(
        "--prompt-b",
        help="Second prompt for compare",
    )
    parser.add_argument(
        "--scenario",
        help="Use a named sample prompt when --prompt is not given",
    )
    parser.add_argument(
        "--system",
        help="Optional system prompt",
    )
    parser.add_argument(
        "--stream",
        action="store_true",
        help="Use streaming responses",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Bypass the result cache",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory to save a JSON report (default: don't save)",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print connection pool and cache diagnostics",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable ANSI colors",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Print progress as units start",
    )
    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()

    commands = {
        "test": run_test,
        "compare": run_compare,
    }

    try:
        settings = RunSettings.from_env()
        configure_logging(settings.log_level, use_color=not args.no_color)
        asyncio.run(commands[args.command](args, settings))
    except KeyboardInterrupt:
        print("\nRun interrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
