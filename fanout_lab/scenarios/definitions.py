"""
Default model sets and sample prompts for fan-out runs.

Sample prompts cover the common shapes of a quick model check:
1. Short factual answer
2. Explanation
3. Code generation
4. Longer creative output (useful with --stream)
"""

from dataclasses import dataclass, field
from typing import Optional

DEFAULT_MODELS = [
    "openai/gpt-4.1",
    "alibaba/qwen-max",
    "anthropic/claude-sonnet-4-20250514",
    "google/gemini-2.5-flash",
    "google/gemini-2.5-pro",
]

# Comparison runs send 2N requests, so they use a smaller default set.
COMPARISON_MODELS = DEFAULT_MODELS[:3]


@dataclass
class Scenario:
    """A named sample prompt."""

    name: str
    description: str
    prompt: str
    system_prompt: Optional[str] = None
    streaming: bool = False
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "prompt": self.prompt,
            "system_prompt": self.system_prompt,
            "streaming": self.streaming,
            "metadata": self.metadata,
        }


SAMPLE_SCENARIOS = [
    Scenario(
        name="capital",
        description="Short factual answer",
        prompt="What is the capital of Japan? Answer in one sentence.",
    ),
    Scenario(
        name="explain",
        description="Concept explanation",
        prompt="Explain the difference between concurrency and parallelism in three sentences.",
    ),
    Scenario(
        name="code",
        description="Small code generation task",
        prompt="Write a Python function that returns the n-th Fibonacci number iteratively.",
        system_prompt="You are a concise senior engineer. Reply with code only.",
    ),
    Scenario(
        name="story",
        description="Longer creative output, suited to streaming",
        prompt="Write a short story (about 200 words) about a lighthouse keeper who finds a message in a bottle.",
        streaming=True,
    ),
]

DEFAULT_SCENARIO = SAMPLE_SCENARIOS[0]

_SCENARIO_INDEX = {s.name: s for s in SAMPLE_SCENARIOS}


def get_scenario(name: str) -> Scenario:
    """Get a sample scenario by name."""
    if name not in _SCENARIO_INDEX:
        raise KeyError(f"Unknown scenario: {name}. Available: {list(_SCENARIO_INDEX.keys())}")
    return _SCENARIO_INDEX[name]


def list_scenarios() -> list[str]:
    """List all sample scenario names."""
    return list(_SCENARIO_INDEX.keys())
