"""
Default models and sample prompts.
"""

from .definitions import (
    Scenario,
    DEFAULT_MODELS,
    COMPARISON_MODELS,
    DEFAULT_SCENARIO,
    SAMPLE_SCENARIOS,
    get_scenario,
    list_scenarios,
)

__all__ = [
    "Scenario",
    "DEFAULT_MODELS",
    "COMPARISON_MODELS",
    "DEFAULT_SCENARIO",
    "SAMPLE_SCENARIOS",
    "get_scenario",
    "list_scenarios",
]
