"""
Inference endpoint client for OpenAI-compatible chat completions.
"""

from .endpoint import (
    EndpointClient,
    create_client,
)

__all__ = [
    "EndpointClient",
    "create_client",
]
