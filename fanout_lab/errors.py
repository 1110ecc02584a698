"""
Error taxonomy for model fan-out runs.

Per-unit failures (network, timeout, HTTP status) are caught by the
orchestrator and turned into failed results. Pool and cache errors are
wrapped with the operation that raised them.
"""

from typing import Optional


class FanoutError(Exception):
    """Base class for all fanout_lab errors."""


class ConfigError(FanoutError):
    """Invalid configuration value."""


class NetworkError(FanoutError):
    """Transport failure talking to an inference endpoint. Never retried."""


class EndpointHTTPError(NetworkError):
    """Endpoint answered with an error status."""

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        detail = f": {body[:200]}" if body else ""
        super().__init__(f"HTTP {status}{detail}")


class RequestTimeoutError(FanoutError, TimeoutError):
    """Request exceeded the client-enforced timeout."""

    def __init__(self, timeout_seconds: float, message: Optional[str] = None):
        self.timeout_seconds = timeout_seconds
        super().__init__(message or f"Request timed out after {timeout_seconds}s")


class ProtocolError(FanoutError):
    """Malformed SSE or JSON frame. Recovered by skipping the frame."""


class PoolConstructionError(FanoutError):
    """The connection pool's client factory failed."""


class CacheOperationError(FanoutError):
    """Clock or internal failure inside a cache operation."""


class InvalidTransitionError(FanoutError):
    """A result patch tried to move a unit's status backwards or out of a terminal state."""


def wrap_error(error: BaseException, context: str, cls: type = FanoutError) -> FanoutError:
    """Build a `cls` error whose message is prefixed with `context`."""
    message = str(error) or error.__class__.__name__
    return cls(f"{context}: {message}")
