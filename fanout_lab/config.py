"""
Configuration for fan-out runs.

Settings are plain dataclasses. Each has a ``from_env()`` constructor that
reads ``FANOUT_*`` environment variables at call time, so a ``.env`` file
loaded by the entry point (or a test's ``monkeypatch``) is respected.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from .errors import ConfigError

DEFAULT_BASE_URL = "https://router.requesty.ai/v1"
DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_TEMPERATURE = 0.7


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class EndpointConfig:
    """Where and how to reach an OpenAI-compatible endpoint."""

    base_url: str = DEFAULT_BASE_URL
    api_key: Optional[str] = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    temperature: float = DEFAULT_TEMPERATURE

    def __post_init__(self):
        if self.timeout_seconds <= 0:
            raise ConfigError("timeout_seconds must be positive")

    @classmethod
    def from_env(cls) -> "EndpointConfig":
        return cls(
            base_url=os.getenv("FANOUT_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            api_key=os.getenv("FANOUT_API_KEY") or None,
            timeout_seconds=_env_float("FANOUT_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
            temperature=_env_float("FANOUT_TEMPERATURE", DEFAULT_TEMPERATURE),
        )

    def to_dict(self) -> dict:
        """Serializable view; the credential is never included."""
        return {
            "base_url": self.base_url,
            "has_api_key": bool(self.api_key),
            "timeout_seconds": self.timeout_seconds,
            "temperature": self.temperature,
        }


@dataclass
class PoolSettings:
    """Connection pool limits."""

    max_pool_size: int = 10
    max_idle_seconds: float = 300.0

    @classmethod
    def from_env(cls) -> "PoolSettings":
        return cls(
            max_pool_size=_env_int("FANOUT_POOL_MAX_SIZE", 10),
            max_idle_seconds=_env_float("FANOUT_POOL_MAX_IDLE_SECONDS", 300.0),
        )


@dataclass
class CacheSettings:
    """Result cache TTL and sweep frequency."""

    default_ttl: float = 300.0
    sweep_interval: float = 60.0

    @classmethod
    def from_env(cls) -> "CacheSettings":
        return cls(
            default_ttl=_env_float("FANOUT_CACHE_TTL_SECONDS", 300.0),
            sweep_interval=_env_float("FANOUT_CACHE_SWEEP_SECONDS", 60.0),
        )


@dataclass
class RunSettings:
    """Everything a run needs, gathered in one place."""

    endpoint: EndpointConfig = field(default_factory=EndpointConfig)
    pool: PoolSettings = field(default_factory=PoolSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "RunSettings":
        return cls(
            endpoint=EndpointConfig.from_env(),
            pool=PoolSettings.from_env(),
            cache=CacheSettings.from_env(),
            log_level=os.getenv("FANOUT_LOG_LEVEL", "WARNING"),
        )
