"""
Connection pool for inference endpoint clients.

Bounds how many client instances are retained and reuses live ones. A pooled
client is keyed by a hash of (base_url, api_key, timeout) and, for secure
clients, the sorted extra headers. Entries idle for longer than
``max_idle_seconds`` are replaced on their next acquire; when the pool is full
the least recently used entry is evicted first.

Every read-modify-write below runs without an ``await``, so concurrent asyncio
tasks can share one pool without a lock. Code driving a pool from several
threads must serialize ``acquire``/``acquire_secure``/``set_max_pool_size``
behind a mutex.
"""

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from ..config import EndpointConfig
from ..errors import PoolConstructionError, wrap_error

logger = logging.getLogger(__name__)

ClientFactory = Callable[[EndpointConfig, Mapping[str, str]], Any]


@dataclass
class PoolEntry:
    """A pooled client and its usage bookkeeping."""

    key: str
    client: Any
    usage_count: int
    last_used_at: float


def _hash_key(*parts: str) -> str:
    return hashlib.sha256("\x1f".join(parts).encode("utf-8")).hexdigest()


class ConnectionPool:
    """LRU-bounded pool of endpoint clients built by an injected factory.

    Usage:
        pool = ConnectionPool(create_client, max_pool_size=10)
        client = pool.acquire(endpoint_config)
    """

    def __init__(
        self,
        factory: ClientFactory,
        max_pool_size: int = 10,
        max_idle_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_pool_size < 1:
            raise ValueError("max_pool_size must be at least 1")
        self._factory = factory
        self._entries: dict[str, PoolEntry] = {}
        self._max_pool_size = max_pool_size
        self._max_idle_seconds = max_idle_seconds
        self._clock = clock

    @property
    def max_pool_size(self) -> int:
        return self._max_pool_size

    @property
    def max_idle_seconds(self) -> float:
        return self._max_idle_seconds

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    @staticmethod
    def key_for(config: EndpointConfig, extra_headers: Optional[Mapping[str, str]] = None) -> str:
        """Pool key for a configuration, optionally with secure headers."""
        base = (config.base_url, config.api_key or "", repr(config.timeout_seconds))
        if extra_headers is None:
            return _hash_key(*base)
        headers = ",".join(f"{name}={extra_headers[name]}" for name in sorted(extra_headers))
        return _hash_key("secure", *base, headers)

    def acquire(self, config: EndpointConfig) -> Any:
        """Return a pooled client for `config`, constructing one if needed."""
        key = self.key_for(config)
        return self._acquire(key, config, {}, "connection pool client creation")

    def acquire_secure(self, config: EndpointConfig, extra_headers: Mapping[str, str]) -> Any:
        """Like `acquire`, for a client that sends additional headers."""
        headers = dict(extra_headers)
        key = self.key_for(config, headers)
        return self._acquire(key, config, headers, "secure connection pool client creation")

    def _acquire(
        self,
        key: str,
        config: EndpointConfig,
        extra_headers: Mapping[str, str],
        context: str,
    ) -> Any:
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None:
            if now - entry.last_used_at <= self._max_idle_seconds:
                entry.usage_count += 1
                entry.last_used_at = now
                return entry.client
            logger.debug("Replacing stale pooled client %s (idle %.1fs)", key[:12], now - entry.last_used_at)
            self._remove(key)

        if len(self._entries) >= self._max_pool_size:
            self._evict_least_recently_used()

        try:
            client = self._factory(config, extra_headers)
        except Exception as e:
            raise wrap_error(e, context, PoolConstructionError) from e

        self._entries[key] = PoolEntry(key=key, client=client, usage_count=1, last_used_at=now)
        return client

    def _remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def _evict_least_recently_used(self) -> None:
        if not self._entries:
            return
        lru = min(self._entries.values(), key=lambda entry: entry.last_used_at)
        logger.debug("Evicting least recently used client %s", lru.key[:12])
        self._remove(lru.key)

    def stats(self) -> dict:
        """Pool statistics for diagnostics."""
        return {
            "total_connections": len(self._entries),
            "max_pool_size": self._max_pool_size,
            "total_usage": sum(entry.usage_count for entry in self._entries.values()),
            "connections": [
                {
                    "key": entry.key,
                    "usage": entry.usage_count,
                    "last_used": entry.last_used_at,
                }
                for entry in self._entries.values()
            ],
        }

    def set_max_pool_size(self, size: int) -> None:
        """Change the bound, evicting LRU entries until the pool fits."""
        if size < 1:
            raise ValueError("max_pool_size must be at least 1")
        self._max_pool_size = size
        while len(self._entries) > self._max_pool_size:
            self._evict_least_recently_used()

    def set_max_idle_time(self, seconds: float) -> None:
        """Change the staleness threshold used by future acquires."""
        self._max_idle_seconds = seconds

    def clear(self) -> None:
        """Drop all pooled entries."""
        self._entries.clear()
