"""
TTL result cache.

Memoizes values (typically chat-completion responses) by string key so a run
does not repeat identical upstream calls. An entry is treated as absent once
``now > expiry_at`` even before it is physically removed; ``get`` and ``has``
purge expired entries lazily and a background asyncio task sweeps the rest.

``get_or_set`` has no stampede protection: concurrent callers that miss on
the same key each invoke their factory.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..errors import CacheOperationError, wrap_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


@dataclass
class CacheEntry:
    key: str
    value: Any
    created_at: float
    expiry_at: float
    accessed_at: float
    access_count: int = 1

    def expired(self, now: float) -> bool:
        return now > self.expiry_at


class ResultCache:
    """Key/value cache with per-entry TTL (seconds).

    Usage:
        cache = ResultCache(default_ttl=300)
        cache.start()  # inside a running event loop
        response = await cache.get_or_set(key, lambda: client.complete(...))
        cache.destroy()
    """

    def __init__(
        self,
        default_ttl: float = 300.0,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._entries)

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store `value` under `key`, replacing any previous entry."""
        try:
            now = self._clock()
            lifetime = self.default_ttl if ttl is None else ttl
            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                created_at=now,
                expiry_at=now + lifetime,
                accessed_at=now,
            )
        except Exception as e:
            raise wrap_error(e, "cache set operation", CacheOperationError) from e

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or `default` if absent or expired."""
        try:
            entry = self._live_entry(key)
        except Exception as e:
            raise wrap_error(e, "cache get operation", CacheOperationError) from e
        if entry is None:
            return default
        return entry.value

    def has(self, key: str) -> bool:
        """True if `key` holds an unexpired value."""
        try:
            return self._live_entry(key) is not None
        except Exception as e:
            raise wrap_error(e, "cache has operation", CacheOperationError) from e

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        now = self._clock()
        if entry.expired(now):
            del self._entries[key]
            return None
        entry.accessed_at = now
        entry.access_count += 1
        return entry

    def delete(self, key: str) -> bool:
        """Remove `key`; True if something was removed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        ttl: Optional[float] = None,
    ) -> T:
        """Return the cached value or await `factory()` and cache its result."""
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached
        value = await factory()
        self.set(key, value, ttl)
        return value

    def get_or_set_sync(
        self,
        key: str,
        factory: Callable[[], T],
        ttl: Optional[float] = None,
    ) -> T:
        """Synchronous counterpart of `get_or_set`."""
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached
        value = factory()
        self.set(key, value, ttl)
        return value

    def purge_expired(self) -> int:
        """Remove all expired entries now; returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))
        return len(expired)

    def start(self) -> None:
        """Start the background sweep on the running event loop."""
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())

    @property
    def sweeping(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.purge_expired()

    def destroy(self) -> None:
        """Stop the background sweep and drop every entry."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            self._sweeper = None
        self.clear()

    def stats(self) -> dict:
        """Cache statistics for diagnostics."""
        now = self._clock()
        entries = list(self._entries.values())
        valid = [entry for entry in entries if not entry.expired(now)]

        hit_rate = 0.0
        average_age = 0.0
        if valid:
            hit_rate = sum(entry.access_count for entry in valid) / len(valid)
            average_age = sum(now - entry.created_at for entry in valid) / len(valid)

        top_keys = sorted(entries, key=lambda entry: entry.access_count, reverse=True)[:5]

        return {
            "total_entries": len(entries),
            "valid_entries": len(valid),
            "expired_entries": len(entries) - len(valid),
            "hit_rate": hit_rate,
            "average_age": average_age,
            "memory_usage_estimate": self._estimate_memory_usage(),
            "top_keys": [{"key": entry.key, "access_count": entry.access_count} for entry in top_keys],
        }

    def _estimate_memory_usage(self) -> int:
        total = 0
        for key, entry in self._entries.items():
            total += len(key) * 2
            try:
                serialized = json.dumps(entry.value)
            except (TypeError, ValueError):
                serialized = repr(entry.value)
            total += len(serialized) * 2
            total += 64
        return total
