"""
Per-run resource context.

A `RunContext` owns the connection pool, the result cache and the tracer for
one run. It is created at run start and torn down at run end:

    async with RunContext(settings.pool, settings.cache) as ctx:
        orchestrator = ConcurrentTestOrchestrator(ctx, settings.endpoint)
        report = await orchestrator.run_test(models, prompt)

Every client the pool constructs is remembered until the context closes.
Evicting an entry only stops reuse; the client itself is closed at exit, so a
unit still streaming on an evicted client is not cut off.
"""

import asyncio
import logging
from typing import Any, Mapping, Optional

from ..client.endpoint import create_client
from ..config import CacheSettings, EndpointConfig, PoolSettings
from ..instrumentation.traces import Tracer, TracingConfig
from .cache import ResultCache
from .connection_pool import ClientFactory, ConnectionPool

logger = logging.getLogger(__name__)


class RunContext:
    """Pool + cache + tracer for a single run."""

    def __init__(
        self,
        pool_settings: Optional[PoolSettings] = None,
        cache_settings: Optional[CacheSettings] = None,
        client_factory: ClientFactory = create_client,
        tracer: Optional[Tracer] = None,
    ):
        pool_settings = pool_settings or PoolSettings()
        cache_settings = cache_settings or CacheSettings()
        self._client_factory = client_factory
        self._clients: list[Any] = []
        self.pool = ConnectionPool(
            self._construct_client,
            max_pool_size=pool_settings.max_pool_size,
            max_idle_seconds=pool_settings.max_idle_seconds,
        )
        self.cache = ResultCache(
            default_ttl=cache_settings.default_ttl,
            sweep_interval=cache_settings.sweep_interval,
        )
        self.tracer = tracer or Tracer(TracingConfig())
        self._open = False

    def _construct_client(self, config: EndpointConfig, extra_headers: Mapping[str, str]) -> Any:
        client = self._client_factory(config, extra_headers)
        self._clients.append(client)
        return client

    @property
    def clients_created(self) -> int:
        return len(self._clients)

    async def __aenter__(self) -> "RunContext":
        self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def open(self) -> None:
        """Initialize tracing and start the cache sweep."""
        self.tracer.initialize()
        self.cache.start()
        self._open = True

    async def aclose(self) -> None:
        """Destroy the cache, clear the pool and close every client."""
        self.cache.destroy()
        self.pool.clear()
        clients, self._clients = self._clients, []
        closers = [client.aclose() for client in clients if hasattr(client, "aclose")]
        if closers:
            results = await asyncio.gather(*closers, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.warning("Error closing endpoint client: %s", result)
        self.tracer.shutdown()
        self._open = False

    def stats(self) -> dict:
        """Pool and cache statistics for diagnostics."""
        return {
            "pool": self.pool.stats(),
            "cache": self.cache.stats(),
            "clients_created": self.clients_created,
        }
