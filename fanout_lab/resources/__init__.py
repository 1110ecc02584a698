"""
Shared run resources - connection pool, result cache and the run context that owns them.
"""

from .cache import CacheEntry, ResultCache
from .connection_pool import ConnectionPool, PoolEntry
from .context import RunContext

__all__ = [
    "CacheEntry",
    "ResultCache",
    "ConnectionPool",
    "PoolEntry",
    "RunContext",
]
