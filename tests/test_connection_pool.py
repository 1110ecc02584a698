"""
Tests for the LRU connection pool.
"""

import pytest

from fanout_lab.config import EndpointConfig
from fanout_lab.errors import PoolConstructionError
from fanout_lab.resources import ConnectionPool

from .conftest import FakeClock


class RecordingFactory:
    def __init__(self):
        self.built = []

    def __call__(self, config, headers):
        client = object()
        self.built.append((config, dict(headers), client))
        return client


def _config(n: int) -> EndpointConfig:
    return EndpointConfig(base_url=f"http://host-{n}.local/v1", api_key="sk")


class TestConnectionPoolReuse:
    """Same configuration shares a client."""

    def test_same_config_returns_same_client(self):
        factory = RecordingFactory()
        pool = ConnectionPool(factory, clock=FakeClock())
        config = _config(1)

        assert pool.acquire(config) is pool.acquire(config)
        assert len(factory.built) == 1
        assert pool.stats()["total_usage"] == 2

    def test_different_config_builds_new_client(self):
        factory = RecordingFactory()
        pool = ConnectionPool(factory, clock=FakeClock())

        first = pool.acquire(_config(1))
        second = pool.acquire(EndpointConfig(base_url="http://host-1.local/v1", api_key="other"))

        assert first is not second
        assert len(factory.built) == 2

    def test_secure_headers_are_part_of_the_key(self):
        factory = RecordingFactory()
        pool = ConnectionPool(factory, clock=FakeClock())
        config = _config(1)

        plain = pool.acquire(config)
        secure = pool.acquire_secure(config, {"X-Org": "a"})
        secure_again = pool.acquire_secure(config, {"X-Org": "a"})
        other = pool.acquire_secure(config, {"X-Org": "b"})

        assert plain is not secure
        assert secure is secure_again
        assert other is not secure
        assert factory.built[1][1] == {"X-Org": "a"}

    def test_header_order_does_not_change_key(self):
        config = _config(1)
        assert ConnectionPool.key_for(config, {"a": "1", "b": "2"}) == ConnectionPool.key_for(
            config, {"b": "2", "a": "1"}
        )


class TestConnectionPoolLimits:
    """Size bound and idle expiry."""

    def test_lru_entry_evicted_when_full(self):
        clock = FakeClock()
        factory = RecordingFactory()
        pool = ConnectionPool(factory, max_pool_size=3, clock=clock)

        for n in range(3):
            pool.acquire(_config(n))
            clock.advance(1)
        # Touch config 0 so config 1 becomes least recently used.
        pool.acquire(_config(0))
        clock.advance(1)
        pool.acquire(_config(3))

        assert len(pool) == 3
        assert ConnectionPool.key_for(_config(1)) not in pool
        assert ConnectionPool.key_for(_config(0)) in pool
        assert ConnectionPool.key_for(_config(3)) in pool

    def test_size_never_exceeds_bound(self):
        clock = FakeClock()
        pool = ConnectionPool(RecordingFactory(), max_pool_size=2, clock=clock)
        for n in range(10):
            pool.acquire(_config(n))
            clock.advance(1)
            assert len(pool) <= 2

    def test_idle_entry_is_replaced(self):
        clock = FakeClock()
        factory = RecordingFactory()
        pool = ConnectionPool(factory, max_idle_seconds=10.0, clock=clock)
        config = _config(1)

        first = pool.acquire(config)
        clock.advance(10.5)
        second = pool.acquire(config)

        assert first is not second
        assert len(pool) == 1
        assert pool.stats()["connections"][0]["usage"] == 1

    def test_entry_at_idle_boundary_is_reused(self):
        clock = FakeClock()
        pool = ConnectionPool(RecordingFactory(), max_idle_seconds=10.0, clock=clock)
        config = _config(1)

        first = pool.acquire(config)
        clock.advance(10.0)
        assert pool.acquire(config) is first

    def test_shrinking_pool_evicts(self):
        clock = FakeClock()
        pool = ConnectionPool(RecordingFactory(), max_pool_size=5, clock=clock)
        for n in range(5):
            pool.acquire(_config(n))
            clock.advance(1)

        pool.set_max_pool_size(2)

        assert len(pool) == 2
        assert ConnectionPool.key_for(_config(4)) in pool

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            ConnectionPool(RecordingFactory(), max_pool_size=0)

    def test_clear(self):
        pool = ConnectionPool(RecordingFactory(), clock=FakeClock())
        pool.acquire(_config(1))
        pool.clear()
        assert len(pool) == 0


class TestConnectionPoolErrors:
    """Factory failures."""

    def test_factory_failure_is_wrapped(self):
        def broken(config, headers):
            raise RuntimeError("bad TLS settings")

        pool = ConnectionPool(broken, clock=FakeClock())
        with pytest.raises(PoolConstructionError) as exc_info:
            pool.acquire(_config(1))

        assert "connection pool client creation" in str(exc_info.value)
        assert "bad TLS settings" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert len(pool) == 0

    def test_secure_factory_failure_names_operation(self):
        def broken(config, headers):
            raise RuntimeError("nope")

        pool = ConnectionPool(broken, clock=FakeClock())
        with pytest.raises(PoolConstructionError, match="secure connection pool client creation"):
            pool.acquire_secure(_config(1), {"X-Org": "a"})
