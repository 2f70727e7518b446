"""
Tests for the namespaced response cache.
"""

import asyncio
import logging
import pytest
from unittest.mock import AsyncMock, MagicMock

from lrems_backend.api.cache import (
    BOOKS_NAMESPACE,
    MONITORING_NAMESPACE,
    ResponseCache,
    build_cache_key,
)
from lrems_backend.permissions.predicate import AccessClause, RecordPredicate, RecordQuery


class FakeClock:

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def response_cache(clock):
    return ResponseCache(enabled=True, clock=clock, ttls={BOOKS_NAMESPACE: 120, MONITORING_NAMESPACE: 60})


class TestCacheKeys:

    def test_same_predicate_same_key(self):
        a = RecordPredicate(clauses=[AccessClause(learning_areas=["Math", "EPP"])])
        b = RecordPredicate(clauses=[AccessClause(learning_areas=["EPP", "Math"])])
        assert build_cache_key(a, page=1, limit=10) == build_cache_key(b, page=1, limit=10)

    def test_pagination_changes_key(self):
        predicate = RecordPredicate()
        assert build_cache_key(predicate, page=1) != build_cache_key(predicate, page=2)

    def test_requested_filters_change_key(self):
        a = RecordPredicate(query=RecordQuery(statuses=["RETURNED"]))
        b = RecordPredicate(query=RecordQuery(statuses=["In Progress"]))
        assert build_cache_key(a) != build_cache_key(b)

    def test_unconstrained_differs_from_match_nothing(self):
        assert build_cache_key(RecordPredicate()) != build_cache_key(RecordPredicate(clauses=[]))


class TestResponseCache:

    @pytest.mark.asyncio
    async def test_get_after_set(self, response_cache):
        await response_cache.set(BOOKS_NAMESPACE, "k", {"data": [1, 2]})
        assert await response_cache.get(BOOKS_NAMESPACE, "k") == {"data": [1, 2]}

    @pytest.mark.asyncio
    async def test_values_are_copies(self, response_cache):
        value = {"data": [1]}
        await response_cache.set(BOOKS_NAMESPACE, "k", value)
        value["data"].append(2)
        assert await response_cache.get(BOOKS_NAMESPACE, "k") == {"data": [1]}

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self, response_cache, clock):
        await response_cache.set(BOOKS_NAMESPACE, "k", {"v": 1})
        clock.advance(119)
        assert await response_cache.get(BOOKS_NAMESPACE, "k") == {"v": 1}
        clock.advance(1)
        assert await response_cache.get(BOOKS_NAMESPACE, "k") is None

    @pytest.mark.asyncio
    async def test_ttl_per_namespace(self, response_cache, clock):
        await response_cache.set(MONITORING_NAMESPACE, "k", {"v": 1})
        clock.advance(61)
        assert await response_cache.get(MONITORING_NAMESPACE, "k") is None

    @pytest.mark.asyncio
    async def test_backend_receives_ttl(self, clock):
        backend = MagicMock()
        backend.set = AsyncMock(return_value=True)
        response_cache = ResponseCache(backend=backend, enabled=True, clock=clock, ttls={BOOKS_NAMESPACE: 120})

        await response_cache.set(BOOKS_NAMESPACE, "k", {"v": 1})
        await response_cache.set(BOOKS_NAMESPACE, "j", {"v": 2}, ttl=30)

        assert backend.set.await_args_list[0].kwargs["ttl"] == 120
        assert backend.set.await_args_list[1].kwargs["ttl"] == 30
        assert backend.set.await_args_list[1].args[1] == {"value": {"v": 2}, "expires_at": 1030.0}

    @pytest.mark.asyncio
    async def test_invalidate_namespace_only_clears_that_namespace(self, response_cache):
        await response_cache.set(BOOKS_NAMESPACE, "k", {"v": "books"})
        await response_cache.set(MONITORING_NAMESPACE, "k", {"v": "monitoring"})

        await response_cache.invalidate_namespace(BOOKS_NAMESPACE)

        assert await response_cache.get(BOOKS_NAMESPACE, "k") is None
        assert await response_cache.get(MONITORING_NAMESPACE, "k") == {"v": "monitoring"}

    @pytest.mark.asyncio
    async def test_clear_all(self, response_cache):
        await response_cache.set(BOOKS_NAMESPACE, "k", {"v": 1})
        await response_cache.set(MONITORING_NAMESPACE, "k", {"v": 2})

        await response_cache.clear_all()

        assert await response_cache.get(BOOKS_NAMESPACE, "k") is None
        assert await response_cache.get(MONITORING_NAMESPACE, "k") is None

    @pytest.mark.asyncio
    async def test_instances_do_not_share_entries(self):
        first = ResponseCache(enabled=True)
        second = ResponseCache(enabled=True)
        await first.set(BOOKS_NAMESPACE, "k", {"v": 1})
        assert await second.get(BOOKS_NAMESPACE, "k") is None

    @pytest.mark.asyncio
    async def test_disabled_cache_always_misses(self):
        disabled = ResponseCache(enabled=False)
        assert await disabled.set(BOOKS_NAMESPACE, "k", {"v": 1}) is False
        assert await disabled.get(BOOKS_NAMESPACE, "k") is None


class TestGetOrSet:

    @pytest.mark.asyncio
    async def test_miss_then_hit(self, response_cache):
        compute = MagicMock(return_value={"v": 1})

        value, hit = await response_cache.get_or_set(BOOKS_NAMESPACE, "k", compute)
        assert (value, hit) == ({"v": 1}, False)

        value, hit = await response_cache.get_or_set(BOOKS_NAMESPACE, "k", compute)
        assert (value, hit) == ({"v": 1}, True)
        assert compute.call_count == 1

    @pytest.mark.asyncio
    async def test_async_compute(self, response_cache):
        compute = AsyncMock(return_value={"v": 2})
        value, hit = await response_cache.get_or_set(BOOKS_NAMESPACE, "k", compute)
        assert value == {"v": 2}
        assert not hit

    @pytest.mark.asyncio
    async def test_result_straddling_invalidation_is_not_stored(self, response_cache):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_compute():
            started.set()
            await release.wait()
            return {"v": "stale"}

        task = asyncio.create_task(response_cache.get_or_set(BOOKS_NAMESPACE, "k", slow_compute))
        await started.wait()

        # A write lands while the read is still computing
        await response_cache.invalidate_namespace(BOOKS_NAMESPACE)
        release.set()

        value, hit = await task
        assert value == {"v": "stale"}
        assert not hit
        assert await response_cache.get(BOOKS_NAMESPACE, "k") is None

    @pytest.mark.asyncio
    async def test_clear_all_also_discards_in_flight_results(self, response_cache):
        generation = response_cache.generation(MONITORING_NAMESPACE)
        await response_cache.clear_all()
        stored = await response_cache.set(MONITORING_NAMESPACE, "k", {"v": 1}, generation=generation)
        assert stored is False

    @pytest.mark.asyncio
    async def test_compute_errors_propagate(self, response_cache):
        def failing():
            raise RuntimeError("database down")

        with pytest.raises(RuntimeError):
            await response_cache.get_or_set(BOOKS_NAMESPACE, "k", failing)
        assert await response_cache.get(BOOKS_NAMESPACE, "k") is None


class TestBackendFailures:

    @pytest.fixture
    def broken_backend(self):
        backend = MagicMock()
        backend.get = AsyncMock(side_effect=ConnectionError("unreachable"))
        backend.set = AsyncMock(side_effect=ConnectionError("unreachable"))
        backend.clear = AsyncMock(side_effect=ConnectionError("unreachable"))
        backend.close = AsyncMock()
        return backend

    @pytest.mark.asyncio
    async def test_get_failure_is_a_miss(self, broken_backend, caplog):
        response_cache = ResponseCache(backend=broken_backend, enabled=True)
        with caplog.at_level(logging.WARNING):
            assert await response_cache.get(BOOKS_NAMESPACE, "k") is None
        assert "Cache get failed" in caplog.text

    @pytest.mark.asyncio
    async def test_get_or_set_still_computes(self, broken_backend):
        response_cache = ResponseCache(backend=broken_backend, enabled=True)
        value, hit = await response_cache.get_or_set(BOOKS_NAMESPACE, "k", lambda: {"v": 1})
        assert value == {"v": 1}
        assert not hit

    @pytest.mark.asyncio
    async def test_invalidation_failure_is_swallowed(self, broken_backend):
        response_cache = ResponseCache(backend=broken_backend, enabled=True)
        before = response_cache.generation(BOOKS_NAMESPACE)
        await response_cache.invalidate_namespace(BOOKS_NAMESPACE)
        await response_cache.clear_all()
        assert response_cache.generation(BOOKS_NAMESPACE) == before + 2
