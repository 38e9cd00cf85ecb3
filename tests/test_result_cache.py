"""
Tests for the result cache — TTL, coalescing, invalidation and stats.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from runtimekit.core.services.result_cache import ResultCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestGetOrCompute:
    def test_miss_then_hit(self):
        cache = ResultCache()
        calls = []
        producer = lambda: calls.append(1) or "value"  # noqa: E731

        assert cache.get_or_compute("k", 60, producer) == "value"
        assert cache.get_or_compute("k", 60, producer) == "value"

        assert len(calls) == 1
        stats = cache.stats()
        assert (stats.cache_hits, stats.cache_misses, stats.total_requests) == (1, 1, 2)

    def test_ttl_expiry(self):
        clock = FakeClock()
        cache = ResultCache(clock=clock)
        values = iter(["first", "second"])

        assert cache.get_or_compute("k", 30, lambda: next(values)) == "first"
        clock.advance(29)
        assert cache.get_or_compute("k", 30, lambda: next(values)) == "first"
        clock.advance(1)
        assert cache.get_or_compute("k", 30, lambda: next(values)) == "second"

    def test_none_ttl_never_expires(self):
        clock = FakeClock()
        cache = ResultCache(clock=clock)
        cache.get_or_compute("catalog", None, lambda: [1, 2])
        clock.advance(10**9)
        assert cache.get_or_compute("catalog", None, lambda: pytest.fail("recomputed")) == [1, 2]

    def test_failure_propagates_and_is_not_cached(self):
        cache = ResultCache()

        def boom():
            raise RuntimeError("registry down")

        with pytest.raises(RuntimeError, match="registry down"):
            cache.get_or_compute("k", 60, boom)

        assert len(cache) == 0
        assert cache.get_or_compute("k", 60, lambda: "recovered") == "recovered"


class TestCoalescing:
    def test_concurrent_callers_share_one_producer(self):
        cache = ResultCache()
        started = threading.Event()
        release = threading.Event()
        calls = []

        def slow():
            calls.append(1)
            started.set()
            release.wait(5)
            return object()

        n = 8
        with ThreadPoolExecutor(max_workers=n) as pool:
            first = pool.submit(cache.get_or_compute, "k", 60, slow)
            assert started.wait(5)
            others = [pool.submit(cache.get_or_compute, "k", 60, slow) for _ in range(n - 1)]
            # Let every waiter reach the in-flight future before releasing
            while cache.stats().total_requests < n:
                threading.Event().wait(0.01)
            release.set()
            results = [first.result(5)] + [f.result(5) for f in others]

        assert len(calls) == 1
        assert all(r is results[0] for r in results)
        stats = cache.stats()
        assert stats.cache_misses == 1
        assert stats.cache_hits == n - 1
        assert stats.total_requests == n

    def test_failure_reaches_every_waiter(self):
        cache = ResultCache()
        started = threading.Event()
        release = threading.Event()

        def failing():
            started.set()
            release.wait(5)
            raise ValueError("bad response")

        with ThreadPoolExecutor(max_workers=3) as pool:
            first = pool.submit(cache.get_or_compute, "k", 60, failing)
            assert started.wait(5)
            second = pool.submit(cache.get_or_compute, "k", 60, failing)
            while cache.stats().total_requests < 2:
                threading.Event().wait(0.01)
            release.set()

            with pytest.raises(ValueError):
                first.result(5)
            with pytest.raises(ValueError):
                second.result(5)

        assert len(cache) == 0

    def test_different_keys_compute_independently(self):
        cache = ResultCache()
        assert cache.get_or_compute("a", 60, lambda: 1) == 1
        assert cache.get_or_compute("b", 60, lambda: 2) == 2
        assert cache.stats().cache_misses == 2


class TestInvalidation:
    def test_invalidate(self):
        cache = ResultCache()
        cache.get_or_compute("status", 30, lambda: "old")
        cache.invalidate("status")
        assert cache.get_or_compute("status", 30, lambda: "new") == "new"

    def test_invalidate_prefix(self):
        cache = ResultCache()
        for key in ("updates:*:*", "updates:nodejs:*", "status"):
            cache.get_or_compute(key, 30, lambda: key)
        assert cache.invalidate_prefix("updates:") == 2
        assert len(cache) == 1

    def test_invalidate_during_computation_discards_result(self):
        cache = ResultCache()

        def producer():
            cache.invalidate("k")
            return "stale"

        assert cache.get_or_compute("k", 60, producer) == "stale"
        assert len(cache) == 0
        assert cache.get_or_compute("k", 60, lambda: "fresh") == "fresh"

    @pytest.mark.parametrize(
        "drop",
        [
            lambda cache: cache.invalidate("k"),
            lambda cache: cache.invalidate_prefix("k"),
            lambda cache: cache.clear(),
        ],
        ids=["invalidate", "invalidate_prefix", "clear"],
    )
    def test_invalidated_flight_still_blocks_a_second_producer(self, drop):
        cache = ResultCache()
        started = threading.Event()
        release = threading.Event()
        lock = threading.Lock()
        running = []
        peak = []

        def producer(value):
            def run():
                with lock:
                    running.append(value)
                    peak.append(len(running))
                started.set()
                if value == "old":
                    release.wait(5)
                with lock:
                    running.remove(value)
                return value
            return run

        with ThreadPoolExecutor(max_workers=2) as pool:
            first = pool.submit(cache.get_or_compute, "k", 60, producer("old"))
            assert started.wait(5)
            drop(cache)
            second = pool.submit(cache.get_or_compute, "k", 60, producer("new"))
            while cache.stats().total_requests < 2:
                threading.Event().wait(0.01)
            assert not second.done()
            release.set()

            assert first.result(5) == "old"
            assert second.result(5) == "new"

        assert max(peak) == 1
        assert cache.get_or_compute("k", 60, producer("newer")) == "new"
        stats = cache.stats()
        assert (stats.cache_hits, stats.cache_misses) == (1, 2)

    def test_clear_keeps_stats(self):
        cache = ResultCache()
        cache.get_or_compute("k", 60, lambda: 1)
        cache.clear()
        assert len(cache) == 0
        assert cache.stats().total_requests == 1

    def test_reset_stats(self):
        cache = ResultCache()
        cache.get_or_compute("k", 60, lambda: 1)
        cache.get_or_compute("k", 60, lambda: 1)
        cache.reset_stats()
        stats = cache.stats()
        assert (stats.cache_hits, stats.cache_misses, stats.total_requests) == (0, 0, 0)
        assert stats.hit_rate == 0.0
