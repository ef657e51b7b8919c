"""Tests for the TTL cache and request coalescing."""

import asyncio

import pytest

from appcatalog.services.cache import GLOBAL_KEY, TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestTTLCache:
    def test_fresh_until_expiry(self):
        clock = FakeClock()
        cache = TTLCache("test", ttl=10, clock=clock)
        cache.set(GLOBAL_KEY, "value")
        clock.now += 9
        assert cache.fresh().value == "value"
        clock.now += 1
        assert cache.fresh() is None

    def test_stale_survives_expiry(self):
        clock = FakeClock()
        cache = TTLCache("test", ttl=10, clock=clock)
        cache.set("k", [1, 2])
        clock.now += 60
        assert cache.stale("k").value == [1, 2]

    def test_per_entry_ttl(self):
        clock = FakeClock()
        cache = TTLCache("test", ttl=900, clock=clock)
        cache.set("missing", None, ttl=30)
        clock.now += 31
        assert cache.fresh("missing") is None

    def test_set_replaces_value_and_expiry_together(self):
        clock = FakeClock()
        cache = TTLCache("test", ttl=10, clock=clock)
        first = cache.set("k", "old")
        clock.now += 5
        second = cache.set("k", "new")
        assert cache.stale("k") is second
        assert second.expires_at == first.expires_at + 5

    def test_clear(self):
        cache = TTLCache("test", ttl=10)
        cache.set("a", 1)
        cache.clear()
        assert len(cache) == 0


class TestCoalesce:
    def test_concurrent_callers_share_one_call(self):
        cache = TTLCache("test", ttl=10)
        calls = 0

        async def load():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return "loaded"

        async def go():
            return await asyncio.gather(*(cache.coalesce("k", load) for _ in range(5)))

        assert asyncio.run(go()) == ["loaded"] * 5
        assert calls == 1

    def test_in_flight_is_cleared_after_completion(self):
        cache = TTLCache("test", ttl=10)

        async def load():
            return 1

        async def go():
            await cache.coalesce("k", load)
            return cache.in_flight("k")

        assert asyncio.run(go()) is None

    def test_failure_reaches_every_waiter_and_is_not_kept(self):
        cache = TTLCache("test", ttl=10)
        calls = 0

        async def boom():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            raise RuntimeError("upstream down")

        async def go():
            results = await asyncio.gather(
                cache.coalesce("k", boom), cache.coalesce("k", boom), return_exceptions=True
            )
            return results, cache.in_flight("k")

        results, in_flight = asyncio.run(go())
        assert all(isinstance(r, RuntimeError) for r in results)
        assert in_flight is None
        assert calls == 1
        assert cache.stale("k") is None

    def test_cancelled_caller_does_not_cancel_shared_load(self):
        cache = TTLCache("test", ttl=10)

        async def load():
            await asyncio.sleep(0.02)
            return "done"

        async def go():
            impatient = asyncio.ensure_future(cache.coalesce("k", load))
            patient = asyncio.ensure_future(cache.coalesce("k", load))
            await asyncio.sleep(0.005)
            impatient.cancel()
            with pytest.raises(asyncio.CancelledError):
                await impatient
            return await patient

        assert asyncio.run(go()) == "done"
