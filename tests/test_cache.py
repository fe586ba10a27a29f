import asyncio

from pitchedge.data.providers.cache import TTLCache


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_miss_then_hit_then_expiry():
    clock = _Clock()
    cache = TTLCache(clock=clock)
    calls = {"count": 0}

    async def _compute():
        calls["count"] += 1
        return {"data": calls["count"]}

    async def _run():
        assert await cache.try_read("k") is None
        first = await cache.compute_and_store("k", _compute, ttl_seconds=60)
        hit = await cache.try_read("k")
        clock.now += 60
        expired = await cache.try_read("k")
        return first, hit, expired

    first, hit, expired = asyncio.run(_run())
    assert first == {"data": 1}
    assert hit == first
    assert expired is None
    assert calls["count"] == 1
    assert len(cache) == 0


def test_concurrent_fill_computes_once():
    cache = TTLCache(clock=_Clock())
    calls = {"count": 0}

    async def _compute():
        calls["count"] += 1
        await asyncio.sleep(0)
        return {"ok": True}

    async def _run():
        return await asyncio.gather(*[cache.compute_and_store("k", _compute, 30) for _ in range(5)])

    results = asyncio.run(_run())
    assert calls["count"] == 1
    assert all(r == {"ok": True} for r in results)


def test_zero_ttl_and_none_are_not_stored():
    cache = TTLCache(clock=_Clock())

    async def _none():
        return None

    async def _value():
        return [1]

    async def _run():
        await cache.compute_and_store("a", _none, 60)
        await cache.compute_and_store("b", _value, 0)

    asyncio.run(_run())
    assert len(cache) == 0


def test_expired_entries_pruned_on_write_and_locks_released():
    clock = _Clock()
    cache = TTLCache(clock=clock)

    async def _value():
        return {"v": 1}

    async def _run():
        for i in range(50):
            await cache.compute_and_store(f"odds:{i}", _value, ttl_seconds=10)
        clock.now += 10
        await cache.compute_and_store("standings:8", _value, ttl_seconds=10)

    asyncio.run(_run())
    assert len(cache) == 1
    assert len(cache._locks) == 0
