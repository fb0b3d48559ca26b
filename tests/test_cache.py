"""Catalog cache behaviour tests."""

from __future__ import annotations

import asyncio

from app.cache import CatalogCache, MemoryCacheStore
from app.filters import FilterSpec
from app.models import CatalogEntry, CatalogPage


def _page(number: int = 1) -> CatalogPage:
    return CatalogPage(entries=(CatalogEntry(id=f"tt{number:07d}", type="movie", name="One"),))


def test_hit_returns_the_stored_page_tagged_cached() -> None:
    cache = CatalogCache(MemoryCacheStore(maxsize=16, ttl=60))
    key = cache.key("u1", "list-a", 0, FilterSpec())
    calls = 0

    async def compute() -> CatalogPage:
        nonlocal calls
        calls += 1
        return _page()

    async def runner():
        first = await cache.get_or_compute(key, compute)
        second = await cache.get_or_compute(key, compute)
        return first, second

    first, second = asyncio.run(runner())

    assert calls == 1
    assert first.cached is False
    assert second.cached is True
    assert second.page is first.page
    assert second.to_payload()["cachedAt"] == first.to_payload()["cachedAt"]


def test_failed_computations_are_not_cached() -> None:
    cache = CatalogCache(MemoryCacheStore(maxsize=16, ttl=60))
    key = cache.key("u1", "list-a", 0, FilterSpec())

    async def failing() -> None:
        return None

    async def succeeding() -> CatalogPage:
        return _page()

    async def runner():
        empty = await cache.get_or_compute(key, failing)
        recovered = await cache.get_or_compute(key, succeeding)
        return empty, recovered

    empty, recovered = asyncio.run(runner())

    assert empty.page.entries == ()
    assert empty.cached is False
    assert recovered.cached is False
    assert len(recovered.page.entries) == 1


def test_keys_differ_by_offset_and_filters() -> None:
    base = CatalogCache.key("u1", "list-a", 0, FilterSpec())

    assert base != CatalogCache.key("u1", "list-a", 100, FilterSpec())
    assert base != CatalogCache.key("u1", "list-a", 0, FilterSpec(genre="Drama"))
    assert base != CatalogCache.key("u1", "list-b", 0, FilterSpec())
    assert base.startswith("u1:catalog:list-a:0:")


def test_invalidate_user_only_purges_that_user() -> None:
    store = MemoryCacheStore(maxsize=16, ttl=60)
    cache = CatalogCache(store)

    async def runner() -> int:
        await store.set(cache.key("u1", "a", 0, FilterSpec()), _page(1))
        await store.set(cache.key("u1", "b", 100, FilterSpec(sort="year")), _page(2))
        await store.set(cache.key("u10", "a", 0, FilterSpec()), _page(3))
        return await cache.invalidate_user("u1")

    removed = asyncio.run(runner())

    assert removed == 2
    assert len(store) == 1
    assert asyncio.run(cache.get(cache.key("u10", "a", 0, FilterSpec()))) is not None


def test_pages_computed_across_an_invalidation_are_not_stored() -> None:
    store = MemoryCacheStore(maxsize=16, ttl=60)
    cache = CatalogCache(store)
    key = cache.key("u1", "list-a", 0, FilterSpec())
    calls = 0

    async def stale_compute() -> CatalogPage:
        nonlocal calls
        calls += 1
        await cache.invalidate_user("u1")
        return _page(1)

    async def fresh_compute() -> CatalogPage:
        nonlocal calls
        calls += 1
        return _page(2)

    async def runner():
        stale = await cache.get_or_compute(key, stale_compute)
        stored_after_stale = len(store)
        fresh = await cache.get_or_compute(key, fresh_compute)
        again = await cache.get_or_compute(key, fresh_compute)
        return stale, stored_after_stale, fresh, again

    stale, stored_after_stale, fresh, again = asyncio.run(runner())

    assert stale.cached is False
    assert stale.page.entries[0].id == "tt0000001"
    assert stored_after_stale == 0
    assert fresh.cached is False
    assert fresh.page.entries[0].id == "tt0000002"
    assert again.cached is True
    assert calls == 2
