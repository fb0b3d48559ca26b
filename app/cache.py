"""Time-limited storage for synthesised catalog pages."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

from cachetools import TTLCache

from .filters import FilterSpec
from .models import CatalogPage

logger = logging.getLogger(__name__)


class CacheStore(Protocol):
    """Key-value store with prefix invalidation."""

    async def get(self, key: str) -> Any | None:
        ...

    async def set(self, key: str, value: Any) -> None:
        ...

    async def invalidate_prefix(self, prefix: str) -> int:
        ...


class MemoryCacheStore:
    """In-process store backed by ``cachetools.TTLCache``."""

    def __init__(self, *, maxsize: int = 4_096, ttl: float = 300):
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            return self._cache.get(key)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            self._cache[key] = value

    async def invalidate_prefix(self, prefix: str) -> int:
        async with self._lock:
            doomed = [key for key in list(self._cache.keys()) if key.startswith(prefix)]
            for key in doomed:
                self._cache.pop(key, None)
        return len(doomed)

    def __len__(self) -> int:
        return len(self._cache)


@dataclass(frozen=True, slots=True)
class CatalogResult:
    """A catalog page plus whether it was served from cache."""

    page: CatalogPage
    cached: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "metas": self.page.to_metas(),
            "cached": self.cached,
            "cachedAt": self.page.cached_at.isoformat(),
        }


class CatalogCache:
    """Derives catalog cache keys and fronts a :class:`CacheStore`."""

    def __init__(self, store: CacheStore):
        self._store = store
        self._generation = 0

    @staticmethod
    def user_prefix(user_id: str) -> str:
        return f"{user_id}:catalog:"

    @classmethod
    def key(cls, user_id: str, catalog_id: str, offset: int, spec: FilterSpec) -> str:
        return f"{cls.user_prefix(user_id)}{catalog_id}:{offset}:{spec.cache_key()}"

    async def get(self, key: str) -> CatalogPage | None:
        value = await self._store.get(key)
        return value if isinstance(value, CatalogPage) else None

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[CatalogPage | None]],
    ) -> CatalogResult:
        """Return the cached page or compute, store and return a fresh one.

        ``compute`` runs without any lock held; concurrent misses for the same
        key may compute twice and the last write wins. A ``None`` result is
        returned as an empty page and not stored. Neither is a page whose
        compute overlapped an invalidation, so a purge is never undone.
        """

        hit = await self.get(key)
        if hit is not None:
            return CatalogResult(page=hit, cached=True)

        generation = self._generation
        page = await compute()
        if page is None:
            return CatalogResult(page=CatalogPage(entries=()), cached=False)
        if generation != self._generation:
            logger.debug("Not storing %s computed across an invalidation", key)
            return CatalogResult(page=page, cached=False)
        await self._store.set(key, page)
        return CatalogResult(page=page, cached=False)

    async def invalidate_user(self, user_id: str) -> int:
        self._generation += 1
        removed = await self._store.invalidate_prefix(self.user_prefix(user_id))
        logger.info("Purged %s cached catalog pages for user %s", removed, user_id)
        return removed
