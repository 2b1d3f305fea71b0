"""TTL-guarded read-through cache for TMDB reference lists"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, Optional, TypeVar

from .log_service import log_service
from .tmdb_service import TMDBService

K = TypeVar("K")
V = TypeVar("V")

REFERENCE_TTL_SECONDS = 24 * 60 * 60


@dataclass
class _Entry(Generic[V]):
    value: V
    fetched_at: float


class ReferenceCache(Generic[K, V]):
    """Small keyed cache refreshed from TMDB once its entries expire.

    Refreshes are not deduplicated: every reader that finds an expired entry
    fetches. A failed refresh raises to that reader and keeps the old entry.
    """

    def __init__(
        self,
        name: str,
        fetch: Callable[[TMDBService, K], Awaitable[V]],
        ttl: float = REFERENCE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.fetch = fetch
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[K, _Entry[V]] = {}
        self._write_lock = asyncio.Lock()

    def _fresh(self, key: K) -> Optional[_Entry[V]]:
        entry = self._entries.get(key)
        if entry is None or self.clock() - entry.fetched_at >= self.ttl:
            return None
        return entry

    async def get(self, tmdb: TMDBService, key: K) -> V:
        entry = self._fresh(key)
        if entry is not None:
            return entry.value

        try:
            value = await self.fetch(tmdb, key)
        except Exception as e:
            log_service.error(f"{self.name} cache refresh failed for {key!r}: {e}")
            raise

        async with self._write_lock:
            self._entries[key] = _Entry(value=value, fetched_at=self.clock())
        log_service.info(f"{self.name} cache refreshed for {key!r}")
        return value

    def clear(self):
        self._entries.clear()


async def _fetch_genres(tmdb: TMDBService, media_type: str):
    return await tmdb.fetch_genres(media_type)


async def _fetch_countries(tmdb: TMDBService, _key: str):
    return await tmdb.fetch_countries()


async def _fetch_languages(tmdb: TMDBService, _key: str):
    return await tmdb.fetch_languages()


ALL = "all"

# Shared across requests
genre_cache: ReferenceCache[str, Dict[int, str]] = ReferenceCache("genre", _fetch_genres)
country_cache: ReferenceCache[str, Dict[str, str]] = ReferenceCache(
    "country", _fetch_countries
)
language_cache: ReferenceCache[str, Dict[str, str]] = ReferenceCache(
    "language", _fetch_languages
)


def clear_reference_caches():
    for cache in (genre_cache, country_cache, language_cache):
        cache.clear()
