"""Test helpers: item builders and an in-memory TMDB stand-in."""

import math
from typing import Dict, List, Optional

from paired_ratings.services.tmdb_service import (
    Detail,
    DiscoverFilters,
    ProviderPage,
    SearchItem,
)

TEST_PASSWORD = "popcorn-night"
ORIGIN = {"Origin": "http://testserver"}


def make_item(item_id: int, media_type: str = "movie", **kwargs) -> SearchItem:
    kwargs.setdefault("title", f"Title {item_id:03d}")
    kwargs.setdefault("year", 2000)
    return SearchItem(id=item_id, media_type=media_type, **kwargs)


def make_pages(
    items: List[SearchItem], total_results: Optional[int] = None, size: int = 20
) -> List[ProviderPage]:
    """Split items into provider pages the way TMDB would serve them"""
    total_pages = max(math.ceil(len(items) / size), 1)
    total = len(items) if total_results is None else total_results
    return [
        ProviderPage(
            results=items[i * size : (i + 1) * size],
            page=i + 1,
            total_pages=total_pages,
            total_results=total,
        )
        for i in range(total_pages)
    ]


class FakeTMDB:
    """In-memory stand-in for TMDBService; records every provider call"""

    configured = True

    def __init__(self):
        self.search_pages: Dict[str, List[ProviderPage]] = {}  # "movie" | "tv" | "multi"
        self.discover_pages: Dict[str, List[ProviderPage]] = {}
        self.genres = {
            "movie": {28: "Action", 18: "Drama", 35: "Comedy"},
            "tv": {18: "Drama", 10765: "Sci-Fi & Fantasy"},
        }
        self.countries = {"US": "United States of America", "KR": "South Korea"}
        self.languages = {"en": "English", "ko": "Korean"}
        self.details: Dict[tuple, Detail] = {}
        self.calls: List[tuple] = []
        self.error: Optional[Exception] = None

    def _serve(self, pages: List[ProviderPage], page: int) -> ProviderPage:
        if self.error is not None:
            raise self.error
        if 1 <= page <= len(pages):
            return pages[page - 1]
        last = pages[-1] if pages else ProviderPage(results=[])
        return ProviderPage(
            results=[],
            page=page,
            total_pages=last.total_pages,
            total_results=last.total_results,
        )

    async def search_page(self, query: str, media_type: str, page: int = 1):
        self.calls.append(("search", media_type, page))
        return self._serve(self.search_pages.get(media_type, []), page)

    async def search_multi_page(self, query: str, page: int = 1):
        self.calls.append(("search", "multi", page))
        return self._serve(self.search_pages.get("multi", []), page)

    async def discover_page(self, media_type: str, filters: DiscoverFilters, page: int = 1):
        self.calls.append(("discover", media_type, page))
        return self._serve(self.discover_pages.get(media_type, []), page)

    async def fetch_genres(self, media_type: str):
        self.calls.append(("genres", media_type))
        if self.error is not None:
            raise self.error
        return dict(self.genres[media_type])

    async def fetch_countries(self):
        self.calls.append(("countries",))
        if self.error is not None:
            raise self.error
        return dict(self.countries)

    async def fetch_languages(self):
        self.calls.append(("languages",))
        if self.error is not None:
            raise self.error
        return dict(self.languages)

    async def fetch_details(self, tmdb_id: int, media_type: str) -> Detail:
        self.calls.append(("details", media_type, tmdb_id))
        if self.error is not None:
            raise self.error
        return self.details[(tmdb_id, media_type)]

    async def close(self):
        pass


