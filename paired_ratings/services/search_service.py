"""Search and discovery pipeline.

TMDB serves fixed pages of 20 titles. The app exposes its own pages of 20
and may have to filter and re-sort on top of what TMDB returns, so this module
maps an app page onto one or more provider fetches:

* direct path: relevance order, no attribute filters, one provider stream.
  The app page is cut straight out of a single provider page and TMDB's
  totals are passed through.
* accumulating path: provider pages are fetched from page 1 on, filtered, and
  collected until the requested window is covered or TMDB runs out. The whole
  accumulator is sorted before the window is sliced, and totals are either
  recomputed (provider exhausted) or estimated.

Filtering always happens before sorting, and sorting before windowing.
"""

import enum
import math
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Dict, FrozenSet, List, Optional

from .log_service import log_service
from .tmdb_service import (
    MEDIA_TYPES,
    PROVIDER_MAX_PAGES,
    PROVIDER_PAGE_SIZE,
    DiscoverFilters,
    ProviderPage,
    SearchItem,
    TMDBService,
)

APP_PAGE_SIZE = 20


class SortKey(str, enum.Enum):
    RELEVANCE = "relevance"
    RATING = "rating"
    VOTES = "votes"
    YEAR = "year"
    TITLE = "title"


class GenreMode(str, enum.Enum):
    ALL = "all"  # every genre must match
    ANY = "any"  # at least one genre must match


class Totals(str, enum.Enum):
    EXACT = "exact"
    ESTIMATED = "estimated"


@dataclass(frozen=True)
class SearchCriteria:
    query: str = ""
    media_type: str = "all"  # movie | tv | all
    year_from: Optional[int] = None
    year_to: Optional[int] = None
    min_rating: Optional[float] = None
    min_votes: Optional[int] = None
    genre_ids: FrozenSet[int] = frozenset()
    genre_mode: GenreMode = GenreMode.ALL
    origin_country: str = ""
    original_language: str = ""
    sort: SortKey = SortKey.RELEVANCE
    page: int = 1

    @classmethod
    def from_params(
        cls,
        q: Optional[str] = None,
        media_type: Optional[str] = None,
        year_from: Optional[str] = None,
        year_to: Optional[str] = None,
        min_rating: Optional[str] = None,
        min_votes: Optional[str] = None,
        genres: Optional[str] = None,
        genre_mode: Optional[str] = None,
        origin_country: Optional[str] = None,
        original_language: Optional[str] = None,
        sort: Optional[str] = None,
        page: Optional[str] = None,
    ) -> "SearchCriteria":
        """Build criteria from raw query parameters.

        Raises ValueError for a bad media type, sort key, genre mode or any
        number that does not parse. Blank values mean "not set"; a rating or
        vote minimum of 0 is treated as unset, and pages below 1 clamp to 1.
        """
        media = (media_type or "").strip().lower() or "all"
        if media not in ("all",) + MEDIA_TYPES:
            raise ValueError(f"invalid media_type: {media_type!r}")

        sort_raw = (sort or "").strip().lower() or SortKey.RELEVANCE.value
        try:
            sort_key = SortKey(sort_raw)
        except ValueError:
            raise ValueError(f"invalid sort: {sort!r}") from None

        rating = _parse_number(min_rating, float, "min_rating")
        votes = _parse_number(min_votes, int, "min_votes")
        page_num = _parse_number(page, int, "page")

        genre_ids, mode = _parse_genres(genres, genre_mode)

        return cls(
            query=(q or "").strip(),
            media_type=media,
            year_from=_parse_number(year_from, int, "year_from"),
            year_to=_parse_number(year_to, int, "year_to"),
            min_rating=rating if rating and rating > 0 else None,
            min_votes=votes if votes and votes > 0 else None,
            genre_ids=genre_ids,
            genre_mode=mode,
            origin_country=(origin_country or "").strip().upper(),
            original_language=(original_language or "").strip().lower(),
            sort=sort_key,
            page=max(page_num or 1, 1),
        )

    @property
    def has_year_filter(self) -> bool:
        return self.year_from is not None or self.year_to is not None

    @property
    def has_filters(self) -> bool:
        return bool(
            self.has_year_filter
            or self.min_rating is not None
            or self.min_votes is not None
            or self.genre_ids
            or self.origin_country
            or self.original_language
        )

    def is_empty(self) -> bool:
        return not self.query and self.media_type == "all" and not self.has_filters

    def needs_client_pass(self) -> bool:
        """Whether results must be filtered, merged or re-sorted locally"""
        if self.sort != SortKey.RELEVANCE or self.has_filters:
            return True
        # all-types discover merges two provider streams
        return not self.query and self.media_type == "all"

    def discover_filters(self) -> DiscoverFilters:
        joiner = "|" if self.genre_mode == GenreMode.ANY else ","
        return DiscoverFilters(
            year_from=self.year_from,
            year_to=self.year_to,
            min_rating=self.min_rating,
            min_votes=self.min_votes,
            genres=joiner.join(str(g) for g in sorted(self.genre_ids)),
            origin_country=self.origin_country,
            original_language=self.original_language,
        )


def _parse_number(raw: Optional[str], kind, name: str):
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    try:
        value = kind(raw)
    except ValueError:
        raise ValueError(f"invalid {name}: {raw!r}") from None
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"invalid {name}: {raw!r}")
    return value


def _parse_genres(raw: Optional[str], mode: Optional[str]):
    """"28,12" selects all genres, "28|12" any; genre_mode overrides."""
    raw = (raw or "").strip()
    parsed_mode = GenreMode.ANY if "|" in raw else GenreMode.ALL
    if mode and mode.strip():
        try:
            parsed_mode = GenreMode(mode.strip().lower())
        except ValueError:
            raise ValueError(f"invalid genre_mode: {mode!r}") from None

    ids = set()
    for token in raw.replace("|", ",").split(","):
        token = token.strip()
        if not token:
            continue
        try:
            ids.add(int(token))
        except ValueError:
            raise ValueError(f"invalid genre id: {token!r}") from None
    return frozenset(ids), parsed_mode


# Attribute filter


def matches(item: SearchItem, criteria: SearchCriteria) -> bool:
    """Whether an item satisfies every active predicate"""
    if criteria.media_type != "all" and item.media_type != criteria.media_type:
        return False
    if criteria.min_rating is not None and item.vote_average < criteria.min_rating:
        return False
    if criteria.min_votes is not None and item.vote_count < criteria.min_votes:
        return False
    if criteria.has_year_filter:
        if item.year is None:
            return False
        if criteria.year_from is not None and item.year < criteria.year_from:
            return False
        if criteria.year_to is not None and item.year > criteria.year_to:
            return False
    if criteria.genre_ids:
        item_genres = set(item.genre_ids)
        if criteria.genre_mode == GenreMode.ANY:
            if not criteria.genre_ids & item_genres:
                return False
        elif not criteria.genre_ids <= item_genres:
            return False
    if criteria.origin_country and criteria.origin_country not in item.origin_country:
        return False
    if (
        criteria.original_language
        and item.original_language.lower() != criteria.original_language
    ):
        return False
    return True


def apply_filters(items: List[SearchItem], criteria: SearchCriteria) -> List[SearchItem]:
    return [item for item in items if matches(item, criteria)]


# Re-ranker

_SORT_KEYS: Dict[SortKey, Callable[[SearchItem], tuple]] = {
    SortKey.RATING: lambda i: (-i.vote_average, -i.vote_count, i.title),
    SortKey.VOTES: lambda i: (-i.vote_count, -i.vote_average, i.title),
    SortKey.YEAR: lambda i: (-(i.year or 0), i.title),
    SortKey.TITLE: lambda i: (i.title.lower(), i.title),
}


def rank(items: List[SearchItem], sort: SortKey) -> List[SearchItem]:
    """Return items ordered by the sort key; relevance keeps provider order"""
    key = _SORT_KEYS.get(sort)
    if key is None:
        return list(items)
    return sorted(items, key=key)


# Windower


def window(items: List[SearchItem], offset: int, limit: int) -> List[SearchItem]:
    """Slice one page; out-of-range windows are empty, never an error"""
    offset = max(offset, 0)
    return items[offset : offset + limit]


@dataclass
class ResultPage:
    results: List[SearchItem]
    page: int
    total_pages: int
    total_results: int
    totals: Totals = Totals.EXACT
    provider_calls: int = field(default=0, compare=False)


def merge_pages(pages: List[ProviderPage], page: int) -> ProviderPage:
    """Interleave movie and tv results so neither kind leads the merge.

    Totals are combined as observed: results summed, pages maxed.
    """
    merged: List[SearchItem] = []
    longest = max((len(p.results) for p in pages), default=0)
    for i in range(longest):
        for p in pages:
            if i < len(p.results):
                merged.append(p.results[i])
    return ProviderPage(
        results=merged,
        page=page,
        total_pages=max((p.total_pages for p in pages), default=0),
        total_results=sum(p.total_results for p in pages),
        dropped=sum(p.dropped for p in pages),
        served=sum(p.reachable for p in pages),
    )


PageFetcher = Callable[[int], Awaitable[ProviderPage]]


class _AllTypesDiscover:
    """Fetches movie and tv discover pages at the same page number, in turn"""

    def __init__(self, tmdb: TMDBService, filters: DiscoverFilters):
        self.tmdb = tmdb
        self.filters = filters
        self._last: Dict[str, ProviderPage] = {}

    async def __call__(self, page: int) -> ProviderPage:
        pages = []
        for media_type in MEDIA_TYPES:
            last = self._last.get(media_type)
            if last is not None and page > last.total_pages:
                pages.append(replace(last, results=[], page=page, dropped=0))
                continue
            fetched = await self.tmdb.discover_page(media_type, self.filters, page)
            self._last[media_type] = fetched
            pages.append(fetched)
        return merge_pages(pages, page)


class SearchService:
    """Runs a SearchCriteria against TMDB and returns one app page"""

    def __init__(self, tmdb: TMDBService, page_size: int = APP_PAGE_SIZE):
        self.tmdb = tmdb
        self.page_size = page_size
        self._calls = 0

    def _stream(self, criteria: SearchCriteria):
        """Provider fetcher plus the criteria still to be checked locally"""
        if criteria.query:
            if criteria.media_type == "all":

                async def fetch(page):
                    return await self.tmdb.search_multi_page(criteria.query, page)

            else:

                async def fetch(page):
                    return await self.tmdb.search_page(
                        criteria.query, criteria.media_type, page
                    )

            return fetch, criteria

        filters = criteria.discover_filters()
        # TMDB enforces origin country on discover and omits it on movie results
        residual = replace(criteria, origin_country="")
        if criteria.media_type == "all":
            return _AllTypesDiscover(self.tmdb, filters), residual

        async def fetch(page):
            return await self.tmdb.discover_page(criteria.media_type, filters, page)

        return fetch, residual

    async def search(self, criteria: SearchCriteria) -> ResultPage:
        page = max(criteria.page, 1)
        self._calls = 0
        if criteria.is_empty():
            return ResultPage(results=[], page=page, total_pages=0, total_results=0)

        fetch, residual = self._stream(criteria)

        async def counted(provider_page: int) -> ProviderPage:
            self._calls += 1
            return await fetch(provider_page)

        offset = (page - 1) * self.page_size
        if not criteria.needs_client_pass() and PROVIDER_PAGE_SIZE % self.page_size == 0:
            result = await self._direct(counted, page, offset)
        else:
            result = await self._accumulate(counted, residual, criteria.sort, page, offset)
        result.provider_calls = self._calls
        log_service.info(
            f"search q={criteria.query!r} type={criteria.media_type} sort={criteria.sort.value} "
            f"page={page} -> {len(result.results)} items, {self._calls} provider calls, "
            f"totals {result.totals.value}"
        )
        return result

    async def _direct(self, fetch: PageFetcher, page: int, offset: int) -> ResultPage:
        provider_page = offset // PROVIDER_PAGE_SIZE + 1
        in_page = offset % PROVIDER_PAGE_SIZE
        if provider_page > PROVIDER_MAX_PAGES:
            return ResultPage(
                results=[],
                page=page,
                total_pages=PROVIDER_MAX_PAGES * PROVIDER_PAGE_SIZE // self.page_size,
                total_results=offset,
                totals=Totals.ESTIMATED,
            )

        data = await fetch(provider_page)
        return ResultPage(
            results=window(data.results, in_page, self.page_size),
            page=page,
            total_pages=math.ceil(data.reachable / self.page_size),
            total_results=data.total_results,
            totals=Totals.ESTIMATED if data.dropped else Totals.EXACT,
        )

    async def _accumulate(
        self,
        fetch: PageFetcher,
        criteria: SearchCriteria,
        sort: SortKey,
        page: int,
        offset: int,
    ) -> ResultPage:
        """Filter provider pages into an accumulator, then rank and window it.

        Relevance keeps TMDB's order, so fetching stops once the requested
        page is filled. Any other sort reorders the whole stream, so every
        provider page is fetched before ranking.
        """
        needed = offset + self.page_size
        full_scan = sort != SortKey.RELEVANCE
        accumulator: List[SearchItem] = []
        scanned = 0
        provider_page = 0
        exhausted = False
        unreachable = False
        last: Optional[ProviderPage] = None

        while full_scan or len(accumulator) < needed:
            provider_page += 1
            if provider_page > PROVIDER_MAX_PAGES:
                exhausted = True
                break
            last = await fetch(provider_page)
            scanned += len(last.results) + last.dropped
            accumulator.extend(apply_filters(last.results, criteria))
            if provider_page >= last.total_pages or not (last.results or last.dropped):
                exhausted = True
                break
            # Filtering only shrinks the stream, so this page can never fill
            if offset >= last.reachable:
                unreachable = True
                break

        ordered = rank(accumulator, sort)
        results = window(ordered, offset, self.page_size)

        if exhausted or last is None:
            total_results = len(accumulator)
            return ResultPage(
                results=results,
                page=page,
                total_pages=math.ceil(total_results / self.page_size),
                total_results=total_results,
                totals=Totals.EXACT,
            )

        # Stopped early: extrapolate the survivor ratio over TMDB's total
        ratio = len(accumulator) / scanned if scanned else 0.0
        if unreachable:
            estimate = max(len(accumulator), math.ceil(ratio * last.reachable))
            total_pages = math.ceil(estimate / self.page_size)
        else:
            estimate = max(len(accumulator), math.ceil(ratio * last.total_results))
            total_pages = max(math.ceil(estimate / self.page_size), page + 1)
        return ResultPage(
            results=results,
            page=page,
            total_pages=total_pages,
            total_results=estimate,
            totals=Totals.ESTIMATED,
        )
