"""TMDB API service"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import httpx

from ..config import settings
from .log_service import log_service

MEDIA_TYPES = ("movie", "tv")
PROVIDER_PAGE_SIZE = 20
PROVIDER_MAX_PAGES = 500

_YEAR_RE = re.compile(r"[+-]?[0-9]+")


class TMDBError(Exception):
    """Upstream TMDB failure (status, transport or decode)"""


def parse_year(value: Optional[str]) -> Optional[int]:
    """Parse a year string; None when empty or not an integer.

    Length is not checked here, so "99" parses as 99.
    """
    if value is None:
        return None
    value = value.strip()
    if not value or not _YEAR_RE.fullmatch(value):
        return None
    return int(value)


def year_from_date(date: Optional[str]) -> Optional[int]:
    """Year from a TMDB "YYYY-MM-DD" date, using its first four characters"""
    if not date or len(date) < 4:
        return None
    return parse_year(date[:4])


def looks_like_jwt(token: str) -> bool:
    token = token.strip()
    return len(token.split(".")) == 3 and len(token) > 80


@dataclass
class SearchItem:
    """A title as returned by a TMDB search or discover page"""

    id: int
    media_type: str
    title: str
    year: Optional[int] = None
    poster_path: Optional[str] = None
    overview: str = ""
    vote_average: float = 0.0
    vote_count: int = 0
    genre_ids: List[int] = field(default_factory=list)
    origin_country: List[str] = field(default_factory=list)
    original_language: str = ""


@dataclass
class ProviderPage:
    """One TMDB result page"""

    results: List[SearchItem]
    page: int = 1
    total_pages: int = 0
    total_results: int = 0
    dropped: int = 0  # entries that were not movies or shows
    served: Optional[int] = None  # set on merged streams

    @property
    def reachable(self) -> int:
        """Titles TMDB will actually serve for this stream, page cap included"""
        if self.served is not None:
            return self.served
        return min(self.total_results, self.total_pages * PROVIDER_PAGE_SIZE)


def _objects(value) -> List[Dict]:
    """JSON objects in a list payload; anything else is skipped"""
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


def _external_imdb_id(data: Dict) -> str:
    ids = data.get("external_ids")
    if not isinstance(ids, dict):
        return ""
    return (ids.get("imdb_id") or "").strip()


@dataclass
class DiscoverFilters:
    year_from: Optional[int] = None
    year_to: Optional[int] = None
    min_rating: Optional[float] = None
    min_votes: Optional[int] = None
    genres: str = ""  # "28,12" (all) or "28|12" (any)
    sort: str = ""
    origin_country: str = ""
    original_language: str = ""


@dataclass
class Detail:
    """Full TMDB record used to upsert a library show"""

    tmdb_id: int
    media_type: str
    title: str
    year: Optional[int] = None
    overview: str = ""
    poster_path: Optional[str] = None
    imdb_id: str = ""
    genres: List[str] = field(default_factory=list)
    origin_country: List[str] = field(default_factory=list)
    vote_average: float = 0.0
    vote_count: int = 0


class TMDBService:
    """The Movie Database API integration"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        read_token: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        api_key = (api_key or "").strip()
        read_token = (read_token or "").strip()
        # A v4 read token pasted into the API key slot
        if not read_token and looks_like_jwt(api_key):
            read_token, api_key = api_key, ""

        self.api_key = api_key
        self.read_token = read_token
        self.base_url = "https://api.themoviedb.org/3"
        self.client = httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.TMDB_TIMEOUT_SECONDS
        )

    @classmethod
    def from_settings(cls) -> "TMDBService":
        return cls(settings.TMDB_API_KEY, settings.TMDB_API_READ_TOKEN)

    @property
    def configured(self) -> bool:
        return bool(self.api_key or self.read_token)

    async def _request(self, endpoint: str, params: Dict = None, expect: type = dict):
        """Make request to TMDB API; the decoded body must be an `expect`"""
        if params is None:
            params = {}

        headers = {"Accept": "application/json"}
        if self.api_key:
            params["api_key"] = self.api_key
        if self.read_token:
            headers["Authorization"] = f"Bearer {self.read_token}"

        url = f"{self.base_url}/{endpoint}"
        log_service.tmdb(f"GET {endpoint} page={params.get('page', '-')}")

        try:
            response = await self.client.get(url, params=params, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            log_service.error(f"TMDB API error: {endpoint}: {e.response.status_code}")
            raise TMDBError(
                f"tmdb request failed: {e.response.status_code} {e.response.reason_phrase}"
            ) from e
        except httpx.HTTPError as e:
            log_service.error(f"TMDB transport error: {endpoint}: {e}")
            raise TMDBError(f"tmdb request failed: {e}") from e
        except ValueError as e:
            log_service.error(f"TMDB decode error: {endpoint}: {e}")
            raise TMDBError("tmdb returned invalid JSON") from e

        if not isinstance(data, expect):
            log_service.error(
                f"TMDB decode error: {endpoint}: expected {expect.__name__}, "
                f"got {type(data).__name__}"
            )
            raise TMDBError("tmdb returned an unexpected payload")
        return data

    @staticmethod
    def _check_media_type(media_type: str):
        if media_type not in MEDIA_TYPES:
            raise ValueError("invalid media type")

    async def search_page(self, query: str, media_type: str, page: int = 1) -> ProviderPage:
        """Search movies or TV shows by title"""
        query = query.strip()
        if not query:
            return ProviderPage(results=[])
        self._check_media_type(media_type)

        data = await self._request(
            f"search/{media_type}",
            {"query": query, "page": max(page, 1), "include_adult": "false"},
        )
        return self.parse_page(data, media_type)

    async def search_multi_page(self, query: str, page: int = 1) -> ProviderPage:
        """Search movies and TV shows together (people are dropped)"""
        query = query.strip()
        if not query:
            return ProviderPage(results=[])

        data = await self._request(
            "search/multi",
            {"query": query, "page": max(page, 1), "include_adult": "false"},
        )
        return self.parse_page(data)

    async def discover_page(
        self, media_type: str, filters: DiscoverFilters, page: int = 1
    ) -> ProviderPage:
        """Browse titles by attributes"""
        self._check_media_type(media_type)

        params = {
            "include_adult": "false",
            "sort_by": filters.sort.strip() or "popularity.desc",
            "page": max(page, 1),
        }
        if filters.min_rating is not None:
            params["vote_average.gte"] = f"{filters.min_rating:g}"
        if filters.min_votes:
            params["vote_count.gte"] = filters.min_votes
        if filters.genres.strip():
            params["with_genres"] = filters.genres.strip()
        if filters.origin_country.strip():
            params["with_origin_country"] = filters.origin_country.strip()
        if filters.original_language.strip():
            params["with_original_language"] = filters.original_language.strip()

        date_key = "primary_release_date" if media_type == "movie" else "first_air_date"
        if filters.year_from is not None:
            params[f"{date_key}.gte"] = f"{filters.year_from:04d}-01-01"
        if filters.year_to is not None:
            params[f"{date_key}.lte"] = f"{filters.year_to:04d}-12-31"

        data = await self._request(f"discover/{media_type}", params)
        return self.parse_page(data, media_type)

    async def fetch_genres(self, media_type: str) -> Dict[int, str]:
        """Genre id -> name for one media type"""
        self._check_media_type(media_type)
        data = await self._request(f"genre/{media_type}/list")
        return {
            g["id"]: g.get("name", "")
            for g in _objects(data.get("genres"))
            if g.get("id") is not None
        }

    async def fetch_countries(self) -> Dict[str, str]:
        """ISO 3166-1 code -> English name"""
        data = await self._request("configuration/countries", expect=list)
        out = {}
        for item in _objects(data):
            code = (item.get("iso_3166_1") or "").strip()
            if not code:
                continue
            out[code] = (item.get("english_name") or "").strip()
        return out

    async def fetch_languages(self) -> Dict[str, str]:
        """ISO 639-1 code -> English name (native name as fallback)"""
        data = await self._request("configuration/languages", expect=list)
        out = {}
        for item in _objects(data):
            code = (item.get("iso_639_1") or "").strip()
            if not code:
                continue
            name = (item.get("english_name") or "").strip()
            out[code] = name or (item.get("name") or "").strip()
        return out

    async def fetch_details(self, tmdb_id: int, media_type: str) -> Detail:
        """Get movie or show details including the IMDb id"""
        self._check_media_type(media_type)
        data = await self._request(
            f"{media_type}/{tmdb_id}", {"append_to_response": "external_ids"}
        )

        if media_type == "tv":
            title = data.get("name") or ""
            year = year_from_date(data.get("first_air_date"))
        else:
            title = data.get("title") or ""
            year = year_from_date(data.get("release_date"))

        countries = [
            c.strip()
            for c in data.get("origin_country") or []
            if isinstance(c, str) and c.strip()
        ]
        if not countries:
            countries = [
                (c.get("iso_3166_1") or "").strip()
                for c in _objects(data.get("production_countries"))
                if (c.get("iso_3166_1") or "").strip()
            ]

        return Detail(
            tmdb_id=data.get("id") or tmdb_id,
            media_type=media_type,
            title=title,
            year=year,
            overview=data.get("overview") or "",
            poster_path=data.get("poster_path"),
            imdb_id=_external_imdb_id(data),
            genres=[
                g["name"].strip()
                for g in _objects(data.get("genres"))
                if (g.get("name") or "").strip()
            ],
            origin_country=countries,
            vote_average=data.get("vote_average") or 0.0,
            vote_count=data.get("vote_count") or 0,
        )

    def parse_media_item(self, item: Dict, media_type: str = None) -> Optional[SearchItem]:
        """Parse TMDB item into a SearchItem, None for people and other kinds"""
        if media_type is None:
            media_type = item.get("media_type")
        if media_type not in MEDIA_TYPES:
            return None

        # Handle both movie and TV naming
        if media_type == "movie":
            title = item.get("title") or ""
            release_date = item.get("release_date")
        else:
            title = item.get("name") or ""
            release_date = item.get("first_air_date")

        return SearchItem(
            id=item.get("id") or 0,
            media_type=media_type,
            title=title,
            year=year_from_date(release_date),
            poster_path=item.get("poster_path"),
            overview=item.get("overview") or "",
            vote_average=float(item.get("vote_average") or 0),
            vote_count=int(item.get("vote_count") or 0),
            genre_ids=[g for g in item.get("genre_ids") or [] if isinstance(g, int)],
            origin_country=[c for c in item.get("origin_country") or [] if isinstance(c, str)],
            original_language=item.get("original_language") or "",
        )

    def parse_page(self, data: Dict, media_type: str = None) -> ProviderPage:
        raw = data.get("results") or []
        if not isinstance(raw, list):
            log_service.error(f"TMDB decode error: results is a {type(raw).__name__}")
            raise TMDBError("tmdb returned an unexpected payload")
        results = []
        for entry in raw:
            if not isinstance(entry, dict):
                continue
            parsed = self.parse_media_item(entry, media_type)
            if parsed is not None:
                results.append(parsed)

        return ProviderPage(
            results=results,
            page=data.get("page") or 1,
            total_pages=min(data.get("total_pages") or 0, PROVIDER_MAX_PAGES),
            total_results=data.get("total_results") or 0,
            dropped=len(raw) - len(results),
        )

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()
