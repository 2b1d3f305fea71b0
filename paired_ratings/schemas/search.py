"""Search and discovery schemas"""

from typing import List, Literal, Optional

from pydantic import BaseModel


class SearchItemResponse(BaseModel):
    """Media item from TMDB, annotated for the library"""

    id: int
    media_type: str  # 'movie' or 'tv'
    title: str
    year: Optional[int] = None
    poster_path: Optional[str] = None
    overview: str = ""
    vote_average: float = 0.0
    vote_count: int = 0
    genre_ids: List[int] = []
    genre_names: List[str] = []
    origin_country: List[str] = []
    original_language: str = ""
    in_library: bool = False


class SearchResponse(BaseModel):
    """One application page of search results"""

    results: List[SearchItemResponse]
    page: int
    total_pages: int
    total_results: int
    totals: Literal["exact", "estimated"] = "exact"


class GenreOut(BaseModel):
    id: int
    name: str


class GenresResponse(BaseModel):
    movie: List[GenreOut]
    tv: List[GenreOut]


class CodeName(BaseModel):
    code: str
    name: str


class CountriesResponse(BaseModel):
    countries: List[CodeName]


class LanguagesResponse(BaseModel):
    languages: List[CodeName]


class ResolveResponse(BaseModel):
    """Library id for a TMDB reference, if it was added"""

    in_library: bool
    id: Optional[int] = None
