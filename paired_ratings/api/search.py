"""Search API routes"""

from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..api.auth import get_current_user
from ..database import get_db
from ..schemas.search import (
    CodeName,
    CountriesResponse,
    GenreOut,
    GenresResponse,
    LanguagesResponse,
    ResolveResponse,
    SearchItemResponse,
    SearchResponse,
)
from ..services.library_service import LibraryService
from ..services.log_service import log_service
from ..services.reference_cache import ALL, country_cache, genre_cache, language_cache
from ..services.search_service import SearchCriteria, SearchService
from ..services.tmdb_service import MEDIA_TYPES, TMDBError, TMDBService

router = APIRouter(
    prefix="/api/search", tags=["search"], dependencies=[Depends(get_current_user)]
)


async def get_tmdb_service():
    """Get TMDB service instance, closed after the request"""
    tmdb = TMDBService.from_settings()
    if not tmdb.configured:
        await tmdb.close()
        raise HTTPException(status_code=400, detail="TMDB API key not configured")

    try:
        yield tmdb
    finally:
        await tmdb.close()


def bad_gateway(e: TMDBError) -> HTTPException:
    return HTTPException(status_code=502, detail=str(e))


@router.get("", response_model=SearchResponse)
async def search(
    q: Optional[str] = Query(None),
    media_type: Optional[str] = Query(None),
    year_from: Optional[str] = Query(None),
    year_to: Optional[str] = Query(None),
    min_rating: Optional[str] = Query(None),
    min_votes: Optional[str] = Query(None),
    genres: Optional[str] = Query(None),
    genre_mode: Optional[str] = Query(None),
    origin_country: Optional[str] = Query(None),
    original_language: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    tmdb: TMDBService = Depends(get_tmdb_service),
):
    """Search by title or discover by attributes, one page of 20 at a time"""
    try:
        criteria = SearchCriteria.from_params(
            q=q,
            media_type=media_type,
            year_from=year_from,
            year_to=year_to,
            min_rating=min_rating,
            min_votes=min_votes,
            genres=genres,
            genre_mode=genre_mode,
            origin_country=origin_country,
            original_language=original_language,
            sort=sort,
            page=page,
        )
    except ValueError as e:
        log_service.warning(f"search: rejected parameters: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    try:
        result = await SearchService(tmdb).search(criteria)
        genre_names: Dict[str, Dict[int, str]] = {}
        for kind in sorted({item.media_type for item in result.results}):
            genre_names[kind] = await genre_cache.get(tmdb, kind)
    except TMDBError as e:
        log_service.error(f"search failed: {e}")
        raise bad_gateway(e)

    library = LibraryService(db)
    in_library = await library.in_library(
        (item.id, item.media_type) for item in result.results
    )

    items = []
    for item in result.results:
        names = genre_names.get(item.media_type, {})
        items.append(
            SearchItemResponse(
                id=item.id,
                media_type=item.media_type,
                title=item.title,
                year=item.year,
                poster_path=item.poster_path,
                overview=item.overview,
                vote_average=item.vote_average,
                vote_count=item.vote_count,
                genre_ids=item.genre_ids,
                genre_names=[names[g] for g in item.genre_ids if g in names],
                origin_country=item.origin_country,
                original_language=item.original_language,
                in_library=(item.id, item.media_type) in in_library,
            )
        )

    return SearchResponse(
        results=items,
        page=result.page,
        total_pages=result.total_pages,
        total_results=result.total_results,
        totals=result.totals.value,
    )


@router.get("/genres", response_model=GenresResponse)
async def search_genres(tmdb: TMDBService = Depends(get_tmdb_service)):
    """Movie and TV genre lists"""
    out = {}
    try:
        for kind in MEDIA_TYPES:
            genres = await genre_cache.get(tmdb, kind)
            out[kind] = [
                GenreOut(id=gid, name=name)
                for gid, name in sorted(genres.items(), key=lambda g: g[1].lower())
            ]
    except TMDBError as e:
        raise bad_gateway(e)
    return GenresResponse(**out)


@router.get("/countries", response_model=CountriesResponse)
async def search_countries(tmdb: TMDBService = Depends(get_tmdb_service)):
    """Origin country choices"""
    try:
        countries = await country_cache.get(tmdb, ALL)
    except TMDBError as e:
        raise bad_gateway(e)
    return CountriesResponse(
        countries=[
            CodeName(code=code, name=name or code)
            for code, name in sorted(countries.items(), key=lambda c: (c[1] or c[0]).lower())
        ]
    )


@router.get("/languages", response_model=LanguagesResponse)
async def search_languages(tmdb: TMDBService = Depends(get_tmdb_service)):
    """Original language choices"""
    try:
        languages = await language_cache.get(tmdb, ALL)
    except TMDBError as e:
        raise bad_gateway(e)
    return LanguagesResponse(
        languages=[
            CodeName(code=code, name=name or code)
            for code, name in sorted(languages.items(), key=lambda c: (c[1] or c[0]).lower())
        ]
    )


@router.get("/resolve", response_model=ResolveResponse)
async def resolve(
    tmdb_id: int = Query(..., gt=0),
    media_type: str = Query(..., pattern="^(movie|tv)$"),
    db: AsyncSession = Depends(get_db),
):
    """Library id for a search result, if it was already added"""
    show = await LibraryService(db).get_by_tmdb(tmdb_id, media_type)
    if show is None:
        return ResolveResponse(in_library=False)
    return ResolveResponse(in_library=True, id=show.id)
