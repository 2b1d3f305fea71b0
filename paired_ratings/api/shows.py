"""Library show API routes"""

import json
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..api.auth import get_current_user, require_same_origin
from ..api.search import get_tmdb_service
from ..database import get_db
from ..schemas.shows import (
    AddShowRequest,
    ExportPayload,
    ExportShow,
    RatingsRequest,
    RefreshResponse,
    ShowList,
    ShowResponse,
)
from ..services.library_service import LibraryService, ListFilters, parse_year_bound
from ..services.log_service import log_service
from ..services.tmdb_service import TMDBError, TMDBService

router = APIRouter(prefix="/api", tags=["shows"], dependencies=[Depends(get_current_user)])

EXPORT_FILENAME = "show-ratings.json"


def not_found(e: LookupError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e.args[0]) if e.args else "not found")


@router.get("/shows", response_model=ShowList)
async def list_shows(
    status: str = Query("all"),
    genre: str = Query(""),
    year_from: Optional[str] = Query(None),
    year_to: Optional[str] = Query(None),
    unrated: bool = Query(False),
    sort: str = Query("updated"),
    db: AsyncSession = Depends(get_db),
):
    """List library shows with optional filters"""
    library = LibraryService(db)
    try:
        filters = ListFilters(
            status=status.strip().lower() or "all",
            year_from=parse_year_bound(year_from, "year_from"),
            year_to=parse_year_bound(year_to, "year_to"),
            genre=genre,
            unrated=unrated,
            sort=sort.strip().lower() or "updated",
        )
        shows = await library.list_shows(filters)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return ShowList(
        items=[ShowResponse.model_validate(s) for s in shows],
        total=len(shows),
        genres=await library.list_genres(),
    )


@router.get("/shows/genres")
async def list_show_genres(db: AsyncSession = Depends(get_db)):
    """Genre names present in the library"""
    return {"genres": await LibraryService(db).list_genres()}


@router.get("/shows/{show_id}", response_model=ShowResponse)
async def get_show(show_id: int, db: AsyncSession = Depends(get_db)):
    try:
        return await LibraryService(db).require_show(show_id)
    except LookupError as e:
        raise not_found(e)


@router.post(
    "/shows",
    response_model=ShowResponse,
    status_code=201,
    dependencies=[Depends(require_same_origin)],
)
async def add_show(
    data: AddShowRequest,
    db: AsyncSession = Depends(get_db),
    tmdb: TMDBService = Depends(get_tmdb_service),
):
    """Add a TMDB title to the library, or refresh it if already there"""
    library = LibraryService(db, tmdb)
    try:
        return await library.add_from_tmdb(data.tmdb_id, data.media_type, data.status)
    except TMDBError as e:
        log_service.error(f"add {data.media_type}:{data.tmdb_id} failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))


@router.delete(
    "/shows/{show_id}", status_code=204, dependencies=[Depends(require_same_origin)]
)
async def delete_show(show_id: int, db: AsyncSession = Depends(get_db)):
    try:
        await LibraryService(db).delete_show(show_id)
    except LookupError as e:
        raise not_found(e)
    return Response(status_code=204)


@router.post(
    "/shows/{show_id}/ratings",
    response_model=ShowResponse,
    dependencies=[Depends(require_same_origin)],
)
async def rate_show(show_id: int, data: RatingsRequest, db: AsyncSession = Depends(get_db)):
    """Save both ratings and comments; marks the show watched"""
    try:
        return await LibraryService(db).update_ratings(
            show_id,
            bf_rating=data.bf_rating,
            gf_rating=data.gf_rating,
            bf_comment=data.bf_comment,
            gf_comment=data.gf_comment,
        )
    except LookupError as e:
        raise not_found(e)


@router.post(
    "/shows/{show_id}/toggle-status",
    response_model=ShowResponse,
    dependencies=[Depends(require_same_origin)],
)
async def toggle_status(show_id: int, db: AsyncSession = Depends(get_db)):
    try:
        return await LibraryService(db).toggle_status(show_id)
    except LookupError as e:
        raise not_found(e)


@router.post(
    "/shows/{show_id}/clear-ratings",
    response_model=ShowResponse,
    dependencies=[Depends(require_same_origin)],
)
async def clear_ratings(show_id: int, db: AsyncSession = Depends(get_db)):
    try:
        return await LibraryService(db).clear_ratings(show_id)
    except LookupError as e:
        raise not_found(e)


@router.post(
    "/shows/{show_id}/refresh-tmdb",
    response_model=ShowResponse,
    dependencies=[Depends(require_same_origin)],
)
async def refresh_show(
    show_id: int,
    db: AsyncSession = Depends(get_db),
    tmdb: TMDBService = Depends(get_tmdb_service),
):
    """Re-fetch one show's TMDB metadata"""
    try:
        return await LibraryService(db, tmdb).refresh_from_tmdb(show_id)
    except LookupError as e:
        raise not_found(e)
    except TMDBError as e:
        log_service.error(f"refresh of show {show_id} failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))


@router.post(
    "/refresh-tmdb",
    response_model=RefreshResponse,
    dependencies=[Depends(require_same_origin)],
)
async def refresh_missing(
    db: AsyncSession = Depends(get_db),
    tmdb: TMDBService = Depends(get_tmdb_service),
):
    """Re-fetch TMDB metadata for every show missing rating, votes or IMDb id"""
    try:
        updated = await LibraryService(db, tmdb).refresh_missing()
    except TMDBError as e:
        log_service.error(f"bulk TMDB refresh failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    return RefreshResponse(updated=updated)


@router.post("/export", dependencies=[Depends(require_same_origin)])
async def export_shows(db: AsyncSession = Depends(get_db)):
    """Download the whole library as JSON"""
    shows = await LibraryService(db).list_shows(ListFilters())
    payload = ExportPayload(
        exported_at=datetime.now(timezone.utc),
        shows=[ExportShow.model_validate(s) for s in shows],
    )
    body = json.dumps(payload.model_dump(mode="json"), indent=2)
    log_service.info(f"Exported {len(shows)} shows")
    return Response(
        content=body,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )
