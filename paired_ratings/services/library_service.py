"""Library management service"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, case, delete, func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.show import Show, utcnow
from .log_service import log_service
from .tmdb_service import Detail, TMDBService, parse_year

STATUSES = ("planned", "watched")
LIST_SORTS = ("updated", "avg", "bf", "gf", "year", "title")

TMDBRef = Tuple[int, str]


def parse_year_bound(raw: Optional[str], name: str) -> Optional[int]:
    """Year filter from a query string; blank means unset"""
    if raw is None or not raw.strip():
        return None
    year = parse_year(raw)
    if year is None:
        raise ValueError(f"invalid {name}: {raw!r}")
    return year


@dataclass
class ListFilters:
    status: str = "all"
    year_from: Optional[int] = None
    year_to: Optional[int] = None
    genre: str = ""
    unrated: bool = False
    sort: str = "updated"

    def validate(self):
        if self.status not in ("all",) + STATUSES:
            raise ValueError(f"invalid status: {self.status!r}")
        if self.sort not in LIST_SORTS:
            raise ValueError(f"invalid sort: {self.sort!r}")


def parse_rating(value: Optional[int]) -> Optional[int]:
    """Clamp a rating to 1..10; None stays None"""
    if value is None:
        return None
    return min(max(int(value), 1), 10)


def clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def next_status(current: Optional[str]) -> str:
    if (current or "").strip().lower() == "planned":
        return "watched"
    return "planned"


def show_values_from_detail(detail: Detail, status: str) -> Dict:
    """Column values for an upsert; ratings and comments are left alone"""
    return {
        "tmdb_id": detail.tmdb_id,
        "media_type": detail.media_type,
        "title": detail.title,
        "year": detail.year,
        "genres": ", ".join(detail.genres) or None,
        "overview": clean_text(detail.overview),
        "poster_path": clean_text(detail.poster_path),
        "imdb_id": clean_text(detail.imdb_id),
        "tmdb_rating": detail.vote_average if detail.vote_average > 0 else None,
        "tmdb_votes": detail.vote_count if detail.vote_count > 0 else None,
        "status": status,
    }


def _average_rating_expr():
    rated = case((Show.bf_rating.is_not(None), 1), else_=0) + case(
        (Show.gf_rating.is_not(None), 1), else_=0
    )
    total = func.coalesce(Show.bf_rating, 0) + func.coalesce(Show.gf_rating, 0)
    return case(
        (and_(Show.bf_rating.is_(None), Show.gf_rating.is_(None)), None),
        else_=total * 1.0 / rated,
    )


class LibraryService:
    """Manage library shows and both household ratings"""

    def __init__(self, db: AsyncSession, tmdb: Optional[TMDBService] = None):
        self.db = db
        self.tmdb = tmdb

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(Show)
        return sqlite.insert(Show)

    async def upsert_show(self, values: Dict) -> Show:
        """Insert or update by (tmdb_id, media_type)"""
        now = utcnow()
        stmt = self._insert().values(**values, created_at=now, updated_at=now)
        update_cols = {
            key: stmt.excluded[key]
            for key in values
            if key not in ("tmdb_id", "media_type")
        }
        update_cols["updated_at"] = now
        stmt = stmt.on_conflict_do_update(
            index_elements=["tmdb_id", "media_type"], set_=update_cols
        )
        await self.db.execute(stmt)
        await self.db.commit()

        show = await self.get_by_tmdb(values["tmdb_id"], values["media_type"])
        # The upsert bypassed the identity map
        await self.db.refresh(show)
        return show

    async def get_show(self, show_id: int) -> Optional[Show]:
        result = await self.db.execute(select(Show).where(Show.id == show_id))
        return result.scalar_one_or_none()

    async def require_show(self, show_id: int) -> Show:
        show = await self.get_show(show_id)
        if show is None:
            raise LookupError(f"show {show_id} not found")
        return show

    async def get_by_tmdb(self, tmdb_id: int, media_type: str) -> Optional[Show]:
        result = await self.db.execute(
            select(Show).where(Show.tmdb_id == tmdb_id, Show.media_type == media_type)
        )
        return result.scalar_one_or_none()

    async def in_library(self, refs: Iterable[TMDBRef]) -> Dict[TMDBRef, int]:
        """Library ids for the refs that are present"""
        wanted = {
            (tmdb_id, media_type.strip())
            for tmdb_id, media_type in refs
            if tmdb_id and (media_type or "").strip()
        }
        if not wanted:
            return {}

        conditions = [
            and_(Show.tmdb_id == tmdb_id, Show.media_type == media_type)
            for tmdb_id, media_type in sorted(wanted)
        ]
        result = await self.db.execute(
            select(Show.id, Show.tmdb_id, Show.media_type).where(or_(*conditions))
        )
        return {(row.tmdb_id, row.media_type): row.id for row in result}

    async def list_shows(self, filters: ListFilters) -> List[Show]:
        filters.validate()
        query = select(Show)

        if filters.status != "all":
            query = query.where(Show.status == filters.status)
        if filters.year_from is not None:
            query = query.where(Show.year >= filters.year_from)
        if filters.year_to is not None:
            query = query.where(Show.year <= filters.year_to)
        if filters.genre.strip():
            query = query.where(Show.genres.contains(filters.genre.strip(), autoescape=True))
        if filters.unrated:
            query = query.where(Show.bf_rating.is_(None), Show.gf_rating.is_(None))

        order = {
            "avg": _average_rating_expr().desc().nulls_last(),
            "bf": Show.bf_rating.desc().nulls_last(),
            "gf": Show.gf_rating.desc().nulls_last(),
            "year": Show.year.desc().nulls_last(),
            "title": func.lower(Show.title).asc(),
        }.get(filters.sort)
        if order is not None:
            query = query.order_by(order, Show.updated_at.desc(), Show.id.desc())
        else:
            query = query.order_by(Show.updated_at.desc(), Show.id.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_genres(self) -> List[str]:
        """Distinct genre names across the library"""
        result = await self.db.execute(
            select(Show.genres).where(Show.genres.is_not(None), Show.genres != "")
        )
        seen = set()
        for (genres,) in result:
            for name in genres.split(","):
                name = name.strip()
                if name:
                    seen.add(name)
        return sorted(seen, key=str.lower)

    async def update_ratings(
        self,
        show_id: int,
        bf_rating: Optional[int],
        gf_rating: Optional[int],
        bf_comment: Optional[str],
        gf_comment: Optional[str],
    ) -> Show:
        """Store both ratings and comments; rating a show marks it watched"""
        show = await self.require_show(show_id)
        show.bf_rating = parse_rating(bf_rating)
        show.gf_rating = parse_rating(gf_rating)
        show.bf_comment = clean_text(bf_comment)
        show.gf_comment = clean_text(gf_comment)
        show.status = "watched"
        show.updated_at = utcnow()
        await self.db.commit()
        await self.db.refresh(show)
        return show

    async def toggle_status(self, show_id: int) -> Show:
        show = await self.require_show(show_id)
        show.status = next_status(show.status)
        show.updated_at = utcnow()
        await self.db.commit()
        await self.db.refresh(show)
        return show

    async def clear_ratings(self, show_id: int) -> Show:
        show = await self.require_show(show_id)
        show.bf_rating = None
        show.gf_rating = None
        show.updated_at = utcnow()
        await self.db.commit()
        await self.db.refresh(show)
        return show

    async def delete_show(self, show_id: int):
        await self.require_show(show_id)
        await self.db.execute(delete(Show).where(Show.id == show_id))
        await self.db.commit()
        log_service.info(f"Removed show {show_id} from library")

    async def add_from_tmdb(self, tmdb_id: int, media_type: str, status: str = "planned") -> Show:
        """Fetch details from TMDB and upsert them"""
        if status not in STATUSES:
            status = "planned"
        detail = await self.tmdb.fetch_details(tmdb_id, media_type)
        show = await self.upsert_show(show_values_from_detail(detail, status))
        log_service.info(f"Added {media_type}:{tmdb_id} ({show.title}) as {status}")
        return show

    async def refresh_from_tmdb(self, show_id: int) -> Show:
        show = await self.require_show(show_id)
        detail = await self.tmdb.fetch_details(show.tmdb_id, show.media_type)
        return await self.upsert_show(show_values_from_detail(detail, show.status))

    async def list_tmdb_missing(self) -> List[Tuple[int, str, str]]:
        result = await self.db.execute(
            select(Show.tmdb_id, Show.media_type, Show.status).where(
                or_(
                    Show.tmdb_rating.is_(None),
                    Show.tmdb_votes.is_(None),
                    Show.imdb_id.is_(None),
                )
            )
        )
        return [(row.tmdb_id, row.media_type, row.status) for row in result]

    async def refresh_missing(self) -> int:
        """Re-fetch TMDB data for shows missing rating, votes or IMDb id.

        Stops at the first TMDB failure; shows refreshed before it stay updated.
        """
        updated = 0
        for tmdb_id, media_type, status in await self.list_tmdb_missing():
            detail = await self.tmdb.fetch_details(tmdb_id, media_type)
            await self.upsert_show(show_values_from_detail(detail, status))
            updated += 1
        log_service.info(f"Refreshed TMDB metadata for {updated} shows")
        return updated
