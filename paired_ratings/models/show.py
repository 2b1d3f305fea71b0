"""Library show model"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from ..database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Show(Base):
    """A movie or TV show in the shared library, with both ratings"""

    __tablename__ = "shows"
    __table_args__ = (
        UniqueConstraint("tmdb_id", "media_type", name="uq_shows_tmdb"),
        Index("idx_shows_status", "status"),
        Index("idx_shows_year", "year"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tmdb_id = Column(Integer, nullable=False)
    media_type = Column(String(10), nullable=False)  # 'movie' or 'tv'
    title = Column(String(255), nullable=False)
    year = Column(Integer)
    genres = Column(Text)  # "Drama, Crime"
    overview = Column(Text)
    poster_path = Column(Text)
    imdb_id = Column(String(20))
    tmdb_rating = Column(Float)
    tmdb_votes = Column(Integer)

    status = Column(String(10), nullable=False, default="planned")  # planned|watched
    bf_rating = Column(Integer)
    gf_rating = Column(Integer)
    bf_comment = Column(Text)
    gf_comment = Column(Text)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    @property
    def average_rating(self):
        """Mean of the ratings that are set, None when both are empty"""
        ratings = [r for r in (self.bf_rating, self.gf_rating) if r is not None]
        if not ratings:
            return None
        return sum(ratings) / len(ratings)

    def __repr__(self):
        return f"<Show {self.media_type}:{self.tmdb_id} - {self.title}>"
