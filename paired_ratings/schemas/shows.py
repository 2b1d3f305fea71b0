"""Library show schemas"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class AddShowRequest(BaseModel):
    """Schema for adding a title to the library"""

    tmdb_id: int = Field(..., gt=0)
    media_type: str = Field(..., pattern="^(movie|tv)$")
    status: str = Field("planned", pattern="^(planned|watched)$")


class RatingsRequest(BaseModel):
    """Ratings and comments for both raters.

    Ratings outside 1..10 are clamped, empty comments are stored as null.
    """

    bf_rating: Optional[int] = None
    gf_rating: Optional[int] = None
    bf_comment: Optional[str] = None
    gf_comment: Optional[str] = None

    @field_validator("bf_rating", "gf_rating", mode="before")
    @classmethod
    def blank_rating_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ShowResponse(BaseModel):
    """Library show"""

    id: int
    tmdb_id: int
    media_type: str
    title: str
    year: Optional[int] = None
    genres: Optional[str] = None
    overview: Optional[str] = None
    poster_path: Optional[str] = None
    imdb_id: Optional[str] = None
    tmdb_rating: Optional[float] = None
    tmdb_votes: Optional[int] = None
    status: str
    bf_rating: Optional[int] = None
    gf_rating: Optional[int] = None
    bf_comment: Optional[str] = None
    gf_comment: Optional[str] = None
    average_rating: Optional[float] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ShowList(BaseModel):
    """Filtered library listing"""

    items: List[ShowResponse]
    total: int
    genres: List[str]


class RefreshResponse(BaseModel):
    updated: int


class ExportShow(BaseModel):
    id: int
    tmdb_id: int
    media_type: str
    title: str
    year: Optional[int] = None
    genres: Optional[str] = None
    overview: Optional[str] = None
    poster_path: Optional[str] = None
    imdb_id: Optional[str] = None
    tmdb_rating: Optional[float] = None
    tmdb_votes: Optional[int] = None
    status: str
    bf_rating: Optional[int] = None
    gf_rating: Optional[int] = None
    bf_comment: Optional[str] = None
    gf_comment: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ExportPayload(BaseModel):
    exported_at: datetime
    shows: List[ExportShow]
