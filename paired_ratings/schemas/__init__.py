"""Pydantic schemas for validation"""

from .auth import LoginRequest, SessionResponse
from .search import (
    CountriesResponse,
    GenresResponse,
    LanguagesResponse,
    ResolveResponse,
    SearchItemResponse,
    SearchResponse,
)
from .shows import (
    AddShowRequest,
    ExportPayload,
    RatingsRequest,
    RefreshResponse,
    ShowList,
    ShowResponse,
)

__all__ = [
    "LoginRequest",
    "SessionResponse",
    "SearchItemResponse",
    "SearchResponse",
    "GenresResponse",
    "CountriesResponse",
    "LanguagesResponse",
    "ResolveResponse",
    "AddShowRequest",
    "RatingsRequest",
    "RefreshResponse",
    "ShowResponse",
    "ShowList",
    "ExportPayload",
]
