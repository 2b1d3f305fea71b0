"""Services layer"""

from .auth_service import AuthService
from .library_service import LibraryService
from .log_service import LogService
from .reference_cache import ReferenceCache
from .search_service import SearchService
from .tmdb_service import TMDBService

__all__ = [
    "LogService",
    "AuthService",
    "TMDBService",
    "ReferenceCache",
    "SearchService",
    "LibraryService",
]
