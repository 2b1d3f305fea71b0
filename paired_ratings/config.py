"""Configuration management"""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Secret Key
    SECRET_KEY: str = "change-this-to-a-random-secret-key"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/paired-ratings.db"

    # Shared household password
    APP_PASSWORD: str = ""

    # JWT session cookie
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 90  # 90 days
    ALGORITHM: str = "HS256"
    AUTH_COOKIE_NAME: str = "auth"

    # "local" or "production" (production cookies are Secure + SameSite=None)
    ENV: str = "local"

    # Directories
    BASE_DIR: Path = Path(__file__).parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    LOGS_DIR: Path = DATA_DIR / "logs"
    STATIC_DIR: Path = BASE_DIR / "web" / "dist"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    ALLOWED_ORIGINS: Optional[str] = None  # Comma-separated origins for main API

    # TMDB
    TMDB_API_KEY: Optional[str] = None
    TMDB_API_READ_TOKEN: Optional[str] = None
    TMDB_IMAGE_BASE: str = "https://image.tmdb.org/t/p/w342"
    TMDB_TIMEOUT_SECONDS: float = 10.0

    # Display names for the two raters
    BF_NAME: str = "Boyfriend"
    GF_NAME: str = "Girlfriend"

    class Config:
        env_file = ".env"
        case_sensitive = True

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Ensure directories exist
        self.DATA_DIR.mkdir(exist_ok=True, parents=True)
        self.LOGS_DIR.mkdir(exist_ok=True, parents=True)

    @property
    def is_production(self) -> bool:
        return self.ENV.strip().lower() == "production"


# Global settings instance
settings = Settings()
