#!/usr/bin/env python3
"""
Paired Ratings Startup Script
"""

import secrets
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))


def generate_env_file():
    """Generate .env file if it doesn't exist"""
    env_path = Path(__file__).parent.parent / ".env"
    env_example = Path(__file__).parent.parent / ".env.example"

    if not env_path.exists():
        if env_example.exists():
            content = env_example.read_text()

            # Replace placeholder with a random secret
            content = content.replace(
                "SECRET_KEY=change-this-to-a-random-secret-key",
                f"SECRET_KEY={secrets.token_urlsafe(48)}",
            )

            env_path.write_text(content)
            print("Generated .env file with random secret key")
        else:
            print("Warning: .env.example not found, using default configuration")


def main():
    generate_env_file()

    import uvicorn
    from paired_ratings.config import settings

    if not settings.APP_PASSWORD:
        print("Warning: APP_PASSWORD is not set, nobody will be able to log in")
    if not (settings.TMDB_API_KEY or settings.TMDB_API_READ_TOKEN):
        print("Warning: TMDB_API_KEY is not set, search and adding titles are disabled")

    print(f"Paired Ratings starting on http://{settings.HOST}:{settings.PORT}")

    uvicorn.run(
        "paired_ratings.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=False,
        log_level="info",
        access_log=True,
    )


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass
