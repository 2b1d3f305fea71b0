"""Main FastAPI application"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_swagger_ui_html

from .api import auth, search, shows, system
from .api.auth import get_current_user
from .config import settings
from .database import engine, init_db
from .services.log_service import log_service
from .spa import mount_spa


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    await init_db()
    log_service.info("Database initialized")
    try:
        yield
    except asyncio.CancelledError:
        pass  # Suppress CancelledError during shutdown
    finally:
        await engine.dispose()


# Create FastAPI app with protected docs
app = FastAPI(
    title="Paired Ratings",
    description="Shared movie and TV watchlist with ratings from two people",
    version=system.VERSION,
    lifespan=lifespan,
    docs_url=None,  # Disable default docs
    redoc_url=None,  # Disable default redoc
    openapi_url=None,
)

# If ALLOWED_ORIGINS is not set, default to ["*"] without credentials
allowed_origins = ["*"]
allow_credentials = False  # Credentials cannot be used with "*"

if settings.ALLOWED_ORIGINS:
    allowed_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]
    allow_credentials = True

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(auth.router)
app.include_router(search.router)
app.include_router(shows.router)
app.include_router(system.router)


# Root API endpoint
@app.get("/api")
async def api_root(current_user: str = Depends(get_current_user)):
    """API root"""
    return {
        "name": "Paired Ratings API",
        "version": system.VERSION,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# API Documentation
@app.get("/docs", include_in_schema=False)
async def custom_swagger_ui_html(current_user: str = Depends(get_current_user)):
    """Swagger UI - requires authentication"""
    return get_swagger_ui_html(
        openapi_url="/openapi.json",
        title=app.title + " - Swagger UI",
        swagger_js_url="https://cdn.jsdelivr.net/npm/swagger-ui-dist@5/swagger-ui-bundle.js",
        swagger_css_url="https://cdn.jsdelivr.net/npm/swagger-ui-dist@5/swagger-ui.css",
    )


@app.get("/openapi.json", include_in_schema=False)
async def get_open_api_endpoint(current_user: str = Depends(get_current_user)):
    """OpenAPI schema - requires authentication"""
    from fastapi.openapi.utils import get_openapi

    return get_openapi(title=app.title, version=app.version, routes=app.routes)


# Mounted last so API routes take precedence
if not mount_spa(app, settings.STATIC_DIR):
    log_service.info(f"Web client not built at {settings.STATIC_DIR}; serving API only")
