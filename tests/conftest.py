"""Shared pytest fixtures: in-memory database, fake TMDB, API clients."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from paired_ratings.api.search import get_tmdb_service
from paired_ratings.config import settings
from paired_ratings.database import Base, get_db
from paired_ratings.main import app
from paired_ratings.services import auth_service
from paired_ratings.services.auth_service import AuthService
from paired_ratings.services.reference_cache import clear_reference_caches
from tests.utils import ORIGIN, TEST_PASSWORD, FakeTMDB


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(auth_service, "pwd_context", CryptContext(schemes=["plaintext"]))
    monkeypatch.setattr(settings, "APP_PASSWORD", TEST_PASSWORD)
    monkeypatch.setattr(settings, "ENV", "local")
    auth_service._hash_for.cache_clear()
    clear_reference_caches()
    yield
    auth_service._hash_for.cache_clear()
    clear_reference_caches()


@pytest.fixture()
def fake_tmdb() -> FakeTMDB:
    return FakeTMDB()


@pytest_asyncio.fixture()
async def session() -> AsyncSession:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    TestingSession = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    try:
        async with TestingSession() as session:
            yield session
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def anon_client(session: AsyncSession, fake_tmdb: FakeTMDB) -> AsyncClient:
    async def _get_test_db():
        yield session

    async def _get_fake_tmdb():
        yield fake_tmdb

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_tmdb_service] = _get_fake_tmdb
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_tmdb_service, None)


@pytest_asyncio.fixture()
async def client(anon_client: AsyncClient) -> AsyncClient:
    anon_client.headers["Authorization"] = f"Bearer {AuthService.create_access_token()}"
    anon_client.headers.update(ORIGIN)
    return anon_client
