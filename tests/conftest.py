import os
from collections.abc import AsyncGenerator, Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import docuflow.v1.models  # noqa: F401
from docuflow.config.settings import settings
from docuflow.infra.database import Base, close_database, get_session
from docuflow.main import create_app


def _async_database_url() -> str | None:
    url = os.getenv("DATABASE_URL")
    if not url or "postgresql" not in url:
        return None
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


@pytest.fixture
def mock_session():
    """AsyncSession stand-in whose queries all return an empty/zero result."""
    session = AsyncMock(spec=AsyncSession)
    result = MagicMock()
    result.scalar.return_value = 0
    result.scalar_one_or_none.return_value = None
    result.scalars.return_value.all.return_value = []
    session.execute.return_value = result
    return session


@pytest.fixture
def simple_app(mock_session):
    """Application with the database dependency replaced by ``mock_session``."""
    app = create_app()

    async def override_session():
        yield mock_session

    app.dependency_overrides[get_session] = override_session
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def simple_client(simple_app) -> Generator[TestClient, None, None]:
    with TestClient(simple_app) as test_client:
        yield test_client


@pytest.fixture
def storage_dirs(tmp_path, monkeypatch):
    """Point uploads and exports at a per-test directory."""
    upload_dir = tmp_path / "uploads"
    export_dir = tmp_path / "exports"
    monkeypatch.setattr(settings, "upload_dir", str(upload_dir))
    monkeypatch.setattr(settings, "export_dir", str(export_dir))
    return upload_dir, export_dir


@pytest.fixture
async def test_engine(monkeypatch):
    """Fresh schema on the PostgreSQL database named by DATABASE_URL."""
    database_url = _async_database_url()
    if database_url is None:
        pytest.skip("DATABASE_URL (PostgreSQL) not set")

    monkeypatch.setattr(settings, "database_url", database_url)
    engine = create_async_engine(database_url, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()
    # The worker's global engine is bound to this test's event loop
    await close_database()


@pytest.fixture
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def app(session_factory, storage_dirs):
    app = create_app()

    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
