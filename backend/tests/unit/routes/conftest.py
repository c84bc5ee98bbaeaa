"""
HTTP test client wired to an in-memory database, a fake Redis and an
offline discovery service.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from matchmaker.db.models import Base
from matchmaker.db.session import get_db
from matchmaker.main import app
from matchmaker.routes.discovery import get_scraping_service
from matchmaker.services.redis import redis_service

PASSWORD = "Str0ngPassword"


@pytest.fixture
def client(fake_redis, offline_service, monkeypatch):
    monkeypatch.setattr(redis_service, "redis", fake_redis)

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    state = {"ready": False}

    async def override_get_db():
        if not state["ready"]:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            state["ready"] = True
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_scraping_service] = lambda: offline_service
    with TestClient(app) as test_client:
        yield test_client
        test_client.portal.call(engine.dispose)
    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """register(email, role) -> auth headers for a fresh account."""
    def _register(email, role="FOUNDER"):
        response = client.post("/api/auth/register", json={"email": email, "password": PASSWORD, "role": role})
        assert response.status_code == 201, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}
    return _register
