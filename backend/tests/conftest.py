"""
Shared fixtures: an in-memory database, a fake Redis and stub AI clients.
"""
import json
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from matchmaker.db.models import Base
from matchmaker.db.schemas import UserProfile
from matchmaker.services.ai_search import AISearchClient
from matchmaker.services.embeddings import EmbeddingService
from matchmaker.services.intelligent_scraper import IntelligentScrapingService
from matchmaker.utils.storage import StorageService


class FakeRedis:
    """In-memory stand-in for the redis.asyncio client calls RedisService makes."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    async def incr(self, key):
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value

    async def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    async def ping(self):
        return True

    async def aclose(self):
        return None

    def load(self, key):
        return json.loads(self.store[key])


class StubCompletions:
    """Records prompts and answers with canned content, or raises."""

    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def stub_ai_client(content=None, error=None):
    """Object shaped like AsyncOpenAI for chat completions."""
    return SimpleNamespace(chat=SimpleNamespace(completions=StubCompletions(content, error)))


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def storage(tmp_path):
    return StorageService(processed_dir=str(tmp_path / "processed"))


@pytest.fixture
def offline_service(storage):
    """Discovery service with no AI backends and web search disabled."""
    return IntelligentScrapingService(
        ai_client=AISearchClient(),
        embedding_service=EmbeddingService(),
        storage=storage,
        enable_web_search=False,
    )


@pytest.fixture
def founder_profile():
    return UserProfile(id=1, role="FOUNDER", sector="FinTech", location="Malaysia",
                       interests=["payments"], stage="Seed")


@pytest.fixture
def make_ai_client():
    """Factory for stub chat-completion clients: make_ai_client(content=..., error=...)."""
    return stub_ai_client
