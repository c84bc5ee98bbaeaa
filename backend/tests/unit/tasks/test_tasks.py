"""
Unit tests for the scheduled ecosystem scrape.
"""
import pytest

from matchmaker.db import crud
from matchmaker.services.redis import RedisService
from matchmaker.tasks.celery_app import celery_app
from matchmaker.tasks.tasks import ENABLED_KEY, STATUS_KEY, is_scraper_enabled, run_ecosystem_scrape


@pytest.fixture
def redis(fake_redis):
    return RedisService(client=fake_redis)


def test_beat_schedule_registered():
    entry = celery_app.conf.beat_schedule["scrape-ecosystem"]
    assert entry["task"] == "scheduled_ecosystem_scrape"
    assert entry["schedule"] == 24 * 3600.0


@pytest.mark.asyncio
async def test_run_imports_fallback_data_for_first_admin(redis, offline_service, session_factory):
    async with session_factory() as db:
        admin = await crud.create_user(db, "admin@example.com", "hash", role="ADMIN")
        admin_id = admin.id

    record = await run_ecosystem_scrape(redis, service=offline_service, session_factory=session_factory)

    assert record["status"] == "completed"
    assert record["provenance"] == "fallback"
    assert record["imported"]["opportunities"] >= 1
    assert record["errors"] == []
    assert (await redis.get(STATUS_KEY))["status"] == "completed"

    async with session_factory() as db:
        opportunities = await crud.get_opportunities(db)
        assert opportunities
        assert {o.creator_user_id for o in opportunities} == {admin_id}


@pytest.mark.asyncio
async def test_run_is_skipped_when_disabled(redis, offline_service, session_factory):
    await redis.set(ENABLED_KEY, False)
    assert await is_scraper_enabled(redis) is False

    record = await run_ecosystem_scrape(redis, service=offline_service, session_factory=session_factory)
    assert record["status"] == "skipped"
    assert await redis.get(STATUS_KEY) is None

    forced = await run_ecosystem_scrape(redis, service=offline_service, session_factory=session_factory,
                                        force=True)
    assert forced["status"] == "completed"


@pytest.mark.asyncio
async def test_scraper_enabled_by_default(redis):
    assert await is_scraper_enabled(redis) is True
