"""
Background tasks for scheduled ecosystem discovery.

The periodic task runs a discovery pass with an ADMIN profile, imports the
results on behalf of the first admin account and records the outcome in
Redis so the admin API can report it. Admins can pause the schedule through
the ``scraper:enabled`` flag.
"""
import asyncio
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import select

from ..db import models
from ..db.schemas import UserProfile
from ..db.session import async_session, engine
from ..services.intelligent_scraper import IntelligentScrapingService
from ..services.redis import RedisService
from ..utils.config import settings
from ..utils.logger import celery_logger as logger
from .celery_app import celery_app

STATUS_KEY = "scraper:status"
ENABLED_KEY = "scraper:enabled"
STATUS_TTL_SECONDS = 7 * 24 * 3600


async def is_scraper_enabled(redis: RedisService) -> bool:
    """Scheduling is on unless an admin explicitly stopped it."""
    enabled = await redis.get(ENABLED_KEY)
    return enabled is None or bool(enabled)


async def _first_admin_id(db) -> Optional[int]:
    result = await db.execute(
        select(models.User.id).where(models.User.role == "ADMIN").order_by(models.User.id).limit(1)
    )
    return result.scalar_one_or_none()


async def run_ecosystem_scrape(
    redis: RedisService,
    service: Optional[IntelligentScrapingService] = None,
    session_factory=async_session,
    force: bool = False
) -> Dict[str, Any]:
    """
    Run one discovery pass and import it.

    Args:
        redis: Redis service the status record is written to
        service: Discovery service (a fresh one if not given)
        session_factory: Async session factory for the import
        force: Run even if the schedule is paused

    Returns:
        The status record that was stored
    """
    if not force and not await is_scraper_enabled(redis):
        logger.info("Scheduled scraping is disabled; skipping run")
        return {"status": "skipped", "finished_at": datetime.utcnow().isoformat()}

    service = service or IntelligentScrapingService()
    started_at = datetime.utcnow().isoformat()
    await redis.set(STATUS_KEY, {"status": "running", "started_at": started_at}, expire=STATUS_TTL_SECONDS)

    result = await service.scrape_for_user(UserProfile(role="ADMIN"))
    async with session_factory() as db:
        admin_id = await _first_admin_id(db)
        report = await service.import_scraped_data(db, result, admin_id)

    finished_at = datetime.utcnow()
    record = {
        "status": "completed",
        "started_at": started_at,
        "finished_at": finished_at.isoformat(),
        "next_run": (finished_at + timedelta(hours=settings.SCRAPE_INTERVAL_HOURS)).isoformat(),
        "provenance": result.provenance,
        "imported": report.imported.model_dump(),
        "errors": report.errors,
    }
    await redis.set(STATUS_KEY, record, expire=STATUS_TTL_SECONDS)
    logger.info(f"Ecosystem scrape finished: {record['imported']} ({len(report.errors)} errors)")
    return record


@celery_app.task(
    bind=True,
    name="scheduled_ecosystem_scrape",
    max_retries=settings.SCRAPE_MAX_RETRIES,
    default_retry_delay=settings.SCRAPE_RETRY_DELAY_SECONDS
)
def scheduled_ecosystem_scrape(self, force: bool = False) -> Dict[str, Any]:
    """Celery entry point; each run gets its own event loop and Redis connection."""
    async def _run():
        redis = RedisService()
        try:
            return await run_ecosystem_scrape(redis, force=force)
        except Exception as e:
            await redis.set(
                STATUS_KEY,
                {"status": "failed", "error": str(e), "finished_at": datetime.utcnow().isoformat()},
                expire=STATUS_TTL_SECONDS,
            )
            raise
        finally:
            await redis.close()
            await engine.dispose()

    try:
        record = asyncio.run(_run())
    except Exception as e:
        logger.error(f"Ecosystem scrape failed: {str(e)}")
        raise self.retry(exc=e)
    return record
