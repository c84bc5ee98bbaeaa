"""
Admin Routes Module

Scheduler controls for the periodic ecosystem scrape and user role management.
All endpoints require the ADMIN role.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import crud, schemas
from ..db.session import get_db
from ..services.redis import redis_service
from ..tasks.tasks import ENABLED_KEY, STATUS_KEY, is_scraper_enabled, scheduled_ecosystem_scrape
from ..utils.config import settings
from ..utils.logger import api_logger as logger
from .auth import require_role

router = APIRouter(tags=["Admin"], dependencies=[Depends(require_role("ADMIN"))])


@router.get("/scraper/status")
async def scraper_status():
    return {
        "enabled": await is_scraper_enabled(redis_service),
        "interval_hours": settings.SCRAPE_INTERVAL_HOURS,
        "last_run": await redis_service.get(STATUS_KEY),
    }


@router.post("/scraper/trigger", status_code=status.HTTP_202_ACCEPTED)
async def trigger_scraper():
    """Queue a discovery run now, even if the schedule is paused."""
    try:
        task = scheduled_ecosystem_scrape.delay(force=True)
    except Exception as e:
        logger.error(f"Failed to queue ecosystem scrape: {str(e)}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Task queue unavailable")
    logger.info(f"Queued ecosystem scrape {task.id}")
    return {"task_id": task.id, "status": "queued"}


async def _set_enabled(enabled: bool) -> dict:
    if not await redis_service.set(ENABLED_KEY, enabled, expire=365 * 24 * 3600):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Scheduler state unavailable")
    logger.info(f"Scheduled scraping {'enabled' if enabled else 'disabled'}")
    return {"enabled": enabled}


@router.post("/scraper/start")
async def start_scraper():
    return await _set_enabled(True)


@router.post("/scraper/stop")
async def stop_scraper():
    return await _set_enabled(False)


@router.get("/users", response_model=List[schemas.UserResponse])
async def list_users(skip: int = 0, limit: int = 100, db: AsyncSession = Depends(get_db)):
    return await crud.get_users(db, skip=skip, limit=limit)


@router.patch("/users/{user_id}/role", response_model=schemas.UserResponse)
async def change_role(user_id: int, update: schemas.RoleUpdate, db: AsyncSession = Depends(get_db)):
    user = await crud.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return await crud.update_user_role(db, user, update.role)
