"""
Celery application for the periodic ecosystem discovery run.

Start a worker and the beat scheduler with:

    celery -A matchmaker.tasks.celery_app worker --beat
"""
import os
from celery import Celery

from ..utils.config import settings
from ..utils.logger import get_logger

logger = get_logger("celery")

celery_app = Celery(
    "startup_ecosystem_matcher",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["matchmaker.tasks.tasks"]
)

# One discovery run can take a while; keep workers to one task at a time.
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=3600,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
)

# CELERY_* environment variables override the above (e.g. CELERY_TASK_TIME_LIMIT)
celery_app.conf.update(
    {k[len("CELERY_"):].lower(): v for k, v in os.environ.items()
     if k.startswith("CELERY_") and k not in ("CELERY_BROKER_URL", "CELERY_RESULT_BACKEND")}
)

celery_app.conf.beat_schedule = {
    "scrape-ecosystem": {
        "task": "scheduled_ecosystem_scrape",
        "schedule": settings.SCRAPE_INTERVAL_HOURS * 3600.0,
        "options": {"expires": 3600},
    }
}

logger.info(f"Celery configured; ecosystem scrape every {settings.SCRAPE_INTERVAL_HOURS}h")
