"""
Database Session Module

Async engine, session factory and the FastAPI session dependency. SQLite
(aiosqlite) is the development default; server databases such as Postgres
(asyncpg) also get pool sizing.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from ..utils.config import settings
from ..utils.logger import db_logger as logger


def _engine_options(url: str) -> dict:
    options = {"echo": settings.SQL_ECHO, "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        options.update(pool_size=5, max_overflow=10, pool_recycle=3600)
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    """
    Yield one session per request, rolling back if the handler raises.

    Yields:
        AsyncSession bound to the application engine
    """
    async with async_session() as db:
        try:
            yield db
        except Exception as e:
            logger.error(f"Rolling back request session: {str(e)}")
            await db.rollback()
            raise


async def init_db(bind=None):
    """Create any missing tables on the given engine (the application engine by default)."""
    from .models import Base

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Tables ready: {', '.join(sorted(Base.metadata.tables))}")


async def check_db_connection() -> bool:
    try:
        async with async_session() as db:
            await db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection error: {str(e)}")
        return False
