"""
Configuration Module

Application settings read from the environment and the project's .env file.

Every key has a default so the package can be imported (and tested) without
any environment configured; external services are simply skipped when their
keys are empty.
"""

import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from typing import List

load_dotenv()

_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "../../../"))
_DEFAULT_DATA_DIR = os.getenv("DATA_DIR", os.path.join(_PROJECT_ROOT, "backend", "matchmaker", "data"))


def parse_origins(env_value: str) -> List[str]:
    """Parse a comma-separated CORS origin list, dropping blanks."""
    return [origin.strip() for origin in env_value.split(",") if origin.strip()]


class Settings(BaseSettings):
    """Validated application settings; names match the environment variables."""

    PROJECT_NAME: str = "Startup Ecosystem Matcher"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./matchmaker.db"
    SQL_ECHO: bool = False

    # Sessions and throttling
    API_SECRET_KEY: str = "change-me-in-production"
    API_ALGORITHM: str = "HS256"
    SESSION_TTL_MINUTES: int = 60 * 24
    RATE_LIMIT_PER_MINUTE: int = 120
    CORS_ORIGIN_LIST: List[str] = parse_origins(
        os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5000")
    )

    # Perplexity (primary AI search backend)
    PERPLEXITY_API_KEY: str = ""
    PERPLEXITY_MODEL: str = "llama-3.1-sonar-small-128k-online"
    PERPLEXITY_BASE_URL: str = "https://api.perplexity.ai"
    PERPLEXITY_TIMEOUT: float = 10.0

    # OpenAI (fallback AI search backend, summaries, embeddings)
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_TIMEOUT: float = 8.0
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"

    # Web search
    ENABLE_WEB_SEARCH: bool = True
    WEB_SEARCH_BASE_URL: str = "https://duckduckgo.com/html/"
    WEB_SEARCH_TIMEOUT: float = 10.0
    WEB_SEARCH_MAX_PAGES: int = 5

    # Discovery pipeline
    MIN_CONFIDENCE: float = 0.7
    MAX_RESULTS_PER_TYPE: int = 20
    EMBEDDING_MIN_DESCRIPTION_LENGTH: int = 20

    # Redis and Celery
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    # Scheduled ecosystem scraping
    SCRAPE_INTERVAL_HOURS: int = 24
    SCRAPE_MAX_RETRIES: int = 3
    SCRAPE_RETRY_DELAY_SECONDS: int = 300

    LOG_LEVEL: str = "INFO"

    # Snapshots and log files
    DATA_DIR: str = _DEFAULT_DATA_DIR
    PROCESSED_DATA_DIR: str = os.path.join(_DEFAULT_DATA_DIR, "processed")
    MAX_SNAPSHOTS_PER_USER: int = 20
    LOGS_DIR: str = os.path.join(_DEFAULT_DATA_DIR, "logs")

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        for dir_path in [self.DATA_DIR, self.PROCESSED_DATA_DIR, self.LOGS_DIR]:
            os.makedirs(dir_path, exist_ok=True)

    class Config:
        env_file = os.path.join(_PROJECT_ROOT, ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
