"""
Main application module for the Startup Ecosystem Matcher.

Builds the FastAPI app: request logging, per-client rate limiting, CORS, the
API routers and the error envelope every endpoint answers with:

    {"error": {"code": <status>, "message": <text>, "type": <kind>}}
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
import time
from datetime import datetime

from .routes import admin, applications, auth, discovery, listings, profile
from .utils.config import settings
from .utils.logger import configure_loggers
from .db.session import check_db_connection, engine, init_db
from .utils.logger import app_logger as logger
from .services.redis import redis_service

UNTHROTTLED_PATHS = {"/", "/health", "/docs", "/redoc", "/openapi.json", "/favicon.ico"}


def error_response(code: int, message, error_type: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=code,
        content={"error": {"code": code, "message": message, "type": error_type}},
        headers=headers,
    )


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request with its status and duration."""

    async def dispatch(self, request: Request, call_next):
        started = time.time()
        label = f"{request.method} {request.url.path}"
        logger.info(f"Incoming request: {label} Client: {_client_host(request)}")

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Request failed: {label} Error: {str(e)} Duration: {time.time() - started:.3f}s")
            raise

        logger.info(f"Request completed: {label} Status: {response.status_code} "
                    f"Duration: {time.time() - started:.3f}s")
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fixed one-minute window per client address, counted in Redis.
    Requests are let through when Redis cannot be reached.
    """

    async def dispatch(self, request: Request, call_next):
        if request.url.path in UNTHROTTLED_PATHS:
            return await call_next(request)

        client = _client_host(request)
        current = await redis_service.increment(f"rate_limit:{client}", expire=60)
        if current is not None and current > settings.RATE_LIMIT_PER_MINUTE:
            logger.warning(f"Rate limit exceeded for client: {client}")
            return error_response(status.HTTP_429_TOO_MANY_REQUESTS, "Rate limit exceeded", "rate_limit")

        return await call_next(request)


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    Startup Ecosystem Matcher API

    Key Features:
    - Role-aware discovery of grants, accelerators, investors and events
    - AI search with web search and curated fallbacks
    - Opportunity applications and saved listings
    """,
    version=settings.VERSION,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGIN_LIST,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/api/auth")
app.include_router(profile.router, prefix="/api/profile")
app.include_router(profile.onboarding_router, prefix="/api/onboarding")
app.include_router(listings.router, prefix="/api")
app.include_router(applications.router, prefix="/api/applications")
app.include_router(discovery.router, prefix="/api")
app.include_router(admin.router, prefix="/api/admin")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.error(f"HTTP error on {request.url.path}: {exc.status_code} - {exc.detail}")
    return error_response(exc.status_code, exc.detail, "http_error", headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Flatten pydantic errors into one 'field.path: message; ...' string."""
    message = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    logger.warning(f"Validation error on {request.url.path}: {message}")
    return error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, message, "validation_error")


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the real error, answer with a sanitized one."""
    logger.error(f"Unexpected error on {request.url.path}: {str(exc)}", exc_info=True)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred", "internal_error")


@app.get("/", include_in_schema=False)
async def root():
    return {
        "name": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "documentation": "/docs",
        "health": "/health"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """'healthy' when both the database and Redis answer, otherwise 'degraded'."""
    db_ok = await check_db_connection()
    redis_ok = await redis_service.ping()

    def state(ok: bool) -> dict:
        return {"status": "connected" if ok else "disconnected"}

    return {
        "status": "healthy" if db_ok and redis_ok else "degraded",
        "version": settings.VERSION,
        "components": {
            "database": state(db_ok),
            "redis": state(redis_ok),
            "api": {
                "status": "active",
                "rate_limit": settings.RATE_LIMIT_PER_MINUTE,
                "environment": settings.ENVIRONMENT
            }
        },
        "timestamp": datetime.now().isoformat()
    }


@app.on_event("startup")
async def startup_event():
    configure_loggers(settings.LOGS_DIR)
    logger.info(f"Starting {settings.PROJECT_NAME} v{settings.VERSION}")

    try:
        await init_db()
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        raise

    if await redis_service.ping():
        logger.info("Connected to Redis")
    else:
        logger.warning("Redis unavailable; sessions and rate limiting will not work")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"Shutting down {settings.PROJECT_NAME}")
    await engine.dispose()
    await redis_service.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("matchmaker.main:app", host="0.0.0.0", port=8000, reload=True)
