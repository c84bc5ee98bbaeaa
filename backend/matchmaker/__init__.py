"""
Startup Ecosystem Matcher - Backend Application

This package implements a FastAPI-based backend service that matches startup
founders, funders and ecosystem builders with opportunities in the Malaysian
and Southeast Asian startup ecosystem.

Core Components:
- main: FastAPI application setup, middleware, and API documentation
- routes: REST API endpoints for auth, listings, applications and discovery
- services: Discovery pipeline (query building, AI and web search, fallback data,
  scoring, embeddings, the intelligent scraping orchestrator) and Redis
- db: Database models, schemas, and CRUD operations
- tasks: Scheduled ecosystem scraping via Celery
- utils: Configuration, logging, and file storage helpers
"""

# Version
__version__ = "1.0.0"

# Package exports
__all__ = [
    "main",           # FastAPI application
    "routes",         # API endpoints
    "services",       # Core services
    "db",             # Database operations
    "tasks",          # Background tasks
    "utils",          # Utilities
]
