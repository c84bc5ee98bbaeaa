"""
Routes package for API endpoints.

This package provides:
- Registration, login and Redis-backed sessions
- Profile updates that drive discovery and onboarding completion
- Startup, opportunity and event listings
- Opportunity applications
- AI-assisted discovery, recommendations and the chat assistant
- Admin scheduler controls
"""

__all__ = [
    "auth", "profile", "listings", "applications", "discovery", "admin"
]
