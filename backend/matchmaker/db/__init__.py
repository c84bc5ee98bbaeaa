"""
Database package for models, schemas, CRUD operations and session management.
"""

__all__ = [
    "models",    # Database models
    "schemas",   # Pydantic schemas
    "crud",      # CRUD operations
    "session",   # Database session management
]
