"""Background tasks (Celery) for scheduled ecosystem discovery."""
