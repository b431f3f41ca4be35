"""
FastAPI API routes and endpoints.

- routes.py: Quota status endpoints (GET /health, GET /quota, GET /quota/{provider_id}, POST /quota/reconcile)
- dependencies.py: Dependency injection for settings and the QuotaRotator singleton
- models.py: API-specific response models
- error_handlers.py: Exception handlers for structured error responses
"""

from quota_rotator.api import dependencies, error_handlers, models
from quota_rotator.api.routes import router

__all__ = [
    "router",
    "dependencies",
    "error_handlers",
    "models",
]
