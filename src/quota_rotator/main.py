"""
FastAPI application entry point for Quota Rotator.

Serves the read-only quota status API and Prometheus metrics of the process
that owns the usage ledger.
"""

import structlog
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from quota_rotator.api.dependencies import get_rotator
from quota_rotator.api.error_handlers import EXCEPTION_HANDLERS
from quota_rotator.api.routes import router
from quota_rotator.config import settings
from quota_rotator.logging_config import configure_logging
from quota_rotator.persistence.exceptions import StateStoreError

# Configure structured logging before any other imports
configure_logging(settings.LOG_LEVEL, settings.ENVIRONMENT)
logger = structlog.get_logger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Quota Rotator",
    description="Credential rotation and quota tracking for rate-limited upstream APIs",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Register exception handlers
for exc_class, handler in EXCEPTION_HANDLERS.items():
    app.add_exception_handler(exc_class, handler)

app.include_router(router, tags=["quota"])


# Startup event
@app.on_event("startup")
async def startup():
    """Application startup - load persisted credential state."""
    logger.info(
        "Application startup",
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        state_backend=settings.STATE_BACKEND,
    )

    rotator = get_rotator()
    try:
        await rotator.initialize()
    except StateStoreError as e:
        # Endpoints answer 503 until the state can be loaded
        logger.error("Failed to load credential state", error=e.message, details=e.details)
    else:
        logger.info("Application startup complete", providers=rotator.ledger.provider_ids)


# Shutdown event
@app.on_event("shutdown")
async def shutdown():
    """Application shutdown - flush state and release connections."""
    logger.info("Application shutdown")
    rotator = get_rotator()
    if rotator.ledger.is_initialized:
        try:
            await rotator.ledger.save_snapshot()
        except StateStoreError as e:
            logger.error("Final state save failed", error=e.message)
    await rotator.close()
    logger.info("Application shutdown complete")


# Prometheus metrics instrumentation
if settings.PROMETHEUS_ENABLED:
    Instrumentator().instrument(app).expose(app)


@app.get("/")
async def root():
    """Root endpoint with API documentation links."""
    return {
        "service": "Quota Rotator",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health",
        "quota": "/quota",
        "metrics": "/metrics" if settings.PROMETHEUS_ENABLED else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "quota_rotator.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
