"""
Read-mostly API routes for quota inspection.

GET /health, GET /quota, GET /quota/{provider_id} and POST /quota/reconcile.
Dispatching itself is a library call, not an endpoint.
"""

import structlog
from fastapi import APIRouter, Depends, status

from quota_rotator.api.dependencies import get_rotator, get_settings
from quota_rotator.api.models import (
    HealthResponse,
    QuotaOverviewResponse,
    ReconcileResponse,
)
from quota_rotator.config import Settings
from quota_rotator.models.status_models import QuotaStatus
from quota_rotator.service import QuotaRotator

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
)
async def health_check(
    rotator: QuotaRotator = Depends(get_rotator),
    settings: Settings = Depends(get_settings),
) -> HealthResponse:
    """
    Report ledger and state store health.

    - healthy: state loaded, last save succeeded
    - degraded: state loaded, but the last save failed
    - unhealthy: state never loaded
    """
    ledger = rotator.ledger
    services: dict[str, str] = {}

    if not ledger.is_initialized:
        services["ledger"] = "not_initialized"
        overall = "unhealthy"
    else:
        services["ledger"] = "ok"
        overall = "healthy"

    if ledger.last_save_error is not None:
        services["state_store"] = "save_failing"
        overall = "degraded" if overall == "healthy" else overall
    else:
        services["state_store"] = "ok"

    return HealthResponse(status=overall, version=settings.APP_VERSION, services=services)


@router.get(
    "/quota",
    response_model=QuotaOverviewResponse,
    summary="Quota status of every provider",
    responses={503: {"description": "State not loaded"}},
)
async def get_all_quota(rotator: QuotaRotator = Depends(get_rotator)) -> QuotaOverviewResponse:
    providers = await rotator.get_all_quota_status()
    save_error = rotator.ledger.last_save_error
    return QuotaOverviewResponse(
        providers=providers,
        last_save_error=save_error.message if save_error else None,
    )


@router.get(
    "/quota/{provider_id}",
    response_model=QuotaStatus,
    summary="Quota status of one provider",
    responses={
        404: {"description": "Unknown provider"},
        503: {"description": "State not loaded"},
    },
)
async def get_provider_quota(
    provider_id: str,
    rotator: QuotaRotator = Depends(get_rotator),
) -> QuotaStatus:
    return await rotator.get_quota_status(provider_id)


@router.post(
    "/quota/reconcile",
    response_model=ReconcileResponse,
    summary="Run daily-window reconciliation now",
    responses={503: {"description": "State not loaded"}},
)
async def reconcile(rotator: QuotaRotator = Depends(get_rotator)) -> ReconcileResponse:
    """Reset counters of credentials whose quota window has rolled over."""
    reset_count = await rotator.ledger.reconcile_daily_window()
    logger.info("Manual reconciliation", reset_count=reset_count)
    return ReconcileResponse(
        reset_count=reset_count,
        next_reset_time=rotator.ledger.next_reset_time(),
    )
