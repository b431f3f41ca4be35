"""
API-specific response models for FastAPI endpoints.

These wrap the core QuotaStatus view with API metadata. Credential secrets
never appear in any of them.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from quota_rotator.models.credential_models import utcnow
from quota_rotator.models.status_models import QuotaStatus


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: str = Field(
        description="Overall health status",
        examples=["healthy", "degraded", "unhealthy"]
    )
    version: str = Field(
        description="Quota Rotator version",
        examples=["0.1.0"]
    )
    services: dict[str, str] = Field(
        description="Component health status",
        examples=[{"ledger": "ok", "state_store": "ok"}]
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="Health check timestamp (UTC)"
    )


class QuotaOverviewResponse(BaseModel):
    """Response for the all-providers quota endpoint."""

    providers: dict[str, QuotaStatus] = Field(
        description="Quota status per provider id"
    )
    last_save_error: Optional[str] = Field(
        default=None,
        description="Most recent unrecovered state save failure"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="Status timestamp (UTC)"
    )


class ReconcileResponse(BaseModel):
    """Response for the manual daily-window reconciliation endpoint."""

    reset_count: int = Field(
        description="Credentials whose daily counters were reset",
        ge=0
    )
    next_reset_time: datetime = Field(
        description="Next daily quota reset"
    )


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str = Field(
        description="Error code or type",
        examples=["provider_not_found", "state_unavailable", "internal_error"]
    )
    message: str = Field(
        description="Human-readable error message"
    )
    details: Optional[dict] = Field(
        default=None,
        description="Additional error details"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="Error timestamp (UTC)"
    )
