"""
Read-only views over the ledger returned to callers.

These models never carry credential secrets; they are safe to serialize in
API responses and logs.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from quota_rotator.models.enums import RecommendedAction


class QuotaStatus(BaseModel):
    """Quota summary of one provider pool."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    available_count: int = Field(..., ge=0, description="Active credentials currently spendable")
    exhausted_count: int = Field(..., ge=0)
    suspended_count: int = Field(default=0, ge=0)
    next_reset_time: datetime = Field(..., description="Start of the next quota window")
    estimated_remaining: int = Field(
        ...,
        ge=0,
        description="Requests left today across spendable credentials (before buffer)",
    )
    recommended_action: RecommendedAction
