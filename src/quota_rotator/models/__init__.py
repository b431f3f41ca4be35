"""
Pydantic data models for Quota Rotator.

Includes:
- Enums (CredentialStatus, RotationStrategy, RecommendedAction)
- Persisted state models (Credential, ProviderPool, GlobalSettings, PersistedState, ...)
- Status views (QuotaStatus)
"""

from quota_rotator.models.enums import (
    CredentialStatus,
    RecommendedAction,
    RotationStrategy,
)
from quota_rotator.models.credential_models import (
    Credential,
    CredentialLimits,
    GlobalSettings,
    PersistedState,
    ProviderPool,
    RetryPolicy,
    StateMetadata,
    UsageToday,
    utcnow,
)
from quota_rotator.models.status_models import QuotaStatus

__all__ = [
    # Enums
    "CredentialStatus",
    "RecommendedAction",
    "RotationStrategy",
    # Persisted state
    "Credential",
    "CredentialLimits",
    "GlobalSettings",
    "PersistedState",
    "ProviderPool",
    "RetryPolicy",
    "StateMetadata",
    "UsageToday",
    "utcnow",
    # Status views
    "QuotaStatus",
]
