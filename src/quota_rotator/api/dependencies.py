"""
FastAPI dependency injection for the quota status API.

Provides the process-wide QuotaRotator singleton; main.py initializes it on
startup and tests override get_rotator with their own instance.
"""

from functools import lru_cache

from quota_rotator.config import Settings, settings
from quota_rotator.service import QuotaRotator


@lru_cache()
def get_settings() -> Settings:
    """
    Get settings singleton.

    Returns:
        Settings instance
    """
    return settings


@lru_cache()
def get_rotator() -> QuotaRotator:
    """
    Get singleton QuotaRotator.

    Uses @lru_cache so the ledger (and its lock) is shared by every request.
    The store is picked from STATE_BACKEND.

    Returns:
        QuotaRotator instance (initialized by the startup hook)
    """
    return QuotaRotator.from_settings(get_settings())
