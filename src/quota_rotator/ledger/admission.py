"""
Admission guard: may a credential be spent right now?

Pure functions over a Credential snapshot. The guard is advisory; the
upstream response stays the only authoritative exhaustion signal. Its job is
to skip calls that are very likely to fail.
"""

from datetime import datetime
from typing import Optional

from quota_rotator.models.credential_models import Credential
from quota_rotator.models.enums import CredentialStatus


def min_request_interval(credential: Credential) -> float:
    """Seconds between two requests implied by requests_per_minute."""
    return 60.0 / credential.limits.requests_per_minute


def within_daily_limits(credential: Credential, buffer_fraction: float) -> bool:
    """True while both daily counters stay below their buffered limits."""
    usage = credential.usage_today
    limits = credential.limits
    if usage.requests >= limits.requests_per_day * (1 - buffer_fraction):
        return False
    if usage.tokens >= limits.tokens_per_day * (1 - buffer_fraction):
        return False
    return True


def interval_wait(credential: Credential, now: datetime) -> float:
    """Seconds left before the per-minute interval allows another request."""
    last_request = credential.usage_today.last_request_time
    if last_request is None:
        return 0.0
    elapsed = (now - last_request).total_seconds()
    return max(0.0, min_request_interval(credential) - elapsed)


def is_spendable(credential: Credential, buffer_fraction: float, now: datetime) -> bool:
    """
    Decide whether `credential` should be used at `now`.

    Returns False when the credential is not active, when either daily
    counter reached its buffered limit, or when the minimum interval implied
    by requests_per_minute has not elapsed since the last request.
    """
    if credential.status != CredentialStatus.ACTIVE:
        return False
    if not within_daily_limits(credential, buffer_fraction):
        return False
    return interval_wait(credential, now) <= 0.0


def remaining_requests(credential: Credential) -> int:
    """Requests left today against the hard daily limit."""
    return max(0, credential.limits.requests_per_day - credential.usage_today.requests)


def throttle_wait(credential: Credential, buffer_fraction: float, now: datetime) -> Optional[float]:
    """
    Wait before an active, within-limits credential becomes spendable.

    None when waiting would not help (not active or daily limit reached).
    """
    if credential.status != CredentialStatus.ACTIVE:
        return None
    if not within_daily_limits(credential, buffer_fraction):
        return None
    return interval_wait(credential, now)
