"""
Backoff policy.

Three tiers of waiting:
    - key_switch (tier 1): short fixed settle delay before trying another credential
    - patient (tier 2): long exponential wait when a whole pool is exhausted
    - transient: short exponential wait for connection-level retries

The throttle tier (a credential only blocked by its per-minute interval) has
no formula here; the ledger computes its exact wait.
"""

import random
from enum import Enum
from typing import Optional

from quota_rotator.config import Settings
from quota_rotator.models.credential_models import RetryPolicy


class BackoffTier(str, Enum):
    """Wait category, used as the metrics label."""

    KEY_SWITCH = "key_switch"
    PATIENT = "patient"
    THROTTLE = "throttle"
    TRANSIENT = "transient"


class BackoffPolicy:
    """
    Compute backoff delays in seconds.

    Attributes:
        key_switch_seconds: Tier 1 fixed delay
        transient_base_seconds: First transient delay
        transient_max_seconds: Transient ceiling
        transient_jitter: Transient jitter factor
        rng: Random source for jitter (seed it in tests)
    """

    def __init__(self, settings: Settings, rng: Optional[random.Random] = None):
        self.key_switch_seconds = settings.KEY_SWITCH_DELAY_SECONDS
        self.transient_base_seconds = settings.TRANSIENT_BASE_DELAY_SECONDS
        self.transient_max_seconds = settings.TRANSIENT_MAX_DELAY_SECONDS
        self.transient_jitter = settings.TRANSIENT_JITTER_FACTOR
        self.rng = rng or random.Random()

    def _jitter(self, factor: float) -> float:
        """Multiplier uniform in [1 - factor/2, 1 + factor/2]."""
        if factor <= 0:
            return 1.0
        return 1.0 + (self.rng.random() - 0.5) * factor

    def key_switch_delay(self) -> float:
        return self.key_switch_seconds

    def patient_delay(
        self,
        retry_policy: RetryPolicy,
        attempt: int,
        retry_after: Optional[float] = None,
    ) -> float:
        """
        Tier 2 delay for the given attempt (0-based).

        max(retry_after, base) grows by exponential_factor per attempt, gets
        jittered, and is clamped to [0, max_delay_seconds].
        """
        floor = max(retry_after or 0.0, retry_policy.base_delay_seconds)
        delay = floor * (retry_policy.exponential_factor ** min(max(attempt, 0), 64))
        delay *= self._jitter(retry_policy.jitter_factor)
        return min(max(delay, 0.0), retry_policy.max_delay_seconds)

    def transient_delay(self, attempt: int) -> float:
        """Transient delay for the given attempt (1-based): 2s, 4s, 8s ... capped."""
        delay = self.transient_base_seconds * (2 ** min(max(attempt - 1, 0), 64))
        delay = min(delay, self.transient_max_seconds)
        return min(max(delay * self._jitter(self.transient_jitter), 0.0), self.transient_max_seconds)
