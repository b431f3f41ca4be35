"""
Enumerations for Quota Rotator data models.

All enums are closed taxonomies - no values outside these sets are permitted.
"""

from enum import Enum


class CredentialStatus(str, Enum):
    """
    Lifecycle status of a single credential.

    EXHAUSTED is set by the dispatcher on a classified rate-limit failure and
    cleared by the next daily reset or a successful call. SUSPENDED is an
    administrative override applied by editing the persisted state.
    """

    ACTIVE = "active"
    EXHAUSTED = "exhausted"
    SUSPENDED = "suspended"


class RotationStrategy(str, Enum):
    """How the next credential of a pool is chosen."""

    ROUND_ROBIN = "round_robin"
    LEAST_USED = "least_used"
    RANDOM = "random"

    @classmethod
    def _missing_(cls, value: object) -> "RotationStrategy | None":
        # Accept "round-robin" / "Least-Used" spellings
        if isinstance(value, str):
            normalized = value.strip().lower().replace("-", "_")
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class RecommendedAction(str, Enum):
    """
    Advice returned with a provider's quota status.

    Ordered from least to most restrictive.
    """

    CONTINUE = "continue"
    SLOW_DOWN = "slow_down"
    SUSPEND_UNTIL_RESET = "suspend_until_reset"
