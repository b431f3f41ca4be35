"""
Dispatch history tracking.

DispatchMetadata is attached to every DispatchResult and every
DispatchError for audit trails and metrics.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class BackoffRecord:
    """One wait taken by the dispatcher."""

    tier: str
    seconds: float


@dataclass(frozen=True)
class DispatchMetadata:
    """
    Complete history of one dispatch.

    Attributes:
        total_attempts: Loop iterations consumed (calls plus empty selections)
        credentials_tried: Credential ids in the order they were called
        rate_limited: Credential ids that failed with a rate limit
        backoffs: Waits taken, in order
        total_latency_ms: Wall time from start to result or error
        failures: Short description per failed call
    """

    total_attempts: int
    credentials_tried: list[str] = field(default_factory=list)
    rate_limited: list[str] = field(default_factory=list)
    backoffs: list[BackoffRecord] = field(default_factory=list)
    total_latency_ms: int = 0
    failures: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate metadata invariants."""
        if self.total_attempts < 0:
            raise ValueError("total_attempts must be >= 0")

        if self.total_latency_ms < 0:
            raise ValueError("total_latency_ms must be >= 0")

    @property
    def total_backoff_seconds(self) -> float:
        return sum(record.seconds for record in self.backoffs)

    @property
    def final_credential(self) -> Optional[str]:
        return self.credentials_tried[-1] if self.credentials_tried else None
