"""Test helpers shared by unit and integration tests.

- FrozenClock: controllable ledger clock
- InMemoryStateStore: StateStore double with injectable save failures
- make_credential / make_state: builders for credential state
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from quota_rotator.models.credential_models import (
    Credential,
    CredentialLimits,
    GlobalSettings,
    PersistedState,
    ProviderPool,
    RetryPolicy,
    UsageToday,
)
from quota_rotator.models.enums import CredentialStatus, RotationStrategy
from quota_rotator.persistence.base import StateStore
from quota_rotator.persistence.exceptions import ConfigNotFoundError, StateSaveError

START_TIME = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)
START_WINDOW = date(2026, 3, 10)


class FrozenClock:
    """Callable clock that only moves when a test advances it.

    With `step_seconds` every reading moves the clock forward by that much,
    so per-minute intervals elapse without real sleeping.
    """

    def __init__(self, now: datetime = START_TIME, step_seconds: float = 0.0):
        self.now = now
        self.step = timedelta(seconds=step_seconds)

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + self.step
        return current

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class InMemoryStateStore(StateStore):
    """State store keeping the serialized document in memory.

    Set `fail_saves = True` to make every save raise StateSaveError.
    """

    def __init__(self, state: Optional[PersistedState] = None):
        self.document: Optional[str] = state.model_dump_json() if state is not None else None
        self.saves = 0
        self.fail_saves = False

    @property
    def location(self) -> str:
        return "memory://test"

    async def load(self) -> PersistedState:
        if self.document is None:
            raise ConfigNotFoundError("No state in memory", details={"location": self.location})
        return PersistedState.model_validate_json(self.document)

    async def save(self, state: PersistedState) -> None:
        if self.fail_saves:
            raise StateSaveError("Simulated save failure", details={"location": self.location})
        self.document = state.model_dump_json()
        self.saves += 1

    def saved_state(self) -> PersistedState:
        assert self.document is not None
        return PersistedState.model_validate_json(self.document)


def make_credential(
    credential_id: str,
    secret: Optional[str] = None,
    requests_per_minute: int = 60000,
    requests_per_day: int = 1000,
    tokens_per_minute: int = 1_000_000,
    tokens_per_day: int = 10_000_000,
    requests: int = 0,
    tokens: int = 0,
    status: CredentialStatus = CredentialStatus.ACTIVE,
    last_reset: Optional[date] = START_WINDOW,
    last_request_time: Optional[datetime] = None,
) -> Credential:
    """Build a credential; defaults are generous so only the tested limit matters."""
    return Credential(
        id=credential_id,
        secret=secret or f"secret-{credential_id}-0000",
        limits=CredentialLimits(
            requests_per_minute=requests_per_minute,
            requests_per_day=requests_per_day,
            tokens_per_minute=tokens_per_minute,
            tokens_per_day=tokens_per_day,
        ),
        usage_today=UsageToday(
            requests=requests,
            tokens=tokens,
            last_reset=last_reset,
            last_request_time=last_request_time,
        ),
        status=status,
    )


def make_state(
    credentials: list[Credential],
    provider_id: str = "gemini",
    rotation_strategy: RotationStrategy = RotationStrategy.ROUND_ROBIN,
    patient_mode_enabled: bool = True,
    retry_policy: Optional[RetryPolicy] = None,
    **global_settings: Any,
) -> PersistedState:
    """Build a one-provider state document."""
    return PersistedState(
        providers={
            provider_id: ProviderPool(
                credentials=credentials,
                rotation_strategy=rotation_strategy,
                patient_mode_enabled=patient_mode_enabled,
                retry_policy=retry_policy or RetryPolicy(),
            )
        },
        global_settings=GlobalSettings(**global_settings),
    )
