"""
Usage ledger: the in-memory and durable record of every credential.

The ledger owns the loaded PersistedState. Every read-modify-write on a
credential (usage counters, status, round-robin cursor, per-minute claim) runs
inside one asyncio.Lock critical section, and the snapshot save happens inside
that same section, so a concurrent dispatch can never observe or persist a
half-applied update.

Daily reset is lazy: `reconcile_daily_window` runs on initialize() and before
every question asked of the ledger (selection, status), never on a timer. A
process idle across the reset boundary catches up on its next call.

Save failures never roll back the in-memory change. They are logged, counted,
kept in `last_save_error` and retried with the next mutation.
"""

import asyncio
from datetime import datetime
from typing import Callable, Collection, Optional

import structlog

from quota_rotator.ledger.admission import (
    is_spendable,
    remaining_requests,
    throttle_wait,
    within_daily_limits,
)
from quota_rotator.ledger.exceptions import (
    CredentialNotFoundError,
    LedgerNotInitializedError,
    ProviderNotFoundError,
)
from quota_rotator.ledger.quota_window import QuotaWindow
from quota_rotator.models.credential_models import (
    Credential,
    GlobalSettings,
    PersistedState,
    ProviderPool,
    utcnow,
)
from quota_rotator.models.enums import CredentialStatus, RecommendedAction
from quota_rotator.models.status_models import QuotaStatus
from quota_rotator.monitoring.metrics import (
    credential_exhausted_total,
    credential_requests_total,
    credential_tokens_total,
    credentials_available,
    daily_resets_total,
    state_save_failures_total,
)
from quota_rotator.persistence.base import StateStore
from quota_rotator.persistence.exceptions import StateSaveError
from quota_rotator.rotation.selector import RotationSelector

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


class UsageLedger:
    """
    Serialized owner of all credential state.

    Attributes:
        store: Durable state store
        selector: Rotation selector used by select_candidate
        clock: Source of "now" (timezone-aware); injectable for tests
        slow_down_threshold: Remaining requests below which status says slow_down
        last_save_error: Most recent unrecovered save failure, if any
    """

    def __init__(
        self,
        store: StateStore,
        selector: Optional[RotationSelector] = None,
        clock: Optional[Clock] = None,
        slow_down_threshold: int = 10,
    ):
        self.store = store
        self.selector = selector or RotationSelector()
        self.clock: Clock = clock or utcnow
        self.slow_down_threshold = slow_down_threshold
        self.last_save_error: Optional[StateSaveError] = None

        self._lock = asyncio.Lock()
        self._state: Optional[PersistedState] = None
        self._window: Optional[QuotaWindow] = None

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def state(self) -> PersistedState:
        if self._state is None:
            raise LedgerNotInitializedError()
        return self._state

    @property
    def global_settings(self) -> GlobalSettings:
        return self.state.global_settings

    @property
    def window(self) -> QuotaWindow:
        if self._window is None:
            raise LedgerNotInitializedError()
        return self._window

    @property
    def provider_ids(self) -> list[str]:
        return list(self.state.providers)

    @property
    def is_initialized(self) -> bool:
        return self._state is not None

    def get_pool(self, provider_id: str) -> ProviderPool:
        pool = self.state.providers.get(provider_id)
        if pool is None:
            raise ProviderNotFoundError(provider_id)
        return pool

    def _get_credential(self, provider_id: str, credential_id: str) -> Credential:
        credential = self.get_pool(provider_id).get_credential(credential_id)
        if credential is None:
            raise CredentialNotFoundError(provider_id, credential_id)
        return credential

    # ------------------------------------------------------------------
    # Lifecycle and persistence
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Load persisted state and reconcile daily windows.

        Raises:
            ConfigNotFoundError: No persisted state found
            ConfigInvalidError: Persisted state cannot be parsed
        """
        await self.load_snapshot()
        await self.reconcile_daily_window()

        active = sum(
            1
            for pool in self.state.providers.values()
            for credential in pool.credentials
            if credential.status == CredentialStatus.ACTIVE
        )
        logger.info(
            "Usage ledger initialized",
            location=self.store.location,
            providers=self.provider_ids,
            active_credentials=active,
            reset_hour=self.global_settings.daily_reset_hour,
            reset_timezone=self.global_settings.reset_timezone,
        )

    async def load_snapshot(self) -> None:
        """Replace in-memory state with the persisted document."""
        state = await self.store.load()
        async with self._lock:
            self._state = state
            self._window = QuotaWindow.from_settings(state.global_settings)

    async def save_snapshot(self) -> None:
        """
        Persist the full state now.

        Raises:
            StateSaveError: The store rejected the write
        """
        async with self._lock:
            await self._save_locked()

    async def _save_locked(self) -> None:
        self.state.metadata.updated_at = self.clock()
        try:
            await self.store.save(self.state)
        except StateSaveError:
            state_save_failures_total.inc()
            raise
        if self.last_save_error is not None:
            logger.info("State save recovered", location=self.store.location)
        self.last_save_error = None

    async def _persist_locked(self) -> Optional[StateSaveError]:
        try:
            await self._save_locked()
        except StateSaveError as e:
            self.last_save_error = e
            logger.error(
                "Failed to persist ledger state, keeping in-memory change",
                location=self.store.location,
                error=e.message,
            )
            return e
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def record_usage(
        self,
        provider_id: str,
        credential_id: str,
        tokens_spent: int = 0,
        succeeded: bool = True,
    ) -> Optional[StateSaveError]:
        """
        Count one request against a credential.

        Increments requests by one and tokens by `tokens_spent`, stamps the
        request and last-used times, and reactivates the credential when the
        call succeeded.

        Returns:
            The save error if persisting failed, else None

        Raises:
            ProviderNotFoundError / CredentialNotFoundError
        """
        if tokens_spent < 0:
            raise ValueError("tokens_spent must be >= 0")

        async with self._lock:
            credential = self._get_credential(provider_id, credential_id)
            now = self.clock()

            credential.usage_today.requests += 1
            credential.usage_today.tokens += tokens_spent
            credential.usage_today.last_request_time = now
            credential.last_used = now
            if succeeded:
                credential.status = CredentialStatus.ACTIVE

            credential_requests_total.labels(
                provider=provider_id, succeeded=str(succeeded).lower()
            ).inc()
            credential_tokens_total.labels(provider=provider_id).inc(tokens_spent)

            logger.debug(
                "Usage recorded",
                provider=provider_id,
                credential_id=credential_id,
                requests_today=credential.usage_today.requests,
                tokens_today=credential.usage_today.tokens,
                succeeded=succeeded,
            )
            return await self._persist_locked()

    async def mark_exhausted(self, provider_id: str, credential_id: str) -> Optional[StateSaveError]:
        """
        Flag a credential as exhausted until the next reset or success.

        Idempotent.

        Raises:
            ProviderNotFoundError / CredentialNotFoundError
        """
        async with self._lock:
            credential = self._get_credential(provider_id, credential_id)
            if credential.status != CredentialStatus.EXHAUSTED:
                credential.status = CredentialStatus.EXHAUSTED
                credential_exhausted_total.labels(provider=provider_id).inc()
                logger.warning(
                    "Credential marked exhausted",
                    provider=provider_id,
                    credential_id=credential_id,
                    requests_today=credential.usage_today.requests,
                )
            return await self._persist_locked()

    async def reconcile_daily_window(self, now: Optional[datetime] = None) -> int:
        """
        Reset every credential whose counters belong to an older quota window.

        Applying it twice within one window is a no-op the second time.

        Args:
            now: Reference time (defaults to the ledger clock)

        Returns:
            Number of credentials reset
        """
        async with self._lock:
            reset_count = self._reconcile_locked(now or self.clock())
            if reset_count:
                await self._persist_locked()
            return reset_count

    def _reconcile_locked(self, now: datetime) -> int:
        current_window = self.window.window_date(now)
        reset_count = 0

        for provider_id, pool in self.state.providers.items():
            for credential in pool.credentials:
                usage = credential.usage_today
                if usage.last_reset == current_window:
                    continue

                usage.requests = 0
                usage.tokens = 0
                usage.last_reset = current_window
                # Administrative suspension survives the daily reset
                if credential.status != CredentialStatus.SUSPENDED:
                    credential.status = CredentialStatus.ACTIVE
                reset_count += 1
                daily_resets_total.labels(provider=provider_id).inc()

                logger.info(
                    "Daily quota reset",
                    provider=provider_id,
                    credential_id=credential.id,
                    window=current_window.isoformat(),
                )

        return reset_count

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    def is_spendable(
        self,
        credential: Credential,
        buffer_fraction: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Admission check using the global buffer and the ledger clock by default."""
        if buffer_fraction is None:
            buffer_fraction = self.global_settings.buffer_fraction
        return is_spendable(credential, buffer_fraction, now or self.clock())

    async def select_candidate(
        self, provider_id: str, exclude: Collection[str] = ()
    ) -> Optional[Credential]:
        """
        Choose the next credential to spend, or None when none is spendable.

        Runs the pool's rotation strategy inside the critical section and
        stamps the chosen credential's request time so concurrent dispatches
        cannot spend the same per-minute slot twice.

        Returns:
            A detached copy of the chosen credential
        """
        async with self._lock:
            pool = self.get_pool(provider_id)
            now = self.clock()
            self._reconcile_locked(now)

            buffer_fraction = self.global_settings.buffer_fraction
            candidate = self.selector.select(
                provider_id,
                pool,
                lambda c: is_spendable(c, buffer_fraction, now),
                exclude,
            )
            if candidate is None:
                return None

            candidate.usage_today.last_request_time = now
            await self._persist_locked()
            return candidate.model_copy(deep=True)

    async def has_alternative(self, provider_id: str, exclude: Collection[str] = ()) -> bool:
        """True when some active, within-limits credential outside `exclude` exists."""
        async with self._lock:
            pool = self.get_pool(provider_id)
            buffer_fraction = self.global_settings.buffer_fraction
            return any(
                credential.id not in exclude
                and credential.status == CredentialStatus.ACTIVE
                and within_daily_limits(credential, buffer_fraction)
                for credential in pool.credentials
            )

    async def throttle_wait(self, provider_id: str) -> Optional[float]:
        """
        Seconds until a credential blocked only by its per-minute interval frees up.

        None when every credential is exhausted, suspended or over its daily
        limit, i.e. when a short wait would not help.
        """
        async with self._lock:
            pool = self.get_pool(provider_id)
            now = self.clock()
            buffer_fraction = self.global_settings.buffer_fraction
            waits = [
                wait
                for wait in (throttle_wait(c, buffer_fraction, now) for c in pool.credentials)
                if wait is not None
            ]
            return min(waits) if waits else None

    def next_reset_time(self, now: Optional[datetime] = None) -> datetime:
        return self.window.next_reset(now or self.clock())

    def seconds_until_reset(self, now: Optional[datetime] = None) -> float:
        return self.window.seconds_until_reset(now or self.clock())

    async def get_quota_status(self, provider_id: str) -> QuotaStatus:
        """
        Summarize a provider pool.

        A credential counts as available when it is active and under its
        buffered daily limits; the per-minute interval is ignored here since
        it clears within a minute.
        """
        async with self._lock:
            pool = self.get_pool(provider_id)
            now = self.clock()
            if self._reconcile_locked(now):
                await self._persist_locked()

            buffer_fraction = self.global_settings.buffer_fraction
            available = [
                c
                for c in pool.credentials
                if c.status == CredentialStatus.ACTIVE and within_daily_limits(c, buffer_fraction)
            ]
            exhausted = sum(1 for c in pool.credentials if c.status == CredentialStatus.EXHAUSTED)
            suspended = sum(1 for c in pool.credentials if c.status == CredentialStatus.SUSPENDED)
            remaining = sum(remaining_requests(c) for c in available)

            credentials_available.labels(provider=provider_id).set(len(available))

            return QuotaStatus(
                provider_id=provider_id,
                available_count=len(available),
                exhausted_count=exhausted,
                suspended_count=suspended,
                next_reset_time=self.window.next_reset(now),
                estimated_remaining=remaining,
                recommended_action=self._recommend(len(available), remaining),
            )

    def _recommend(self, available_count: int, remaining: int) -> RecommendedAction:
        if available_count == 0:
            return RecommendedAction.SUSPEND_UNTIL_RESET
        if remaining < self.slow_down_threshold:
            return RecommendedAction.SLOW_DOWN
        return RecommendedAction.CONTINUE

    async def is_fully_exhausted(self, provider_id: str) -> bool:
        """True when no credential of the pool is available (see get_quota_status)."""
        status = await self.get_quota_status(provider_id)
        return status.available_count == 0
