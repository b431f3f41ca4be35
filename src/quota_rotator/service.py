"""
Quota Rotator facade.

Wires the usage ledger, rotation selector, classifier, backoff policy and
retry dispatcher together and exposes the operations callers need:

    rotator = QuotaRotator.from_settings(settings)
    await rotator.initialize()
    result = await rotator.execute("gemini", client.operation(path, payload))
    status = await rotator.get_quota_status("gemini")

`wait_for_quota` is the workflow-level suspension: when a whole pool is
exhausted a long-running workflow parks there until the daily reset frees a
credential, instead of failing.
"""

import asyncio
import random
import time
from datetime import datetime
from typing import Callable, Optional

import structlog

from quota_rotator.config import Settings
from quota_rotator.config import settings as default_settings
from quota_rotator.ledger.usage_ledger import UsageLedger
from quota_rotator.models.status_models import QuotaStatus
from quota_rotator.persistence.base import StateStore
from quota_rotator.persistence.file_store import JsonFileStateStore
from quota_rotator.persistence.redis_client import RedisClient, get_async_redis_client
from quota_rotator.persistence.redis_store import RedisStateStore
from quota_rotator.retry.backoff import BackoffPolicy
from quota_rotator.retry.cancellation import CancellationToken
from quota_rotator.retry.classifier import RateLimitClassifier
from quota_rotator.retry.dispatcher import DispatchResult, Operation, RetryDispatcher, T, TokenCounter
from quota_rotator.retry.exceptions import AllKeysExhaustedError, TimedOutOrCancelledError
from quota_rotator.retry.transient import TransientRetry
from quota_rotator.rotation.selector import RotationSelector

logger = structlog.get_logger(__name__)


def build_state_store(settings: Settings) -> StateStore:
    """Create the durable store selected by STATE_BACKEND."""
    backend = settings.STATE_BACKEND.strip().lower()
    if backend == "file":
        return JsonFileStateStore(settings.STATE_FILE_PATH, settings.STATE_SEARCH_PATHS)
    if backend == "redis":
        return RedisStateStore(get_async_redis_client(settings), settings.REDIS_STATE_KEY)
    raise ValueError(f"Unknown STATE_BACKEND: {settings.STATE_BACKEND}")


class QuotaRotator:
    """
    Public entry point for quota-aware upstream calls.

    Attributes:
        ledger: Usage ledger
        dispatcher: Retry dispatcher
        classifier: Rate-limit classifier shared with TransientRetry
        backoff: Backoff policy shared with TransientRetry
        settings: Application settings
    """

    def __init__(
        self,
        ledger: UsageLedger,
        dispatcher: RetryDispatcher,
        settings: Settings = default_settings,
    ):
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.classifier = dispatcher.classifier
        self.backoff = dispatcher.backoff
        self.settings = settings

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        store: Optional[StateStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
    ) -> "QuotaRotator":
        """
        Build a rotator from application settings.

        Args:
            settings: Application settings (default: global settings)
            store: Explicit state store (default: picked by STATE_BACKEND)
            clock: Ledger clock override
            rng: Random source for the random strategy and jitter
        """
        settings = settings or default_settings
        ledger = UsageLedger(
            store or build_state_store(settings),
            selector=RotationSelector(rng),
            clock=clock,
            slow_down_threshold=settings.SLOW_DOWN_THRESHOLD,
        )
        dispatcher = RetryDispatcher(
            ledger,
            RateLimitClassifier(),
            BackoffPolicy(settings, rng),
            settings,
        )
        return cls(ledger, dispatcher, settings)

    async def initialize(self) -> None:
        """
        Load persisted state and reconcile daily windows.

        Raises:
            ConfigNotFoundError / ConfigInvalidError
        """
        await self.ledger.initialize()

    async def close(self) -> None:
        if isinstance(self.ledger.store, RedisStateStore):
            await RedisClient.close_async_pool()

    async def execute(
        self,
        provider_id: str,
        operation: Operation[T],
        max_attempts: Optional[int] = None,
        time_budget: Optional[float] = None,
        cancellation: Optional[CancellationToken] = None,
        tokens_of: Optional[TokenCounter] = None,
        retry_transient: bool = False,
    ) -> DispatchResult[T]:
        """
        Dispatch `operation` through the retry dispatcher.

        With `retry_transient` the operation is first wrapped in
        TransientRetry so connection blips are retried on the same
        credential before rotation kicks in.
        """
        if retry_transient:
            operation = TransientRetry(
                self.classifier,
                self.backoff,
                max_attempts=self.settings.TRANSIENT_MAX_ATTEMPTS,
                provider_id=provider_id,
            ).wrap(operation)

        return await self.dispatcher.execute(
            provider_id,
            operation,
            max_attempts=max_attempts,
            time_budget=time_budget,
            cancellation=cancellation,
            tokens_of=tokens_of,
        )

    async def get_quota_status(self, provider_id: str) -> QuotaStatus:
        return await self.ledger.get_quota_status(provider_id)

    async def get_all_quota_status(self) -> dict[str, QuotaStatus]:
        return {
            provider_id: await self.ledger.get_quota_status(provider_id)
            for provider_id in self.ledger.provider_ids
        }

    async def is_fully_exhausted(self, provider_id: str) -> bool:
        return await self.ledger.is_fully_exhausted(provider_id)

    async def wait_for_quota(
        self,
        provider_id: str,
        cancellation: Optional[CancellationToken] = None,
        max_duration: Optional[float] = None,
    ) -> QuotaStatus:
        """
        Suspend until `provider_id` has an available credential.

        Re-checks every resume_check_interval_minutes, never sleeping past
        the next daily reset, for at most max_workflow_duration_hours.

        Returns:
            The first status with an available credential

        Raises:
            AllKeysExhaustedError: Pool exhausted and suspension disabled
            TimedOutOrCancelledError: Duration exceeded or token cancelled
        """
        status = await self.ledger.get_quota_status(provider_id)
        if status.available_count > 0:
            return status

        global_settings = self.ledger.global_settings
        if not global_settings.suspend_on_full_exhaustion:
            raise AllKeysExhaustedError(
                f"All credentials of {provider_id} are exhausted and suspension is disabled",
                provider_id=provider_id,
            )

        if max_duration is None:
            max_duration = global_settings.max_workflow_duration_hours * 3600.0
        started = time.monotonic()
        deadline = started + max_duration
        checks = 0

        logger.warning(
            "Workflow suspended until quota frees up",
            provider=provider_id,
            next_reset=status.next_reset_time.isoformat(),
            max_duration_seconds=max_duration,
        )

        while status.available_count == 0:
            interval = global_settings.resume_check_interval_minutes * 60.0
            delay = min(interval, self.ledger.seconds_until_reset())
            remaining = deadline - time.monotonic()
            if delay > remaining:
                raise TimedOutOrCancelledError(
                    f"Quota for {provider_id} did not recover within {max_duration:.0f}s",
                    provider_id=provider_id,
                    attempts=checks,
                    details={"reason": "time budget exhausted"},
                )

            if cancellation is not None:
                if await cancellation.wait(delay):
                    raise TimedOutOrCancelledError(
                        f"Waiting for quota of {provider_id} was cancelled",
                        provider_id=provider_id,
                        attempts=checks,
                        details={"reason": cancellation.reason},
                    )
            else:
                await asyncio.sleep(delay)

            checks += 1
            status = await self.ledger.get_quota_status(provider_id)
            logger.info(
                "Quota re-check",
                provider=provider_id,
                check=checks,
                available=status.available_count,
            )

        logger.info(
            "Workflow resumed",
            provider=provider_id,
            checks=checks,
            suspended_seconds=round(time.monotonic() - started, 1),
        )
        return status

