"""
Retry dispatcher.

Runs one caller-supplied upstream operation under the rotation and backoff
policy of a provider pool:

1. Check cancellation and the time budget
2. Ask the ledger for a spendable credential
3. Nothing spendable: wait for a per-minute throttle to clear, or wait a
   patient (tier 2) delay, or give up with AllKeysExhaustedError
4. Call the operation, raced against cancellation and the deadline
5. Success: record usage and return a DispatchResult
6. Failure: fatal errors stop immediately; rate limits mark the credential
   exhausted, take a key-switch (tier 1) delay when another credential is
   available, and loop

Usage:
    dispatcher = RetryDispatcher(ledger, RateLimitClassifier(), BackoffPolicy(settings), settings)
    result = await dispatcher.execute("gemini", call_gemini)
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

import structlog

from quota_rotator.config import Settings
from quota_rotator.ledger.usage_ledger import UsageLedger
from quota_rotator.models.credential_models import Credential
from quota_rotator.monitoring.metrics import (
    backoff_wait_seconds,
    dispatch_attempts_total,
    dispatch_results_total,
)
from quota_rotator.persistence.exceptions import StateSaveError
from quota_rotator.retry.backoff import BackoffPolicy, BackoffTier
from quota_rotator.retry.cancellation import CancellationToken
from quota_rotator.retry.classifier import RateLimitClassifier
from quota_rotator.retry.exceptions import (
    AllKeysExhaustedError,
    DispatchError,
    FatalUpstreamError,
    MaxAttemptsExceededError,
    TimedOutOrCancelledError,
)
from quota_rotator.retry.metadata import BackoffRecord, DispatchMetadata

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Operation = Callable[[Credential], Awaitable[T]]
TokenCounter = Callable[[Any], Optional[int]]


@dataclass(frozen=True)
class DispatchResult(Generic[T]):
    """Successful dispatch: the operation's value plus where and how it ran."""

    value: T
    provider_id: str
    credential_id: str
    metadata: DispatchMetadata
    warnings: list[str] = field(default_factory=list)


class _Interrupted(Exception):
    """Deadline reached or cancellation observed while waiting or calling."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


@dataclass
class _DispatchRun:
    """Mutable bookkeeping of one execute() call."""

    provider_id: str
    max_attempts: int
    deadline: float
    cancellation: Optional[CancellationToken]
    started: float = field(default_factory=time.monotonic)
    attempts: int = 0
    credentials_tried: list[str] = field(default_factory=list)
    rate_limited: list[str] = field(default_factory=list)
    backoffs: list[BackoffRecord] = field(default_factory=list)
    failures: list[dict[str, Any]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    last_failure: Optional[BaseException] = None
    last_retry_after: Optional[float] = None
    patient_waits: int = 0

    @property
    def last_credential(self) -> Optional[str]:
        return self.credentials_tried[-1] if self.credentials_tried else None

    def note_save_error(self, error: Optional[StateSaveError]) -> None:
        if error is not None and error.message not in self.warnings:
            self.warnings.append(error.message)

    def metadata(self) -> DispatchMetadata:
        return DispatchMetadata(
            total_attempts=self.attempts,
            credentials_tried=list(self.credentials_tried),
            rate_limited=list(self.rate_limited),
            backoffs=list(self.backoffs),
            total_latency_ms=max(0, int((time.monotonic() - self.started) * 1000)),
            failures=list(self.failures),
        )


class RetryDispatcher:
    """
    Execute upstream operations with credential rotation and two-tier backoff.

    Attributes:
        ledger: Usage ledger owning credential state
        classifier: Rate-limit classifier
        backoff: Backoff policy
        settings: Application settings
    """

    def __init__(
        self,
        ledger: UsageLedger,
        classifier: RateLimitClassifier,
        backoff: BackoffPolicy,
        settings: Settings,
    ):
        self.ledger = ledger
        self.classifier = classifier
        self.backoff = backoff
        self.settings = settings

    async def execute(
        self,
        provider_id: str,
        operation: Operation[T],
        max_attempts: Optional[int] = None,
        time_budget: Optional[float] = None,
        cancellation: Optional[CancellationToken] = None,
        tokens_of: Optional[TokenCounter] = None,
    ) -> DispatchResult[T]:
        """
        Run `operation` with a credential of `provider_id`.

        Args:
            provider_id: Provider pool to draw credentials from
            operation: Coroutine function called with the chosen Credential
            max_attempts: Loop iterations allowed (default retry_policy.max_retries + 1)
            time_budget: Seconds for the whole dispatch, waits included
            cancellation: Token that aborts the dispatch when cancelled
            tokens_of: Extracts tokens spent from the operation's result

        Returns:
            DispatchResult with the operation's value

        Raises:
            FatalUpstreamError: Failure not classified as a rate limit
            AllKeysExhaustedError: No spendable credential left
            MaxAttemptsExceededError: Attempts used up on rate limits
            TimedOutOrCancelledError: Budget elapsed or token cancelled
            ProviderNotFoundError: Unknown provider
        """
        pool = self.ledger.get_pool(provider_id)
        if max_attempts is None:
            max_attempts = pool.retry_policy.max_retries + 1
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if time_budget is None:
            time_budget = self._default_time_budget()
        if time_budget <= 0:
            raise ValueError("time_budget must be > 0")

        run = _DispatchRun(
            provider_id=provider_id,
            max_attempts=max_attempts,
            deadline=time.monotonic() + time_budget,
            cancellation=cancellation,
        )

        logger.info(
            "Starting dispatch",
            provider=provider_id,
            max_attempts=max_attempts,
            time_budget=time_budget,
            strategy=pool.rotation_strategy.value,
            patient_mode=pool.patient_mode_enabled,
        )

        try:
            return await self._loop(run, operation, tokens_of)
        except _Interrupted as e:
            raise self._fail(
                TimedOutOrCancelledError,
                run,
                f"Dispatch for {provider_id} stopped: {e.reason}",
                result="timed_out_or_cancelled",
                details={"reason": e.reason},
            ) from None

    async def _loop(
        self,
        run: _DispatchRun,
        operation: Operation[T],
        tokens_of: Optional[TokenCounter],
    ) -> DispatchResult[T]:
        provider_id = run.provider_id
        pool = self.ledger.get_pool(provider_id)

        while run.attempts < run.max_attempts:
            self._check_live(run)

            candidate = await self.ledger.select_candidate(provider_id)
            run.note_save_error(self.ledger.last_save_error)

            if candidate is None:
                # A credential blocked only by its per-minute interval frees up
                # within seconds; waiting for it does not consume an attempt
                throttle = await self.ledger.throttle_wait(provider_id)
                if throttle is not None:
                    await self._wait(run, BackoffTier.THROTTLE, throttle)
                    continue

                run.attempts += 1
                dispatch_attempts_total.labels(provider=provider_id, outcome="no_candidate").inc()

                if pool.patient_mode_enabled and run.attempts < run.max_attempts:
                    delay = self.backoff.patient_delay(
                        pool.retry_policy, run.patient_waits, run.last_retry_after
                    )
                    run.patient_waits += 1
                    logger.warning(
                        "All credentials exhausted, waiting patiently",
                        provider=provider_id,
                        attempt=run.attempts,
                        max_attempts=run.max_attempts,
                        delay_seconds=round(delay, 3),
                    )
                    await self._wait(run, BackoffTier.PATIENT, delay)
                    continue

                raise self._fail(
                    AllKeysExhaustedError,
                    run,
                    f"All credentials of {provider_id} are exhausted",
                    result="all_keys_exhausted",
                    details={"patient_mode": pool.patient_mode_enabled},
                )

            run.attempts += 1
            run.credentials_tried.append(candidate.id)

            try:
                value = await self._call(run, operation, candidate)
            except _Interrupted:
                raise
            except Exception as failure:
                await self._handle_failure(run, candidate, failure)
                continue

            return await self._succeed(run, candidate, value, tokens_of)

        raise self._fail(
            MaxAttemptsExceededError,
            run,
            f"Dispatch for {provider_id} failed after {run.attempts} attempts",
            result="max_attempts_exceeded",
        )

    async def _succeed(
        self,
        run: _DispatchRun,
        candidate: Credential,
        value: T,
        tokens_of: Optional[TokenCounter],
    ) -> DispatchResult[T]:
        tokens = self._tokens_spent(value, tokens_of)
        save_error = await self.ledger.record_usage(
            run.provider_id, candidate.id, tokens_spent=tokens, succeeded=True
        )
        run.note_save_error(save_error)

        dispatch_attempts_total.labels(provider=run.provider_id, outcome="success").inc()
        dispatch_results_total.labels(provider=run.provider_id, result="success").inc()

        metadata = run.metadata()
        logger.info(
            "Dispatch succeeded",
            provider=run.provider_id,
            credential_id=candidate.id,
            attempts=run.attempts,
            tokens=tokens,
            total_latency_ms=metadata.total_latency_ms,
            warnings_count=len(run.warnings),
        )
        return DispatchResult(
            value=value,
            provider_id=run.provider_id,
            credential_id=candidate.id,
            metadata=metadata,
            warnings=list(run.warnings),
        )

    async def _handle_failure(
        self,
        run: _DispatchRun,
        candidate: Credential,
        failure: Exception,
    ) -> None:
        info = self.classifier.classify(failure)
        run.last_failure = failure
        run.failures.append(
            {
                "credential_id": candidate.id,
                "error_type": type(failure).__name__,
                "status_code": info.status_code,
                "rate_limit": info.is_rate_limit,
            }
        )

        if not info.is_rate_limit:
            dispatch_attempts_total.labels(provider=run.provider_id, outcome="fatal").inc()
            raise self._fail(
                FatalUpstreamError,
                run,
                f"Upstream call failed for {run.provider_id}: {failure}",
                result="fatal",
                details={"error_type": type(failure).__name__, "status_code": info.status_code},
            ) from failure

        dispatch_attempts_total.labels(provider=run.provider_id, outcome="rate_limited").inc()
        run.rate_limited.append(candidate.id)
        if info.retry_after is not None:
            run.last_retry_after = info.retry_after

        logger.warning(
            "Rate limit hit, rotating credential",
            provider=run.provider_id,
            credential_id=candidate.id,
            attempt=run.attempts,
            status_code=info.status_code,
            retry_after=info.retry_after,
        )
        run.note_save_error(await self.ledger.mark_exhausted(run.provider_id, candidate.id))

        if run.attempts < run.max_attempts and await self.ledger.has_alternative(run.provider_id):
            await self._wait(run, BackoffTier.KEY_SWITCH, self.backoff.key_switch_delay())

    async def _call(self, run: _DispatchRun, operation: Operation[T], candidate: Credential) -> T:
        call = asyncio.ensure_future(operation(candidate))
        waiters: set[asyncio.Future] = {call}
        watcher: Optional[asyncio.Future] = None
        if run.cancellation is not None:
            watcher = asyncio.ensure_future(run.cancellation.wait())
            waiters.add(watcher)

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=max(0.0, run.deadline - time.monotonic()),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            if watcher is not None:
                watcher.cancel()
            if not call.done():
                call.cancel()

        # A call that finished before the interruption was observed still counts
        if call in done:
            return call.result()

        await asyncio.gather(call, return_exceptions=True)
        raise _Interrupted(self._interruption_reason(run))

    async def _wait(self, run: _DispatchRun, tier: BackoffTier, seconds: float) -> None:
        remaining = run.deadline - time.monotonic()
        if seconds > remaining:
            raise _Interrupted(
                f"{tier.value} wait of {seconds:.1f}s exceeds remaining budget of {max(remaining, 0.0):.1f}s"
            )

        run.backoffs.append(BackoffRecord(tier=tier.value, seconds=seconds))
        backoff_wait_seconds.labels(provider=run.provider_id, tier=tier.value).observe(seconds)
        logger.debug(
            "Backing off",
            provider=run.provider_id,
            tier=tier.value,
            seconds=round(seconds, 3),
        )

        if run.cancellation is not None:
            if await run.cancellation.wait(seconds):
                raise _Interrupted(self._interruption_reason(run))
        elif seconds > 0:
            await asyncio.sleep(seconds)

    def _check_live(self, run: _DispatchRun) -> None:
        if run.cancellation is not None and run.cancellation.cancelled:
            raise _Interrupted(self._interruption_reason(run))
        if time.monotonic() >= run.deadline:
            raise _Interrupted("time budget exhausted")

    @staticmethod
    def _interruption_reason(run: _DispatchRun) -> str:
        if run.cancellation is not None and run.cancellation.cancelled:
            return run.cancellation.reason or "cancelled"
        return "time budget exhausted"

    def _fail(
        self,
        error_cls: type[DispatchError],
        run: _DispatchRun,
        message: str,
        result: str,
        details: dict | None = None,
    ) -> DispatchError:
        dispatch_results_total.labels(provider=run.provider_id, result=result).inc()
        metadata = run.metadata()
        logger.error(
            "Dispatch failed",
            provider=run.provider_id,
            result=result,
            attempts=run.attempts,
            credentials_tried=metadata.credentials_tried,
            rate_limited=metadata.rate_limited,
            total_backoff_seconds=round(metadata.total_backoff_seconds, 3),
            last_error_type=type(run.last_failure).__name__ if run.last_failure else None,
        )
        return error_cls(
            message,
            provider_id=run.provider_id,
            credential_id=run.last_credential,
            attempts=run.attempts,
            last_failure=run.last_failure,
            metadata=metadata,
            details={**(details or {}), "warnings": list(run.warnings)},
        )

    def _default_time_budget(self) -> float:
        if self.settings.DISPATCH_TIME_BUDGET_SECONDS is not None:
            return self.settings.DISPATCH_TIME_BUDGET_SECONDS
        return self.ledger.global_settings.max_workflow_duration_hours * 3600.0

    def _tokens_spent(self, value: Any, tokens_of: Optional[TokenCounter]) -> int:
        tokens: Optional[int] = None
        if tokens_of is not None:
            tokens = tokens_of(value)
        if tokens is None:
            usage = getattr(value, "usage_tokens", None)
            if isinstance(usage, int) and not isinstance(usage, bool):
                tokens = usage
        if tokens is None:
            tokens = self.settings.ESTIMATED_TOKENS_PER_CALL
        return max(0, tokens)
