"""
Transient retry wrapper for caller-side operations.

Wraps an `operation(credential)` coroutine so short-lived failures
(connection drops, timeouts and, optionally, rate-limit responses) are
retried a few times on the same credential with the transient backoff tier
before the dispatcher sees them. The last failure is re-raised unchanged so
the dispatcher classifies it with the same RateLimitClassifier.
"""

import asyncio
import functools
from typing import Awaitable, Callable, TypeVar

import structlog

from quota_rotator.models.credential_models import Credential
from quota_rotator.monitoring.metrics import backoff_wait_seconds
from quota_rotator.retry.backoff import BackoffPolicy, BackoffTier
from quota_rotator.retry.classifier import RateLimitClassifier
from quota_rotator.upstream.exceptions import UpstreamConnectionError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class TransientRetry:
    """
    Retry transient upstream failures with short exponential backoff.

    Attributes:
        classifier: Shared rate-limit classifier
        backoff: Backoff policy providing transient_delay()
        max_attempts: Calls per wrapped invocation (>= 1)
        retry_rate_limits: Whether rate-limit failures are retried here too
        provider_id: Provider label for logs and metrics
    """

    def __init__(
        self,
        classifier: RateLimitClassifier,
        backoff: BackoffPolicy,
        max_attempts: int = 3,
        retry_rate_limits: bool = True,
        provider_id: str = "unknown",
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.classifier = classifier
        self.backoff = backoff
        self.max_attempts = max_attempts
        self.retry_rate_limits = retry_rate_limits
        self.provider_id = provider_id

    def is_transient(self, failure: BaseException) -> bool:
        if isinstance(failure, UpstreamConnectionError):
            return True
        return self.retry_rate_limits and self.classifier.is_rate_limit(failure)

    def wrap(
        self, operation: Callable[[Credential], Awaitable[T]]
    ) -> Callable[[Credential], Awaitable[T]]:
        """Return an operation that retries `operation` on transient failures."""

        @functools.wraps(operation)
        async def wrapped(credential: Credential) -> T:
            attempt = 1
            while True:
                try:
                    return await operation(credential)
                except Exception as failure:
                    if attempt >= self.max_attempts or not self.is_transient(failure):
                        raise

                    delay = self.backoff.transient_delay(attempt)
                    logger.info(
                        "Transient upstream failure, retrying",
                        provider=self.provider_id,
                        credential_id=credential.id,
                        attempt=attempt,
                        max_attempts=self.max_attempts,
                        error_type=type(failure).__name__,
                        delay_seconds=round(delay, 3),
                    )
                    backoff_wait_seconds.labels(
                        provider=self.provider_id, tier=BackoffTier.TRANSIENT.value
                    ).observe(delay)
                    await asyncio.sleep(delay)
                    attempt += 1

        return wrapped
