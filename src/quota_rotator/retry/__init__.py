"""
Retry dispatch with credential rotation and two-tier backoff.

Failures are classified as rate limits or fatal errors. Rate limits mark the
credential exhausted and rotate to another one after a short key-switch
delay (tier 1); when the whole pool is exhausted and patient mode is on, the
dispatcher waits a long exponential delay (tier 2) before trying again.

Main Components:
    - RetryDispatcher: Main loop running one operation under the policy
    - RateLimitClassifier: Rate-limit vs fatal decision, Retry-After parsing
    - BackoffPolicy: Tier 1, tier 2 and transient delays
    - CancellationToken: Cooperative cancellation of dispatches and waits
    - TransientRetry: Short same-credential retries for caller operations
    - DispatchMetadata: Immutable history of one dispatch

Usage:
    >>> from quota_rotator.retry import RetryDispatcher
    >>> dispatcher = RetryDispatcher(ledger, classifier, backoff, settings)
    >>> result = await dispatcher.execute("gemini", operation)
"""

from quota_rotator.retry.backoff import BackoffPolicy, BackoffTier
from quota_rotator.retry.cancellation import CancellationToken
from quota_rotator.retry.classifier import (
    RateLimitClassifier,
    RateLimitInfo,
    parse_retry_after,
)
from quota_rotator.retry.dispatcher import DispatchResult, RetryDispatcher
from quota_rotator.retry.exceptions import (
    AllKeysExhaustedError,
    DispatchError,
    FatalUpstreamError,
    MaxAttemptsExceededError,
    TimedOutOrCancelledError,
)
from quota_rotator.retry.metadata import BackoffRecord, DispatchMetadata
from quota_rotator.retry.transient import TransientRetry

__all__ = [
    "RetryDispatcher",
    "DispatchResult",
    "RateLimitClassifier",
    "RateLimitInfo",
    "parse_retry_after",
    "BackoffPolicy",
    "BackoffTier",
    "CancellationToken",
    "TransientRetry",
    "DispatchMetadata",
    "BackoffRecord",
    "DispatchError",
    "FatalUpstreamError",
    "AllKeysExhaustedError",
    "MaxAttemptsExceededError",
    "TimedOutOrCancelledError",
]
