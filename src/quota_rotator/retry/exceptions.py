"""
Retry dispatcher exceptions.

Every dispatch that does not return a result ends in one of these. They
carry the provider, the last credential tried, the number of attempts and
the full DispatchMetadata so callers can log or report the history.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from quota_rotator.retry.metadata import DispatchMetadata


class DispatchError(Exception):
    """
    Base exception for dispatch failures.

    Attributes:
        message: Human-readable summary
        provider_id: Provider the dispatch ran against
        credential_id: Last credential used (None if no call was made)
        attempts: Loop iterations consumed
        last_failure: Last upstream failure observed, if any
        metadata: Dispatch history
        details: Extra context for logs
    """

    def __init__(
        self,
        message: str,
        provider_id: str,
        credential_id: Optional[str] = None,
        attempts: int = 0,
        last_failure: Optional[BaseException] = None,
        metadata: Optional["DispatchMetadata"] = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider_id = provider_id
        self.credential_id = credential_id
        self.attempts = attempts
        self.last_failure = last_failure
        self.metadata = metadata
        self.details = details or {}


class FatalUpstreamError(DispatchError):
    """Upstream failure not classified as a rate limit; never retried."""


class AllKeysExhaustedError(DispatchError):
    """No spendable credential and patient mode off or attempts used up."""


class MaxAttemptsExceededError(DispatchError):
    """Attempt limit reached while failures were still rate limits."""


class TimedOutOrCancelledError(DispatchError):
    """Time budget elapsed or the cancellation token fired."""
