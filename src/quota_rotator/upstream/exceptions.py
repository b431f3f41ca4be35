"""
Custom exceptions for the upstream client layer.

They carry the HTTP status, response headers and any Retry-After value so
the rate-limit classifier can tell retryable exhaustion apart from fatal
failures without parsing error bodies.
"""

from typing import Mapping, Optional


class UpstreamError(Exception):
    """
    Base exception for all upstream call errors.

    Attributes:
        message: Human-readable summary
        status_code: HTTP status when the upstream answered
        headers: Response headers when the upstream answered
        retry_after: Seconds the upstream asked us to wait, if any
        details: Extra context for logs
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        headers: Optional[Mapping[str, str]] = None,
        retry_after: Optional[float] = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.headers = dict(headers) if headers else {}
        self.retry_after = retry_after
        self.details = details or {}


class UpstreamRateLimitError(UpstreamError):
    """
    Raised by caller operations that already know the credential ran out of
    quota (for example from an SDK-specific error type).

    Always classified as a rate limit. HttpUpstreamClient raises plain
    UpstreamError and leaves the decision to the classifier's status codes.
    """
    pass


class UpstreamConnectionError(UpstreamError):
    """
    Raised when the upstream cannot be reached (DNS, refused, reset).

    Retried by TransientRetry, fatal to the dispatcher once retries run out.
    """
    pass


class UpstreamTimeoutError(UpstreamConnectionError):
    """Raised when the upstream call exceeds its timeout."""
    pass
