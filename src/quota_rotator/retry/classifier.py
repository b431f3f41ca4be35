"""
Rate-limit classifier.

Decides whether an upstream failure means "this credential ran out of quota,
try another one or wait" or "this call is broken, stop". It is the single
predicate used both by the dispatcher and by the transient retry wrapper.

Signals, checked in order:
    - UpstreamRateLimitError instances
    - HTTP status 429 or 403 on `status_code`, `status` or `response.status_code`
    - Case-insensitive message markers ("quota exceeded", "rate limit exceeded",
      "resource_exhausted")

Retry-After is read from a `retry_after` attribute or a `Retry-After`
header, either delta-seconds or an HTTP-date.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Mapping, Optional

from quota_rotator.upstream.exceptions import UpstreamRateLimitError

RATE_LIMIT_STATUS_CODES = frozenset({429, 403})

RATE_LIMIT_MARKERS = (
    "quota exceeded",
    "rate limit exceeded",
    "resource_exhausted",
)


@dataclass(frozen=True)
class RateLimitInfo:
    """Classification of one failure."""

    is_rate_limit: bool
    retry_after: Optional[float] = None
    status_code: Optional[int] = None


def parse_retry_after(value: Any, now: Optional[datetime] = None) -> Optional[float]:
    """
    Convert a Retry-After value to seconds.

    Accepts numbers, timedeltas, numeric strings (delta-seconds) and
    HTTP-dates. Returns None when the value cannot be understood.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, timedelta):
        return max(0.0, value.total_seconds())
    if isinstance(value, (int, float)):
        return max(0.0, float(value))
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    try:
        return max(0.0, float(text))
    except ValueError:
        pass

    try:
        moment = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (moment - now).total_seconds())


def _header(headers: Any, name: str) -> Optional[str]:
    if not isinstance(headers, Mapping):
        return None
    lowered = name.lower()
    for key, value in headers.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return None


def _status_code(failure: BaseException) -> Optional[int]:
    for candidate in (getattr(failure, "status_code", None), getattr(failure, "status", None)):
        if isinstance(candidate, int) and not isinstance(candidate, bool):
            return candidate

    response = getattr(failure, "response", None)
    if response is not None:
        candidate = getattr(response, "status_code", None)
        if isinstance(candidate, int) and not isinstance(candidate, bool):
            return candidate
    return None


def _headers(failure: BaseException) -> Any:
    headers = getattr(failure, "headers", None)
    if headers:
        return headers
    response = getattr(failure, "response", None)
    if response is not None:
        return getattr(response, "headers", None)
    return None


def _message_text(failure: BaseException) -> str:
    parts = [str(failure)]
    message = getattr(failure, "message", None)
    if isinstance(message, str):
        parts.append(message)
    # gRPC-style APIs report "RESOURCE_EXHAUSTED" as a string status
    status = getattr(failure, "status", None)
    if isinstance(status, str):
        parts.append(status)
    return " ".join(parts).lower()


class RateLimitClassifier:
    """Classify upstream failures as rate limits or fatal errors."""

    def __init__(
        self,
        status_codes: frozenset[int] = RATE_LIMIT_STATUS_CODES,
        markers: tuple[str, ...] = RATE_LIMIT_MARKERS,
    ):
        self.status_codes = status_codes
        self.markers = tuple(marker.lower() for marker in markers)

    def classify(self, failure: BaseException) -> RateLimitInfo:
        status_code = _status_code(failure)
        is_rate_limit = (
            isinstance(failure, UpstreamRateLimitError)
            or (status_code is not None and status_code in self.status_codes)
            or self._has_marker(failure)
        )
        if not is_rate_limit:
            return RateLimitInfo(is_rate_limit=False, status_code=status_code)

        retry_after = parse_retry_after(getattr(failure, "retry_after", None))
        if retry_after is None:
            retry_after = parse_retry_after(_header(_headers(failure), "Retry-After"))

        return RateLimitInfo(is_rate_limit=True, retry_after=retry_after, status_code=status_code)

    def is_rate_limit(self, failure: BaseException) -> bool:
        return self.classify(failure).is_rate_limit

    def _has_marker(self, failure: BaseException) -> bool:
        text = _message_text(failure)
        return any(marker in text for marker in self.markers)
