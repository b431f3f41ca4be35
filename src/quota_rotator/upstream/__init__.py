"""
Caller-side upstream client layer.

Main Components:
    - HttpUpstreamClient: httpx-based factory of dispatcher operations
    - UpstreamError family: failures carrying status, headers and Retry-After
"""

from quota_rotator.upstream.client import (
    HttpUpstreamClient,
    UpstreamResponse,
    extract_usage_tokens,
)
from quota_rotator.upstream.exceptions import (
    UpstreamConnectionError,
    UpstreamError,
    UpstreamRateLimitError,
    UpstreamTimeoutError,
)

__all__ = [
    "HttpUpstreamClient",
    "UpstreamResponse",
    "extract_usage_tokens",
    "UpstreamError",
    "UpstreamRateLimitError",
    "UpstreamConnectionError",
    "UpstreamTimeoutError",
]
