"""
Unit tests for TransientRetry and CancellationToken.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from quota_rotator.retry.backoff import BackoffPolicy
from quota_rotator.retry.cancellation import CancellationToken
from quota_rotator.retry.classifier import RateLimitClassifier
from quota_rotator.retry.transient import TransientRetry
from quota_rotator.upstream.exceptions import (
    UpstreamConnectionError,
    UpstreamError,
    UpstreamRateLimitError,
    UpstreamTimeoutError,
)
from tests.helpers import make_credential


@pytest.fixture
def transient(test_settings) -> TransientRetry:
    return TransientRetry(RateLimitClassifier(), BackoffPolicy(test_settings), max_attempts=3)


@pytest.mark.asyncio
async def test_retries_connection_errors_then_succeeds(transient):
    operation = AsyncMock(
        side_effect=[UpstreamConnectionError("reset"), UpstreamTimeoutError("timeout"), "ok"]
    )

    result = await transient.wrap(operation)(make_credential("A"))

    assert result == "ok"
    assert operation.await_count == 3


@pytest.mark.asyncio
async def test_reraises_last_failure(transient):
    last = UpstreamConnectionError("still down")
    operation = AsyncMock(side_effect=[UpstreamConnectionError("down"), UpstreamConnectionError("down"), last])

    with pytest.raises(UpstreamConnectionError) as exc_info:
        await transient.wrap(operation)(make_credential("A"))

    assert exc_info.value is last
    assert operation.await_count == 3


@pytest.mark.asyncio
async def test_fatal_errors_pass_through(transient):
    operation = AsyncMock(side_effect=UpstreamError("HTTP 400", status_code=400))

    with pytest.raises(UpstreamError):
        await transient.wrap(operation)(make_credential("A"))

    assert operation.await_count == 1


@pytest.mark.asyncio
async def test_rate_limits_optional(test_settings):
    classifier = RateLimitClassifier()
    backoff = BackoffPolicy(test_settings)
    limited = UpstreamRateLimitError("429", status_code=429)

    retrying = AsyncMock(side_effect=[limited, "ok"])
    assert await TransientRetry(classifier, backoff).wrap(retrying)(make_credential("A")) == "ok"

    not_retrying = AsyncMock(side_effect=[limited, "ok"])
    with pytest.raises(UpstreamRateLimitError):
        await TransientRetry(classifier, backoff, retry_rate_limits=False).wrap(not_retrying)(
            make_credential("A")
        )
    assert not_retrying.await_count == 1


def test_max_attempts_validated(test_settings):
    with pytest.raises(ValueError):
        TransientRetry(RateLimitClassifier(), BackoffPolicy(test_settings), max_attempts=0)


def test_wrap_preserves_name(transient):
    async def call_gemini(credential):
        return credential.id

    assert transient.wrap(call_gemini).__name__ == "call_gemini"


# ============================================================================
# CancellationToken
# ============================================================================


@pytest.mark.asyncio
async def test_token_wait_times_out():
    token = CancellationToken()

    assert await token.wait(0.01) is False
    assert token.cancelled is False


@pytest.mark.asyncio
async def test_token_cancel_wakes_waiter():
    token = CancellationToken()
    asyncio.get_running_loop().call_later(0.01, token.cancel, "shutdown")

    assert await token.wait(5) is True
    assert token.reason == "shutdown"


@pytest.mark.asyncio
async def test_token_first_reason_wins():
    token = CancellationToken()
    token.cancel("first")
    token.cancel("second")

    assert token.reason == "first"
    assert await token.wait(0) is True
