"""Unit test fixtures (mocks and stubs).

Provides mock objects and pre-initialized components for testing without
external dependencies.
"""

import random
from unittest.mock import AsyncMock

import pytest

from quota_rotator.ledger.usage_ledger import UsageLedger
from quota_rotator.rotation.selector import RotationSelector
from tests.helpers import FrozenClock, InMemoryStateStore


@pytest.fixture
def mock_async_redis():
    """Mock AsyncRedis client for unit tests (async)."""
    mock = AsyncMock()
    mock.set = AsyncMock(return_value=True)
    mock.get = AsyncMock(return_value=None)
    mock.delete = AsyncMock(return_value=1)
    mock.exists = AsyncMock(return_value=False)
    mock.ping = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source for deterministic strategies and jitter."""
    return random.Random(1234)


@pytest.fixture
async def ledger(memory_store: InMemoryStateStore, clock: FrozenClock, rng: random.Random) -> UsageLedger:
    """Initialized ledger over the two-credential in-memory state with a frozen clock."""
    ledger = UsageLedger(memory_store, selector=RotationSelector(rng), clock=clock)
    await ledger.initialize()
    return ledger
