"""Shared test fixtures and configuration for all tests.

This conftest.py provides common fixtures used across unit and integration tests:
a controllable clock, an in-memory state store and builders for credential state.
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict

import pytest

from quota_rotator.config import Settings
from quota_rotator.models.credential_models import PersistedState
from tests.helpers import FrozenClock, InMemoryStateStore, make_credential, make_state


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with safe defaults for local testing.

    Delays are near zero so dispatch tests run fast.
    """
    return Settings(
        # === Application ===
        APP_NAME="Quota Rotator (Test)",
        APP_VERSION="0.1.0",
        DEBUG=True,
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="development",

        # === State Persistence ===
        STATE_BACKEND="file",
        STATE_FILE_PATH="proxies.json",
        STATE_SEARCH_PATHS=[],

        # === Redis ===
        REDIS_URL="redis://localhost:6379/15",
        REDIS_MAX_CONNECTIONS=10,
        REDIS_STATE_KEY="quota_rotator:test:state",

        # === Backoff ===
        KEY_SWITCH_DELAY_SECONDS=0.0,
        TRANSIENT_BASE_DELAY_SECONDS=0.001,
        TRANSIENT_MAX_DELAY_SECONDS=0.01,
        TRANSIENT_JITTER_FACTOR=0.0,
        TRANSIENT_MAX_ATTEMPTS=3,

        # === Dispatch ===
        DISPATCH_TIME_BUDGET_SECONDS=30.0,
        ESTIMATED_TOKENS_PER_CALL=800,
        SLOW_DOWN_THRESHOLD=10,

        PROMETHEUS_ENABLED=False,  # Disable metrics in tests unless explicitly needed
    )


@pytest.fixture
def clock() -> FrozenClock:
    """Clock fixed at 2026-03-10 12:00 UTC."""
    return FrozenClock()


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def legacy_state_data(fixtures_dir: Path) -> Dict[str, Any]:
    """Load the legacy proxies.json fixture as dict."""
    with open(fixtures_dir / "proxies_legacy.json") as f:
        return json.load(f)


@pytest.fixture
def two_key_state() -> PersistedState:
    """Round-robin pool with credentials A and B, both spendable."""
    return make_state([make_credential("A"), make_credential("B")])


@pytest.fixture
def memory_store(two_key_state: PersistedState) -> InMemoryStateStore:
    return InMemoryStateStore(copy.deepcopy(two_key_state))
