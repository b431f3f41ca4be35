"""
Unit tests for the persisted credential state models.
"""

import json
from datetime import date, timezone

import pytest
from pydantic import ValidationError

from quota_rotator.models import (
    CredentialStatus,
    GlobalSettings,
    PersistedState,
    ProviderPool,
    RetryPolicy,
    RotationStrategy,
)
from tests.helpers import make_credential, make_state


def test_legacy_layout_loads(legacy_state_data):
    """Original proxies.json key names are accepted."""
    state = PersistedState.model_validate(legacy_state_data)

    pool = state.providers["gemini"]
    assert [c.id for c in pool.credentials] == ["gemini-key-1", "gemini-key-2"]
    assert pool.credentials[0].secret.get_secret_value() == "AIzaSy-legacy-key-one-0001"
    assert pool.rotation_strategy == RotationStrategy.ROUND_ROBIN
    assert pool.patient_mode_enabled is True

    # Millisecond delays converted to seconds
    assert pool.retry_policy.base_delay_seconds == 60.0
    assert pool.retry_policy.max_delay_seconds == 86400.0
    assert pool.retry_policy.max_retries == 10

    gs = state.global_settings
    assert gs.buffer_fraction == 0.1
    assert gs.daily_reset_hour == 0
    assert gs.max_workflow_duration_hours == 48
    assert gs.suspend_on_full_exhaustion is True
    assert gs.reset_timezone == "UTC"

    assert state.metadata.created_at.year == 2026
    assert state.metadata.description == "Gemini API key rotation"


def test_legacy_layout_parses_usage(legacy_state_data):
    state = PersistedState.model_validate(legacy_state_data)
    first, second = state.providers["gemini"].credentials

    assert first.usage_today.requests == 42
    assert first.usage_today.last_reset == date(2026, 3, 10)
    assert first.usage_today.last_request_time.tzinfo is not None
    assert second.status == CredentialStatus.EXHAUSTED
    assert second.usage_today.last_request_time is None


def test_save_uses_current_names(legacy_state_data):
    state = PersistedState.model_validate(legacy_state_data)
    dumped = json.loads(state.model_dump_json())

    pool = dumped["providers"]["gemini"]
    assert "credentials" in pool and "keys" not in pool
    assert "patient_mode_enabled" in pool
    assert pool["credentials"][0]["secret"] == "AIzaSy-legacy-key-one-0001"
    assert "buffer_fraction" in dumped["global_settings"]
    assert "updated_at" in dumped["metadata"]


def test_round_trip_preserves_state(legacy_state_data):
    state = PersistedState.model_validate(legacy_state_data)
    reloaded = PersistedState.model_validate_json(state.model_dump_json())

    assert reloaded.model_dump() == state.model_dump()


def test_secret_is_masked_in_repr():
    credential = make_credential("A", secret="super-secret-value-1234")

    assert "super-secret-value-1234" not in repr(credential)
    assert "super-secret-value-1234" not in str(credential)


@pytest.mark.parametrize("spelling", ["round-robin", "ROUND_ROBIN", "Round-Robin"])
def test_rotation_strategy_accepts_spellings(spelling):
    pool = ProviderPool.model_validate({"credentials": [], "rotation_strategy": spelling})
    assert pool.rotation_strategy == RotationStrategy.ROUND_ROBIN


def test_rotation_strategy_rejects_unknown():
    with pytest.raises(ValidationError):
        ProviderPool.model_validate({"credentials": [], "rotation_strategy": "fastest"})


def test_duplicate_credential_ids_rejected():
    with pytest.raises(ValidationError, match="Duplicate credential id"):
        ProviderPool(credentials=[make_credential("A"), make_credential("A", secret="other-secret")])


def test_shared_secret_across_providers_rejected():
    shared = "shared-secret-9999"
    data = {
        "providers": {
            "gemini": {"credentials": [make_credential("A", secret=shared).model_dump(mode="json")]},
            "openai": {"credentials": [make_credential("B", secret=shared).model_dump(mode="json")]},
        }
    }
    with pytest.raises(ValidationError, match="shares its secret"):
        PersistedState.model_validate(data)


@pytest.mark.parametrize(
    "limits",
    [
        {"requests_per_minute": 0, "requests_per_day": 10, "tokens_per_minute": 10, "tokens_per_day": 10},
        {"requests_per_minute": 1, "requests_per_day": -1, "tokens_per_minute": 10, "tokens_per_day": 10},
    ],
)
def test_limits_must_be_positive(limits):
    with pytest.raises(ValidationError):
        PersistedState.model_validate(
            {"providers": {"p": {"credentials": [{"id": "x", "secret": "s", "limits": limits}]}}}
        )


def test_retry_policy_bounds():
    with pytest.raises(ValidationError):
        RetryPolicy(base_delay_seconds=100, max_delay_seconds=10)


def test_global_settings_validates_timezone():
    assert GlobalSettings(reset_timezone="America/Los_Angeles").reset_timezone == "America/Los_Angeles"
    with pytest.raises(ValidationError):
        GlobalSettings(reset_timezone="Mars/Olympus_Mons")


def test_global_settings_buffer_range():
    with pytest.raises(ValidationError):
        GlobalSettings(buffer_fraction=1.0)
    with pytest.raises(ValidationError):
        GlobalSettings(buffer_fraction=-0.1)


def test_naive_timestamps_are_utc():
    state = make_state([make_credential("A")])
    data = state.model_dump(mode="json")
    data["providers"]["gemini"]["credentials"][0]["last_used"] = "2026-03-10T08:00:00"

    loaded = PersistedState.model_validate(data)
    assert loaded.providers["gemini"].credentials[0].last_used.tzinfo == timezone.utc


def test_cursor_is_not_persisted():
    state = make_state([make_credential("A"), make_credential("B")])
    state.providers["gemini"]._cursor = 1

    assert "_cursor" not in state.model_dump_json()
