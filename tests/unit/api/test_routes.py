"""
Unit tests for the quota status API.

Uses FastAPI's TestClient with get_rotator overridden by a rotator over an
in-memory store. The startup hook is not run (no context manager), so each
test initializes its own rotator.
"""

import pytest
from fastapi.testclient import TestClient

from quota_rotator.api.dependencies import get_rotator
from quota_rotator.main import app
from quota_rotator.models.enums import CredentialStatus
from quota_rotator.service import QuotaRotator
from tests.helpers import FrozenClock, InMemoryStateStore, make_credential, make_state


@pytest.fixture
def store() -> InMemoryStateStore:
    return InMemoryStateStore(
        make_state(
            [
                make_credential("A", requests=10),
                make_credential("B", status=CredentialStatus.EXHAUSTED),
            ]
        )
    )


@pytest.fixture
def rotator(test_settings, store) -> QuotaRotator:
    return QuotaRotator.from_settings(test_settings, store=store, clock=FrozenClock())


@pytest.fixture
def client(rotator):
    app.dependency_overrides[get_rotator] = lambda: rotator
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health_healthy(client, rotator):
    await rotator.initialize()

    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["services"] == {"ledger": "ok", "state_store": "ok"}


@pytest.mark.asyncio
async def test_health_degraded_on_save_failure(client, rotator, store):
    await rotator.initialize()
    store.fail_saves = True
    await rotator.ledger.record_usage("gemini", "A", 10)

    body = client.get("/health").json()

    assert body["status"] == "degraded"
    assert body["services"]["state_store"] == "save_failing"


def test_health_unhealthy_before_initialize(client):
    body = client.get("/health").json()

    assert body["status"] == "unhealthy"
    assert body["services"]["ledger"] == "not_initialized"


@pytest.mark.asyncio
async def test_quota_overview(client, rotator):
    await rotator.initialize()

    response = client.get("/quota")

    assert response.status_code == 200
    body = response.json()
    gemini = body["providers"]["gemini"]
    assert gemini["available_count"] == 1
    assert gemini["exhausted_count"] == 1
    assert gemini["estimated_remaining"] == 990
    assert gemini["recommended_action"] == "continue"
    assert body["last_save_error"] is None


@pytest.mark.asyncio
async def test_quota_never_exposes_secrets(client, rotator):
    await rotator.initialize()

    assert "secret-A-0000" not in client.get("/quota").text
    assert "secret-A-0000" not in client.get("/quota/gemini").text


@pytest.mark.asyncio
async def test_provider_quota(client, rotator):
    await rotator.initialize()

    response = client.get("/quota/gemini")

    assert response.status_code == 200
    assert response.json()["provider_id"] == "gemini"


@pytest.mark.asyncio
async def test_unknown_provider_404(client, rotator):
    await rotator.initialize()

    response = client.get("/quota/openai")

    assert response.status_code == 404
    assert response.json()["error"] == "provider_not_found"


def test_quota_before_initialize_503(client):
    response = client.get("/quota")

    assert response.status_code == 503
    assert response.json()["error"] == "state_unavailable"


@pytest.mark.asyncio
async def test_reconcile(client, rotator):
    await rotator.initialize()
    rotator.ledger.clock.advance(days=1)

    response = client.post("/quota/reconcile")

    assert response.status_code == 200
    body = response.json()
    assert body["reset_count"] == 2
    assert body["next_reset_time"].startswith("2026-03-12T00:00:00")


def test_root(client):
    body = client.get("/").json()

    assert body["service"] == "Quota Rotator"
    assert body["quota"] == "/quota"
