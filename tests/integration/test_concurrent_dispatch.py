"""
Integration tests for concurrent dispatches sharing one ledger and a real
JSON state file.
"""

import asyncio

import pytest

from quota_rotator.persistence.file_store import JsonFileStateStore
from quota_rotator.service import QuotaRotator
from quota_rotator.upstream.exceptions import UpstreamRateLimitError
from tests.helpers import make_credential, make_state

pytestmark = pytest.mark.integration


@pytest.fixture
async def rotator(tmp_path, test_settings):
    store = JsonFileStateStore(tmp_path / "proxies.json")
    await store.save(make_state([make_credential(name) for name in "ABCD"]))

    rotator = QuotaRotator.from_settings(test_settings, store=JsonFileStateStore(tmp_path / "proxies.json"))
    await rotator.initialize()
    return rotator


@pytest.mark.asyncio
async def test_no_lost_updates(rotator, tmp_path):
    async def operation(credential):
        await asyncio.sleep(0.001)
        return credential.id

    results = await asyncio.gather(*(rotator.execute("gemini", operation) for _ in range(40)))

    assert len(results) == 40
    pool = rotator.ledger.get_pool("gemini")
    assert sum(c.usage_today.requests for c in pool.credentials) == 40

    # The file on disk agrees with memory
    saved = await JsonFileStateStore(tmp_path / "proxies.json").load()
    assert sum(c.usage_today.requests for c in saved.providers["gemini"].credentials) == 40


@pytest.mark.asyncio
async def test_concurrent_rate_limits_rotate(rotator):
    async def operation(credential):
        if credential.id in {"A", "B"}:
            raise UpstreamRateLimitError("429", status_code=429)
        return credential.id

    results = await asyncio.gather(*(rotator.execute("gemini", operation) for _ in range(10)))

    assert {r.credential_id for r in results} <= {"C", "D"}
    status = await rotator.get_quota_status("gemini")
    assert status.exhausted_count == 2
    assert status.available_count == 2
