"""Integration test fixtures (service checks and prerequisites).

Provides fixtures for checking if external services are available.
Integration tests are skipped if required services are not running.
"""

import pytest
from redis.asyncio import Redis as AsyncRedis


@pytest.fixture
async def check_async_redis():
    """Check if Redis is available at localhost:6379.

    Skips tests if Redis is not reachable.
    """
    client = AsyncRedis.from_url("redis://localhost:6379/15", socket_connect_timeout=1)
    try:
        await client.ping()
    except Exception as e:
        pytest.skip(f"Redis not available: {e}")
    finally:
        await client.aclose()


@pytest.fixture
async def real_async_redis_client(check_async_redis):
    """Real AsyncRedis client instance for integration tests (async).

    Requires Redis to be running (checked by check_async_redis fixture).
    Uses database 15 (test database).
    """
    client = AsyncRedis.from_url("redis://localhost:6379/15", decode_responses=True)

    # Clear test database before test
    await client.flushdb()

    yield client

    # Clear test database after test
    await client.flushdb()
    await client.aclose()
