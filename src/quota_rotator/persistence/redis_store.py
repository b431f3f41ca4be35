"""
Redis-backed state store.

Stores the complete state document as one JSON string under a single key
(default "quota_rotator:state"). Several processes on different hosts can
point at the same key; the last writer wins, which matches the single shared
state file model (no cross-process locking is attempted).

A separate timestamp key records the last successful save for operators.
"""

import structlog
from pydantic import ValidationError
from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import RedisError

from quota_rotator.models.credential_models import PersistedState
from quota_rotator.persistence.base import StateStore
from quota_rotator.persistence.exceptions import (
    ConfigInvalidError,
    ConfigNotFoundError,
    StateSaveError,
)

logger = structlog.get_logger(__name__)


class RedisStateStore(StateStore):
    """
    State store keeping the JSON document in Redis.

    Storage layout:
    - "<state_key>": JSON document (no TTL)
    - "<state_key>:saved_at": ISO timestamp of the last save
    """

    def __init__(self, redis_client: AsyncRedis, state_key: str = "quota_rotator:state"):
        """
        Initialize Redis store.

        Args:
            redis_client: AsyncRedis client instance
            state_key: Key holding the state document
        """
        self.redis = redis_client
        self.state_key = state_key
        self.saved_at_key = f"{state_key}:saved_at"

    @property
    def location(self) -> str:
        return f"redis:{self.state_key}"

    async def load(self) -> PersistedState:
        try:
            content = await self.redis.get(self.state_key)
        except RedisError as e:
            raise ConfigNotFoundError(
                f"Failed to read state from Redis key {self.state_key}: {e}",
                details={"key": self.state_key, "error_type": type(e).__name__},
            ) from e

        if content is None:
            raise ConfigNotFoundError(
                f"State key {self.state_key} not found in Redis",
                details={"key": self.state_key},
            )

        try:
            state = PersistedState.model_validate_json(content)
        except ValidationError as e:
            raise ConfigInvalidError(
                f"Failed to parse state from Redis key {self.state_key}: {e.error_count()} error(s)",
                details={"key": self.state_key, "errors": e.errors(include_url=False, include_context=False, include_input=False)},
            ) from e

        logger.info("State loaded from Redis", key=self.state_key, providers=list(state.providers))
        return state

    async def save(self, state: PersistedState) -> None:
        payload = state.model_dump_json()
        try:
            await self.redis.set(self.state_key, payload)
            await self.redis.set(self.saved_at_key, state.metadata.updated_at.isoformat())
        except RedisError as e:
            raise StateSaveError(
                f"Failed to write state to Redis key {self.state_key}: {e}",
                details={"key": self.state_key, "error_type": type(e).__name__},
            ) from e

        logger.debug("State saved to Redis", key=self.state_key, bytes=len(payload))
