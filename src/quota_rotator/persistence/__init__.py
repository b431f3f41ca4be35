"""
Durable state persistence.

- base.py: StateStore interface (async load/save of the whole document)
- file_store.py: single JSON file with atomic replace
- redis_client.py: Redis connection pooling
- redis_store.py: the same document under one Redis key

Storage Strategy:
- The whole PersistedState document is rewritten after every ledger mutation
- Load failures are fatal (ConfigNotFoundError / ConfigInvalidError)
- Save failures raise StateSaveError; the ledger keeps the in-memory change
"""

from quota_rotator.persistence.base import StateStore
from quota_rotator.persistence.exceptions import (
    ConfigInvalidError,
    ConfigNotFoundError,
    StateSaveError,
    StateStoreError,
)
from quota_rotator.persistence.file_store import JsonFileStateStore
from quota_rotator.persistence.redis_client import (
    RedisClient,
    get_async_redis_client,
)
from quota_rotator.persistence.redis_store import RedisStateStore

__all__ = [
    "StateStore",
    "StateStoreError",
    "ConfigNotFoundError",
    "ConfigInvalidError",
    "StateSaveError",
    "JsonFileStateStore",
    "RedisClient",
    "get_async_redis_client",
    "RedisStateStore",
]
