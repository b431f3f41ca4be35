"""
Configuration settings for Quota Rotator.

All settings are loaded from environment variables with sensible defaults.
Use .env file for local development.

Per-provider policy (rotation strategy, patient mode, retry policy) and the
global quota settings live in the persisted state document, not here.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Application ===
    APP_NAME: str = "Quota Rotator"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # === State Persistence ===
    STATE_BACKEND: str = "file"  # "file" or "redis"
    STATE_FILE_PATH: str = "proxies.json"
    STATE_SEARCH_PATHS: list[str] = []  # Extra locations tried when STATE_FILE_PATH is missing

    # === Redis ===
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_STATE_KEY: str = "quota_rotator:state"

    # === Backoff ===
    KEY_SWITCH_DELAY_SECONDS: float = 1.0  # Tier 1: settle delay after switching credential
    TRANSIENT_BASE_DELAY_SECONDS: float = 2.0
    TRANSIENT_MAX_DELAY_SECONDS: float = 30.0
    TRANSIENT_JITTER_FACTOR: float = 0.2
    TRANSIENT_MAX_ATTEMPTS: int = 3

    # === Dispatch ===
    DISPATCH_TIME_BUDGET_SECONDS: Optional[float] = None  # None = global max_workflow_duration_hours
    ESTIMATED_TOKENS_PER_CALL: int = 800  # Used when the operation result reports no usage
    SLOW_DOWN_THRESHOLD: int = 10  # Remaining requests below which callers should slow down

    # === Upstream HTTP client ===
    UPSTREAM_BASE_URL: str = "https://generativelanguage.googleapis.com"
    UPSTREAM_TIMEOUT: int = 60  # seconds
    UPSTREAM_API_KEY_HEADER: str = "x-goog-api-key"

    # === Monitoring ===
    PROMETHEUS_ENABLED: bool = True


# Global settings instance
settings = Settings()
