"""
Pydantic models for the persisted credential state.

The whole document (every provider pool, the global settings and metadata)
is loaded at startup, mutated in place by the usage ledger and written back
after every mutation. The models therefore double as the persisted layout:

    {
      "providers": {"<provider_id>": {"credentials": [...], "rotation_strategy": ...,
                                      "patient_mode_enabled": ..., "retry_policy": {...}}},
      "global_settings": {...},
      "metadata": {...}
    }

Legacy key names of the original `proxies.json` files (`keys`, `key`,
`patient_mode`, `*_ms` delays, ...) are accepted on load; saving always uses
the current names.
"""

from datetime import date, datetime, timezone
from typing import Annotated, Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    SecretStr,
    field_serializer,
    field_validator,
    model_validator,
)

from quota_rotator.models.enums import CredentialStatus, RotationStrategy


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def _ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# Naive timestamps in older state files are UTC
AwareDatetime = Annotated[datetime, AfterValidator(_ensure_aware)]


class CredentialLimits(BaseModel):
    """Upstream quota limits of one credential (all strictly positive)."""

    requests_per_minute: int = Field(..., gt=0)
    requests_per_day: int = Field(..., gt=0)
    tokens_per_minute: int = Field(..., gt=0)
    tokens_per_day: int = Field(..., gt=0)


class UsageToday(BaseModel):
    """
    Usage counters for the current quota window.

    `last_reset` is the quota-window date the counters belong to; when it
    differs from the window of "now" the counters are stale and get reset
    by the ledger's daily reconciliation.
    """

    requests: int = Field(default=0, ge=0)
    tokens: int = Field(default=0, ge=0)
    last_reset: Optional[date] = None
    last_request_time: Optional[AwareDatetime] = None


class Credential(BaseModel):
    """
    One rotatable identity for calling the upstream API.

    The secret is a SecretStr so it stays masked in reprs and logs; it is
    serialized in clear only because the durable store must round-trip it.
    """

    id: str = Field(..., min_length=1)
    secret: SecretStr = Field(..., validation_alias=AliasChoices("secret", "key"))
    limits: CredentialLimits
    usage_today: UsageToday = Field(default_factory=UsageToday)
    last_used: Optional[AwareDatetime] = None
    status: CredentialStatus = CredentialStatus.ACTIVE

    @field_serializer("secret", when_used="always")
    def _dump_secret(self, value: SecretStr) -> str:
        return value.get_secret_value()


class RetryPolicy(BaseModel):
    """
    Patient (tier 2) backoff parameters of a provider pool.

    base_delay_seconds is the floor of every patient wait and
    max_delay_seconds its ceiling.
    """

    base_delay_seconds: float = Field(default=60.0, ge=0)
    max_delay_seconds: float = Field(default=86400.0, gt=0)
    exponential_factor: float = Field(default=2.0, ge=1.0)
    jitter_factor: float = Field(default=0.2, ge=0.0, le=1.0)
    max_retries: int = Field(default=4, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _convert_legacy_milliseconds(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            for legacy, current in (
                ("base_delay_ms", "base_delay_seconds"),
                ("max_delay_ms", "max_delay_seconds"),
            ):
                if legacy in data and current not in data:
                    data[current] = data.pop(legacy) / 1000.0
        return data

    @model_validator(mode="after")
    def _check_bounds(self) -> "RetryPolicy":
        if self.base_delay_seconds > self.max_delay_seconds:
            raise ValueError("base_delay_seconds must not exceed max_delay_seconds")
        return self


class ProviderPool(BaseModel):
    """
    Credentials and policy for one upstream provider.

    The round-robin cursor is private, in-memory state owned by the pool; it
    is only read or moved inside the usage ledger's critical section and is
    never persisted.
    """

    credentials: list[Credential] = Field(
        default_factory=list,
        validation_alias=AliasChoices("credentials", "keys"),
    )
    rotation_strategy: RotationStrategy = RotationStrategy.ROUND_ROBIN
    patient_mode_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("patient_mode_enabled", "patient_mode"),
    )
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)

    _cursor: int = PrivateAttr(default=0)

    @field_validator("rotation_strategy", mode="before")
    @classmethod
    def _normalize_strategy(cls, value: Any) -> Any:
        if isinstance(value, str):
            return RotationStrategy(value)
        return value

    @model_validator(mode="after")
    def _check_unique_ids(self) -> "ProviderPool":
        seen: set[str] = set()
        for credential in self.credentials:
            if credential.id in seen:
                raise ValueError(f"Duplicate credential id: {credential.id}")
            seen.add(credential.id)
        return self

    def get_credential(self, credential_id: str) -> Optional[Credential]:
        for credential in self.credentials:
            if credential.id == credential_id:
                return credential
        return None


class GlobalSettings(BaseModel):
    """Cross-provider quota policy."""

    buffer_fraction: float = Field(
        default=0.1,
        ge=0.0,
        lt=1.0,
        validation_alias=AliasChoices("buffer_fraction", "rate_limit_buffer_percentage"),
        description="Headroom kept below every daily limit",
    )
    daily_reset_hour: int = Field(
        default=0,
        ge=0,
        le=23,
        validation_alias=AliasChoices("daily_reset_hour", "daily_quota_reset_hour"),
    )
    reset_timezone: str = Field(default="UTC", description="IANA zone the reset hour is expressed in")
    max_workflow_duration_hours: float = Field(default=24.0, gt=0)
    resume_check_interval_minutes: float = Field(default=30.0, gt=0)
    suspend_on_full_exhaustion: bool = Field(
        default=True,
        validation_alias=AliasChoices("suspend_on_full_exhaustion", "suspend_on_all_keys_exhausted"),
    )

    @field_validator("reset_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value


class StateMetadata(BaseModel):
    """Document metadata, updated on every save."""

    version: str = "1.0"
    created_at: AwareDatetime = Field(
        default_factory=utcnow,
        validation_alias=AliasChoices("created_at", "created"),
    )
    updated_at: AwareDatetime = Field(
        default_factory=utcnow,
        validation_alias=AliasChoices("updated_at", "last_updated"),
    )
    description: Optional[str] = None


class PersistedState(BaseModel):
    """The complete durable document: all pools, global settings, metadata."""

    model_config = ConfigDict(extra="ignore")

    providers: dict[str, ProviderPool] = Field(default_factory=dict)
    global_settings: GlobalSettings = Field(default_factory=GlobalSettings)
    metadata: StateMetadata = Field(default_factory=StateMetadata)

    @model_validator(mode="after")
    def _check_no_shared_secrets(self) -> "PersistedState":
        owners: dict[str, str] = {}
        for provider_id, pool in self.providers.items():
            for credential in pool.credentials:
                secret = credential.secret.get_secret_value()
                owner = owners.setdefault(secret, provider_id)
                if owner != provider_id:
                    raise ValueError(
                        f"Credential {credential.id} of provider {provider_id} "
                        f"shares its secret with provider {owner}"
                    )
        return self
