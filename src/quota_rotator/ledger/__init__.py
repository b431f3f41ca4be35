"""
Usage ledger and admission guard.

Main Components:
    - UsageLedger: serialized owner of credential state and persistence
    - QuotaWindow: daily reset-hour arithmetic in an explicit timezone
    - admission: pure is_spendable / throttle checks
"""

from quota_rotator.ledger.admission import (
    interval_wait,
    is_spendable,
    min_request_interval,
    remaining_requests,
    throttle_wait,
    within_daily_limits,
)
from quota_rotator.ledger.exceptions import (
    CredentialNotFoundError,
    LedgerError,
    LedgerNotInitializedError,
    ProviderNotFoundError,
)
from quota_rotator.ledger.quota_window import QuotaWindow
from quota_rotator.ledger.usage_ledger import UsageLedger

__all__ = [
    "UsageLedger",
    "QuotaWindow",
    "is_spendable",
    "within_daily_limits",
    "interval_wait",
    "min_request_interval",
    "remaining_requests",
    "throttle_wait",
    "LedgerError",
    "ProviderNotFoundError",
    "CredentialNotFoundError",
    "LedgerNotInitializedError",
]
