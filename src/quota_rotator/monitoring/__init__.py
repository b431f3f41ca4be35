"""Monitoring and metrics instrumentation for Quota Rotator.

Exports custom Prometheus metrics for operational monitoring and alerting.
"""

from quota_rotator.monitoring.metrics import (
    backoff_wait_seconds,
    credential_exhausted_total,
    credential_requests_total,
    credential_tokens_total,
    credentials_available,
    daily_resets_total,
    dispatch_attempts_total,
    dispatch_results_total,
    state_save_failures_total,
)

__all__ = [
    "dispatch_attempts_total",
    "dispatch_results_total",
    "backoff_wait_seconds",
    "credential_exhausted_total",
    "credential_requests_total",
    "credential_tokens_total",
    "daily_resets_total",
    "state_save_failures_total",
    "credentials_available",
]
