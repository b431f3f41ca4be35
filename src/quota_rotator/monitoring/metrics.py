"""Custom Prometheus metrics for Quota Rotator.

These metrics are exposed at /metrics endpoint and should be scraped by Prometheus.
Alert rules should be configured for:
- dispatch_results_total{result="all_keys_exhausted"} (pool fully exhausted)
- credentials_available == 0 (workflows will suspend until reset)
- state_save_failures_total (usage may be lost on crash)
- backoff_wait_seconds{tier="patient"} (long waits stretching workflows)
"""

from prometheus_client import Counter, Gauge, Histogram

# === Dispatch Metrics ===

dispatch_attempts_total = Counter(
    "dispatch_attempts_total",
    "Upstream call attempts by provider and outcome",
    ["provider", "outcome"],
)
"""
Attempt counter.

Labels:
- provider: Provider id from the state document
- outcome: success, rate_limited, fatal, no_candidate
"""

dispatch_results_total = Counter(
    "dispatch_results_total",
    "Final dispatch results by provider",
    ["provider", "result"],
)
"""
Dispatch result counter.

Labels:
- result: success, fatal, all_keys_exhausted, max_attempts_exceeded, timed_out_or_cancelled

Alert thresholds:
- WARN: any all_keys_exhausted
- CRITICAL: fatal rate > 5% of dispatches
"""

backoff_wait_seconds = Histogram(
    "backoff_wait_seconds",
    "Backoff waits by provider and tier",
    ["provider", "tier"],
    buckets=[0.1, 0.5, 1.0, 5.0, 30.0, 60.0, 300.0, 1800.0, 3600.0, 21600.0, 86400.0],
)
"""
Backoff wait histogram.

Labels:
- tier: key_switch (tier 1), patient (tier 2), throttle (per-minute interval), transient

Buckets span sub-second key switches up to a full day of patient waiting.
"""

# === Ledger Metrics ===

credential_exhausted_total = Counter(
    "credential_exhausted_total",
    "Credentials marked exhausted after a classified rate limit",
    ["provider"],
)

credential_requests_total = Counter(
    "credential_requests_total",
    "Requests recorded in the usage ledger",
    ["provider", "succeeded"],
)

credential_tokens_total = Counter(
    "credential_tokens_total",
    "Tokens recorded in the usage ledger",
    ["provider"],
)

daily_resets_total = Counter(
    "daily_resets_total",
    "Credentials whose daily usage window was reset",
    ["provider"],
)

state_save_failures_total = Counter(
    "state_save_failures_total",
    "Failed snapshot saves to the durable store",
)
"""
Save failure counter.

Alert thresholds:
- WARN: any failure (the next mutation retries the save)
- CRITICAL: sustained failures (a crash would lose recorded usage)
"""

credentials_available = Gauge(
    "credentials_available",
    "Spendable credentials at the last quota status check",
    ["provider"],
)
