"""
Quota Rotator for long-running workloads against quota-metered APIs.

Keeps an upstream API (e.g. a generative-model endpoint) usable for hours or
days without manual intervention:
- Rotates across a pool of credentials per provider
- Tracks per-credential daily quota locally (persisted after every change)
- Classifies upstream rate-limit failures
- Applies two-tier backoff: quick key switch, then patient long waits

Architecture: asyncio retry dispatcher + serialized usage ledger + pluggable
durable store (JSON file or Redis)
"""

__version__ = "0.1.0"
