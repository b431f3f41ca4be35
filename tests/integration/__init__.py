"""
Integration tests for Quota Rotator.

Test components together or against real external services:
- Concurrent dispatches sharing one ledger and a real JSON state file
- Redis state store round trips (skipped when Redis is not running)
"""
