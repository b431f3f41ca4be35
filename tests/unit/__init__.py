"""
Unit tests for Quota Rotator.

Test individual components in isolation:
- State models (legacy layout, validation, secret masking)
- Usage ledger (recording, daily reconciliation, selection claims)
- Rotation strategies
- Classifier, backoff policy and retry dispatcher
- State stores, upstream client and API routes
"""
