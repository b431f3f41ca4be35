"""
Test fixtures for Quota Rotator.

Contains sample data for testing:
- proxies_legacy.json: State document in the legacy proxies.json layout
"""
