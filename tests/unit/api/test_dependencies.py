"""
Unit tests for API dependency injection.
"""

from quota_rotator.api.dependencies import get_rotator, get_settings
from quota_rotator.config import Settings
from quota_rotator.persistence.file_store import JsonFileStateStore
from quota_rotator.service import QuotaRotator


def test_get_settings():
    """Test settings singleton."""
    settings1 = get_settings()
    settings2 = get_settings()

    # Should be same instance (cached)
    assert settings1 is settings2
    assert isinstance(settings1, Settings)


def test_get_rotator():
    """Test rotator singleton shares one ledger."""
    rotator1 = get_rotator()
    rotator2 = get_rotator()

    assert rotator1 is rotator2
    assert isinstance(rotator1, QuotaRotator)
    assert rotator1.ledger is rotator2.ledger


def test_default_backend_is_file():
    assert isinstance(get_rotator().ledger.store, JsonFileStateStore)
