"""
Unit tests for logging configuration and secret masking.
"""

import structlog
from pydantic import SecretStr

from quota_rotator.logging_config import configure_logging, mask_secrets, mask_value


def test_mask_value_keeps_last_four():
    assert mask_value("AIzaSy-very-secret-1234") == "****1234"
    assert mask_value("abc") == "****"


def test_mask_secrets_processor():
    event = {
        "event": "Calling upstream",
        "secret": "AIzaSy-very-secret-1234",
        "api_key": SecretStr("sk-live-abcdef9876"),
        "credential_id": "gemini-key-1",
    }

    masked = mask_secrets(None, "info", event)

    assert masked["secret"] == "****1234"
    assert masked["api_key"] == "****9876"
    assert masked["credential_id"] == "gemini-key-1"


def test_configure_logging_accepts_both_environments():
    configure_logging("DEBUG", "development")
    configure_logging("INFO", "production")


def test_development_console_renders_exceptions(capsys):
    configure_logging("DEBUG", "development")
    logger = structlog.get_logger("tests.console")

    try:
        1 / 0
    except ZeroDivisionError:
        logger.exception("Dispatch crashed", credential_id="A")

    out = capsys.readouterr().out
    assert "Dispatch crashed" in out
    assert "ZeroDivisionError" in out
