"""
State store exceptions.

Load failures (ConfigNotFoundError, ConfigInvalidError) are fatal to
initialization. Save failures (StateSaveError) are logged and surfaced but
never undo the in-memory mutation; the next mutation retries the save.
"""


class StateStoreError(Exception):
    """Base exception for durable state store errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigNotFoundError(StateStoreError):
    """Raised when no persisted state can be found at startup."""
    pass


class ConfigInvalidError(StateStoreError):
    """
    Raised when persisted state exists but cannot be parsed or validated.

    Includes malformed JSON, missing required fields, non-positive limits,
    unknown timezones and duplicate credential ids.
    """
    pass


class StateSaveError(StateStoreError):
    """Raised when writing the state snapshot fails."""
    pass
