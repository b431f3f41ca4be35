"""
Usage ledger exceptions.

Raised for unknown providers or credentials. These are programmer or
configuration errors and are never retried.
"""


class LedgerError(Exception):
    """Base exception for usage ledger errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ProviderNotFoundError(LedgerError):
    """Raised when a provider id is not present in the loaded state."""

    def __init__(self, provider_id: str):
        super().__init__(
            f"Provider {provider_id} not found in configuration",
            details={"provider_id": provider_id},
        )
        self.provider_id = provider_id


class CredentialNotFoundError(LedgerError):
    """Raised when a credential id is not present in a provider pool."""

    def __init__(self, provider_id: str, credential_id: str):
        super().__init__(
            f"Credential {credential_id} not found for provider {provider_id}",
            details={"provider_id": provider_id, "credential_id": credential_id},
        )
        self.provider_id = provider_id
        self.credential_id = credential_id


class LedgerNotInitializedError(LedgerError):
    """Raised when the ledger is used before initialize()."""

    def __init__(self) -> None:
        super().__init__("Usage ledger used before initialize()")
