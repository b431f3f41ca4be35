"""
FastAPI exception handlers for structured error responses.

Maps ledger and persistence exceptions to HTTP status codes.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
import structlog

from quota_rotator.ledger.exceptions import (
    CredentialNotFoundError,
    LedgerNotInitializedError,
    ProviderNotFoundError,
)
from quota_rotator.models.credential_models import utcnow
from quota_rotator.persistence.exceptions import StateStoreError

logger = structlog.get_logger(__name__)


def _error_body(error: str, message: str, details: dict | None = None) -> dict:
    return {
        "error": error,
        "message": message,
        "details": details,
        "timestamp": utcnow().isoformat(),
    }


async def not_found_handler(
    request: Request, exc: ProviderNotFoundError | CredentialNotFoundError
) -> JSONResponse:
    """
    Handle unknown provider or credential ids.

    Maps to 404 Not Found.
    """
    error = "credential_not_found" if isinstance(exc, CredentialNotFoundError) else "provider_not_found"
    logger.warning("Unknown id requested", path=request.url.path, error=error, details=exc.details)

    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=_error_body(error, exc.message, exc.details),
    )


async def state_unavailable_handler(
    request: Request, exc: StateStoreError | LedgerNotInitializedError
) -> JSONResponse:
    """
    Handle missing, invalid or unreachable state.

    Maps to 503 Service Unavailable (state may come back once the store is fixed).
    """
    logger.error(
        "State unavailable",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=exc.message,
    )

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=_error_body("state_unavailable", exc.message, exc.details),
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected errors.

    Maps to 500 Internal Server Error.
    """
    logger.exception("Unexpected error", error_type=type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("internal_error", "An unexpected error occurred"),
    )


# Exception handler mapping for FastAPI app.add_exception_handler()
EXCEPTION_HANDLERS = {
    ProviderNotFoundError: not_found_handler,
    CredentialNotFoundError: not_found_handler,
    LedgerNotInitializedError: state_unavailable_handler,
    StateStoreError: state_unavailable_handler,
    Exception: generic_error_handler,
}
