"""ConsentHub SDK exceptions."""

from typing import Optional


class ConsentHubError(Exception):
    """Base class for SDK errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class ValidationError(ConsentHubError):
    """Request rejected as malformed (or refused locally)."""


class DocumentMismatchError(ConsentHubError):
    """Referenced policy document is not the one in effect."""


class ConflictError(ConsentHubError):
    """Local history diverges from the ledger."""


class NotFoundError(ConsentHubError):
    """Resource does not exist."""


class TransportError(ConsentHubError):
    """Network failure, timeout, throttling or server error. Retryable."""


class APIError(ConsentHubError):
    """Any other non-success response (authentication, authorization...)."""


ERROR_CODES = {
    "VALIDATION_ERROR": ValidationError,
    "DOCUMENT_MISMATCH": DocumentMismatchError,
    "CONFLICT": ConflictError,
    "NOT_FOUND": NotFoundError,
}


def error_from_response(response) -> ConsentHubError:
    """Map an error response to the matching exception."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    detail = body.get("detail") or f"HTTP {response.status_code}"
    if not isinstance(detail, str):
        detail = str(detail)
    error_code = body.get("error_code")

    if response.status_code == 429 or response.status_code >= 500:
        error_class = TransportError
    else:
        error_class = ERROR_CODES.get(error_code, APIError)
    return error_class(
        detail,
        status_code=response.status_code,
        error_code=error_code,
        details=body.get("details"),
    )
