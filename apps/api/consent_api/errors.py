"""Consent ledger errors.

Every error carries a stable ``error_code`` that the API renders next to the
message so clients can map failures back to a type without parsing text.
"""

from typing import Optional


class ConsentError(Exception):
    """Base class for consent ledger errors."""

    error_code = "CONSENT_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"detail": self.message, "error_code": self.error_code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ConsentError):
    """Malformed event, document or request."""

    error_code = "VALIDATION_ERROR"
    status_code = 422


class DocumentMismatchError(ConsentError):
    """Referenced policy document version is absent, stale or hashed differently."""

    error_code = "DOCUMENT_MISMATCH"
    status_code = 412


class ConflictError(ConsentError):
    """Divergent histories that cannot be reconciled automatically."""

    error_code = "CONFLICT"
    status_code = 409


class NotFoundError(ConsentError):
    """Requested resource does not exist."""

    error_code = "NOT_FOUND"
    status_code = 404
