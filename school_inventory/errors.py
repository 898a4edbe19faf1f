"""Exception types shared by the inventory services and the web layer."""
from __future__ import annotations

from typing import Dict, Optional


class InventoryError(Exception):
    """Base class for errors surfaced to the user."""

    status_code = 400
    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(InventoryError):
    """Raised when a submitted form is incomplete or malformed."""

    code = "validation_error"

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None) -> None:
        super().__init__(message)
        self.fields: Dict[str, str] = dict(fields or {})


class ImportFileError(InventoryError):
    """Raised when a spreadsheet cannot be imported at all."""

    code = "import_error"


class AuthRequired(InventoryError):
    status_code = 401
    code = "unauthorized"


class InvalidCredentials(InventoryError):
    status_code = 401
    code = "invalid_credentials"


class VerificationPending(InventoryError):
    """Raised when the credentials match an account that is not verified yet."""

    status_code = 403
    code = "verification_pending"


class AccountNotFound(InventoryError):
    status_code = 404
    code = "not_found"


class DuplicateAccount(InventoryError):
    status_code = 409
    code = "duplicate_account"


class ConfirmationRequired(InventoryError):
    """Raised when a destructive request was sent without explicit confirmation."""

    status_code = 409
    code = "confirmation_required"


__all__ = [
    "InventoryError",
    "ValidationError",
    "ImportFileError",
    "AuthRequired",
    "InvalidCredentials",
    "VerificationPending",
    "AccountNotFound",
    "DuplicateAccount",
    "ConfirmationRequired",
]
