"""
NAE Test Sheets - Error Types
Version: 1.0.0

Changelog:
v1.0.0 (2026-09-28): Initial error hierarchy

Exception hierarchy:
- TestSheetError (base)
  - SheetValidationError (field-addressable validation failures)
  - DuplicateReferenceError (techReference already taken)
  - NotFoundError
  - RenderServiceError (external PDF renderer failed)
  - StorageError (database / disk I/O)
  - AuthenticationError (no valid session)
  - AccessDeniedError (not the owner)
  - EmailDomainError (email malformed or domain not allowed)
  - ProfileIncompleteError (first/last name missing)
  - EncryptionError (missing key, tampered ciphertext)

main.py maps each type to an HTTP status.
"""

from dataclasses import dataclass
from typing import List, Optional


@dataclass
class FieldError:
    """One validation failure, addressed by form field key"""
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class TestSheetError(Exception):
    """Base exception for all application errors."""
    __test__ = False  # keep pytest from collecting Test*-named classes

    status_code = 500


class SheetValidationError(TestSheetError):
    """
    Raised when a form record fails validation.

    Carries every failing field at once so the caller can highlight all of
    them; nothing is persisted when this is raised.
    """
    status_code = 422

    def __init__(self, errors: List[FieldError]):
        self.errors = list(errors)
        fields = ", ".join(e.field for e in self.errors)
        super().__init__(f"Validation failed: {fields}")


class DuplicateReferenceError(TestSheetError):
    """Raised when a techReference is already used by another sheet."""
    status_code = 409

    def __init__(self, tech_reference: str):
        self.tech_reference = tech_reference
        super().__init__(f"Tech reference '{tech_reference}' already exists")


class NotFoundError(TestSheetError):
    status_code = 404


class RenderServiceError(TestSheetError):
    """Raised when the external PDF rendering service fails or times out."""
    status_code = 502


class StorageError(TestSheetError):
    status_code = 500


class AuthenticationError(TestSheetError):
    status_code = 401


class AccessDeniedError(TestSheetError):
    status_code = 403


class EmailDomainError(TestSheetError):
    """
    Raised at the auth boundary for a rejected email.

    status_code is 400 for missing/malformed addresses and 403 for a
    well-formed address on a domain that is not allowed.
    """

    def __init__(self, message: str, status_code: int = 403):
        self.status_code = status_code
        super().__init__(message)


class ProfileIncompleteError(TestSheetError):
    status_code = 400

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "Please complete your profile first")


class EncryptionError(TestSheetError):
    """Raised when encryption is misconfigured or ciphertext fails integrity checks."""
    status_code = 500
