class IDVerifyError(Exception):
    """Base exception for the application."""


class StoreError(IDVerifyError):
    """Raised when the record store cannot persist a change."""


class DuplicateRecordError(StoreError):
    """Raised when creating a record whose identifier already exists."""


class ValidationError(IDVerifyError):
    """Raised when record fields are missing or malformed."""

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__('; '.join(self.errors))


class AuthenticationError(IDVerifyError):
    """Raised when login credentials are invalid."""


class AuthorizationError(IDVerifyError):
    """Raised when an operation is attempted without a valid admin session."""


class ImportFormatError(IDVerifyError):
    """Raised when an uploaded file is not a recognisable import format."""
