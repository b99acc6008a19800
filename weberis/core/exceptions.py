"""Custom exceptions for the WEBERIS CRM application."""


class WeberisException(Exception):
    """Base exception for WEBERIS application."""

    pass


class ConfigurationError(WeberisException):
    """Raised when configuration is invalid."""

    pass


class AuthenticationError(WeberisException):
    """Raised when the caller cannot be identified."""

    pass


class CRMError(WeberisException):
    """Base class for errors returned as workflow results.

    ``code`` is the stable machine-readable identifier that travels with the
    failure result; the message is the single human-readable sentence shown
    to the user.
    """

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(CRMError):
    """Raised when submitted input is missing or malformed."""

    code = "validation_error"


class Forbidden(CRMError):
    """Raised when the actor may not perform the operation."""

    code = "forbidden"


class Conflict(CRMError):
    """Raised when a uniqueness or referential-integrity rule blocks the write."""

    code = "conflict"


class NotFound(CRMError):
    """Raised when a referenced entity does not exist."""

    code = "not_found"


class OperationFailed(CRMError):
    """Raised when the data store fails during a transaction."""

    code = "operation_failed"
