"""Application exceptions."""
from typing import Optional


class InvalidArgument(ValueError):
    """Raised when an aggregation is called with an argument outside its domain,
    e.g. a negative trend window.
    """


class NotFound(LookupError):
    """Raised when a write targets a row that does not exist for the caller."""


class BackendError(Exception):
    """Raised when the hosted backend cannot be reached or answers with an error.

    Services propagate it unchanged; the API layer maps it to HTTP 502.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, operation: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.operation = operation
