"""
Domain exceptions raised by the trust engine services.

Policy denials are not exceptions: they are returned as structured results.
"""


class TrustEngineError(Exception):
    """Base class for trust engine errors."""


class InputValidationError(TrustEngineError):
    """Raised for malformed input before any side effect happens."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field


class StoreUnavailableError(TrustEngineError):
    """Raised when the persistence layer cannot be reached or fails mid-transaction."""
