"""
Custom Exceptions for Fashion Studio

Hierarchical exception classes for proper error handling across layers.
Expected business outcomes (insufficient tokens, failed debit) are result
objects, not exceptions; these classes cover infrastructure and
configuration failures.
"""

from typing import Optional, Dict, Any


class FashionStudioError(Exception):
    """Base exception for all Fashion Studio errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class ValidationError(FashionStudioError):
    """Raised when input validation fails."""
    pass


class DatabaseError(FashionStudioError):
    """Raised when database operations fail."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table
        super().__init__(message, details, original_error)


class NotFoundError(DatabaseError):
    """Raised when a requested resource is not found."""
    pass


class AIServiceError(FashionStudioError):
    """Raised when AI generation calls fail."""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if model:
            details["model"] = model
        if operation:
            details["operation"] = operation
        super().__init__(message, details, original_error)


class RateLimitError(AIServiceError):
    """Raised when API rate limits are exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[int] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message, original_error=original_error)
        if retry_after:
            self.details["retry_after_seconds"] = retry_after


class GenerationTimeoutError(AIServiceError):
    """Raised when a long-running generation does not finish in time."""

    def __init__(
        self,
        message: str = "Generation timed out",
        attempts: int = 0,
        operation: Optional[str] = None,
    ):
        super().__init__(message, operation=operation)
        self.details["attempts"] = attempts


class ConfigurationError(FashionStudioError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(message, details, original_error)


class ReconciliationConfigError(ConfigurationError):
    """
    Raised when a billing event cannot be applied because of bad setup.

    Missing checkout metadata or an unknown plan is not transient; it
    must alert instead of being retried silently.
    """
    pass
