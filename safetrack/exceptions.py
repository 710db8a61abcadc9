"""Custom exceptions for the safetrack controller."""

from typing import Any, Dict, Optional


class SafeTrackError(Exception):
    """Base exception for all safetrack errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause


class InvalidInputError(SafeTrackError, ValueError):
    """Raised when an observation or identifier is rejected at the boundary."""
    pass


class PersistenceError(SafeTrackError):
    """Raised when the fingerprint store cannot read or write a record."""
    pass


class ConfigurationError(SafeTrackError):
    """Raised when configuration is invalid or missing."""
    pass
