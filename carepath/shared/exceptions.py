"""
Base exception classes for CarePath.

Each module should define its own exceptions that inherit from these bases.
This enables consistent error handling and lets the auth boundary turn any
of them into a result pair for the UI.
"""

from typing import Optional, Any


class CarePathError(Exception):
    """
    Base exception for all CarePath errors.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for UI consumption."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(CarePathError):
    """Input validation failed."""

    pass


class AuthenticationError(CarePathError):
    """Authentication failed (invalid or missing credentials)."""

    pass


class ExternalServiceError(CarePathError):
    """Error communicating with an external service."""

    def __init__(
        self,
        message: str,
        service: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)
        self.service = service
        self.details["service"] = service


class StorageError(CarePathError):
    """Local key-value store read, write or delete failed."""

    def __init__(self, operation: str, key: Optional[str] = None, message: str = ""):
        details: dict[str, Any] = {"operation": operation}
        if key is not None:
            details["key"] = key
        super().__init__(
            message or f"Local storage {operation} failed",
            code="STORAGE_ERROR",
            details=details,
        )
        self.operation = operation
        self.key = key
