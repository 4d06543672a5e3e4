"""
Exception classes for the session registry.

This module provides the AppException base class and one subclass per
failure kind of the registry. All of them are recoverable: the HTTP layer
decides whether a failed lookup means "issue a new session" or "reject
the request".
"""

from typing import Any, Optional

from errors.codes import ErrorCode, get_default_status_code


class AppException(Exception):
    """
    Base exception class for all application-specific errors.
    
    This exception provides structured error information including:
    - error_code: A standardized error code from the ErrorCode enum
    - message: A human-readable error message
    - status_code: The HTTP status code to return
    - details: Optional additional context (e.g., the offending identifier)
    
    Example:
        raise AppException(
            error_code=ErrorCode.SESSION_NOT_FOUND,
            message="Session not found",
            details={"session_id": "abc123"}
        )
    """
    
    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None
    ):
        """
        Initialize an AppException.
        
        Args:
            error_code: The error code from the ErrorCode enum
            message: A human-readable error message
            status_code: The HTTP status code (defaults to the error code's default)
            details: Optional dictionary with additional error context
        """
        self.error_code = error_code
        self.message = message
        self.status_code = status_code or get_default_status_code(error_code)
        self.details = details
        super().__init__(message)
    
    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for JSON serialization.
        
        Returns:
            Dictionary containing error_code, message, and details
        """
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details is not None:
            result["details"] = self.details
        return result
    
    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(error_code={self.error_code.value!r}, "
            f"message={self.message!r}, status_code={self.status_code}, "
            f"details={self.details!r})"
        )


class IdentifierNotFoundError(AppException):
    """Raised when neither the cookie nor the header yields an identifier."""
    
    def __init__(
        self,
        message: str = "Session identifier not found",
        details: Optional[dict[str, Any]] = None
    ):
        super().__init__(ErrorCode.SESSION_ID_NOT_FOUND, message, details=details)


class IdentifierMalformedError(AppException):
    """Raised when the identifier cookie fails to URL-unescape."""
    
    def __init__(
        self,
        message: str = "Session identifier is malformed",
        details: Optional[dict[str, Any]] = None
    ):
        super().__init__(ErrorCode.SESSION_ID_MALFORMED, message, details=details)


class SessionNotFoundError(AppException):
    """Raised when a valid identifier has no registry entry."""
    
    def __init__(self, session_id: str, message: str = "Session not found"):
        self.session_id = session_id
        super().__init__(
            ErrorCode.SESSION_NOT_FOUND,
            message,
            details={"session_id": session_id}
        )


class InvalidArgumentError(AppException):
    """Raised when a registry operation receives an unusable argument."""
    
    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None
    ):
        super().__init__(ErrorCode.INVALID_ARGUMENT, message, details=details)
