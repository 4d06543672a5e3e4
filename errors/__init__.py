"""
Error handling module for the session registry.

This module provides structured error handling with:
- ErrorCode enum for standardized error codes
- AppException and one subclass per registry failure kind
- Error response models and exception handlers for FastAPI integration
"""

from errors.codes import ErrorCode
from errors.exceptions import (
    AppException,
    IdentifierMalformedError,
    IdentifierNotFoundError,
    InvalidArgumentError,
    SessionNotFoundError,
)
from errors.handlers import (
    ErrorResponse,
    handle_app_exception,
    handle_unexpected_exception,
    register_exception_handlers,
)

__all__ = [
    "ErrorCode",
    "AppException",
    "IdentifierMalformedError",
    "IdentifierNotFoundError",
    "InvalidArgumentError",
    "SessionNotFoundError",
    "ErrorResponse",
    "handle_app_exception",
    "handle_unexpected_exception",
    "register_exception_handlers",
]
