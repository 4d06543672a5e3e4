"""
Error code catalog for the session registry.

This module defines all error codes raised by the registry and the HTTP
layer that sits in front of it, each mapped to a default HTTP status code.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used in the application.
    
    Each error code maps to a specific HTTP status code and error category:
    - Identifier errors (4xx): no usable or a malformed session identifier
    - Lookup errors (4xx): identifier valid but not registered
    - Argument errors (4xx): invalid input to a registry operation
    - Internal errors (5xx): Server-side issues
    """
    
    # Identifier resolution errors (4xx)
    SESSION_ID_NOT_FOUND = "SESSION_ID_NOT_FOUND"
    """No usable cookie or header value carries an identifier (HTTP 401)"""
    
    SESSION_ID_MALFORMED = "SESSION_ID_MALFORMED"
    """Identifier cookie is present but cannot be URL-unescaped (HTTP 400)"""
    
    # Lookup errors (4xx)
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    """Identifier has no matching registry entry (HTTP 404)"""
    
    # Argument errors (4xx)
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    """Invalid argument passed to a registry operation (HTTP 400)"""
    
    # Internal errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """Unexpected server error (HTTP 500)"""


# Mapping of error codes to their default HTTP status codes
ERROR_CODE_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.SESSION_ID_NOT_FOUND: 401,
    ErrorCode.SESSION_ID_MALFORMED: 400,
    ErrorCode.SESSION_NOT_FOUND: 404,
    ErrorCode.INVALID_ARGUMENT: 400,
    ErrorCode.INTERNAL_ERROR: 500,
}


def get_default_status_code(error_code: ErrorCode) -> int:
    """
    Get the default HTTP status code for an error code.
    
    Args:
        error_code: The error code to look up
        
    Returns:
        The default HTTP status code for the error code
    """
    return ERROR_CODE_STATUS_MAP.get(error_code, 500)
