"""
In-process session management.

This module provides the session registry: a concurrency-safe table of
session identifier -> Session, the policy for reading identifiers from
cookies and headers, and a background cleaner that evicts idle sessions.
"""

from session.session import Session
from session.registry import (
    RegistryConfig,
    SessionRegistry,
    DEFAULT_COOKIE_NAME,
    DEFAULT_SESSION_HEADER,
)
from session.cleaner import SessionCleaner
from session.cookies import set_session_cookie, delete_session_cookie

__all__ = [
    "Session",
    "RegistryConfig",
    "SessionRegistry",
    "SessionCleaner",
    "DEFAULT_COOKIE_NAME",
    "DEFAULT_SESSION_HEADER",
    "set_session_cookie",
    "delete_session_cookie",
]
