"""
Session registry: the identifier -> Session table and the operations over it.

The registry owns every Session it hands out and is the only component that
removes one, either on an explicit destroy() or when sweep() finds it idle
for longer than the configured lifetime.

Locking:
- A single ReadWriteLock guards the table structure. Lookups take the
  shared side; create, destroy, refresh and sweep removals take the
  exclusive side.
- Each Session carries its own ReadWriteLock for its data and timestamp.
- Locks are always taken table first, then session.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from urllib.parse import unquote_plus

from starlette.requests import HTTPConnection

from errors.exceptions import (
    IdentifierMalformedError,
    IdentifierNotFoundError,
    InvalidArgumentError,
    SessionNotFoundError,
)
from session.locks import ReadWriteLock
from session.session import Session

logger = logging.getLogger(__name__)

DEFAULT_COOKIE_NAME = "sessionid"
DEFAULT_SESSION_HEADER = "X-Session-ID"
DEFAULT_CLEANER_INTERVAL = timedelta(seconds=60)

# A "%" not followed by two hex digits
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def query_unescape(value: str) -> str:
    """
    Decode a query-escaped string ("+" is a space, "%XX" a byte).

    Escaped bytes that are not valid UTF-8 are kept as lone surrogates, so
    "%ff" decodes to "\\udcff" and quote_plus(..., errors="surrogateescape")
    gives the original bytes back.

    Raises:
        ValueError: If value holds an incomplete escape.
    """
    if _BAD_ESCAPE.search(value):
        raise ValueError(f"invalid URL escape in {value!r}")
    return unquote_plus(value, errors="surrogateescape")


@dataclass
class RegistryConfig:
    """
    Configuration for a SessionRegistry.

    Attributes:
        cleaner_interval: Delay between two background sweeps.
        max_lifetime: Idle time after which a session is evicted. A zero
            value falls back to cleaner_interval.
        auto_refresh: Whether read() and read_or_create() bump the
            session's last-access time.
        enable_http_header: Whether identifiers may be taken from the
            session_header request header when no cookie is present.
        session_header: Name of the header carrying the identifier.
        cookie_name: Name of the cookie carrying the identifier.
        cookie_domain: Domain attribute for cookies the HTTP layer sets.
        cookie_secure: Secure attribute for cookies the HTTP layer sets.
        cookie_http_only: HttpOnly attribute for cookies the HTTP layer sets.
        cookie_lifetime: Max-Age in seconds for cookies the HTTP layer
            sets; 0 means a browser-session cookie.
    """
    cleaner_interval: timedelta = field(default_factory=lambda: DEFAULT_CLEANER_INTERVAL)
    max_lifetime: timedelta = field(default_factory=timedelta)
    auto_refresh: bool = True
    enable_http_header: bool = False
    session_header: str = DEFAULT_SESSION_HEADER
    cookie_name: str = DEFAULT_COOKIE_NAME
    cookie_domain: Optional[str] = None
    cookie_secure: bool = False
    cookie_http_only: bool = True
    cookie_lifetime: int = 0

    def __post_init__(self):
        if self.cleaner_interval <= timedelta(0):
            raise ValueError("cleaner_interval must be positive")
        if self.max_lifetime < timedelta(0):
            raise ValueError("max_lifetime must not be negative")
        if not self.max_lifetime:
            self.max_lifetime = self.cleaner_interval


class SessionRegistry:
    """
    Concurrency-safe table of session identifier -> Session.

    One registry is constructed at process start and passed to whatever
    needs it; there is no module-level default instance. Expiry is driven
    from outside by calling sweep(), normally through a SessionCleaner.

    Example:
        registry = SessionRegistry(RegistryConfig(max_lifetime=timedelta(minutes=30)))

        session = registry.read_or_create(request)
        session.set("user_id", 42)

        registry.refresh(session.id, new_id)
    """

    def __init__(
        self,
        config: Optional[RegistryConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize an empty registry.

        Args:
            config: Registry configuration. Uses defaults if not provided.
            clock: Returns the current time. Tests inject a fake clock to
                drive expiry without sleeping.
        """
        self.config = config or RegistryConfig()
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = ReadWriteLock()

    # Identifier extraction

    def extract_identifier(self, request: HTTPConnection) -> str:
        """
        Resolve the session identifier carried by a request.

        The cookie wins whenever it is present with a non-empty value; a
        cookie that fails to unescape is an error and does not fall back
        to the header. The header is consulted only when the cookie is
        absent or empty and header extraction is enabled.

        Args:
            request: The inbound request (or websocket) connection.

        Returns:
            The identifier.

        Raises:
            IdentifierMalformedError: The cookie value is not valid URL
                escaping.
            IdentifierNotFoundError: Neither source yields an identifier.
        """
        if request.cookies.get(self.config.cookie_name):
            return self.extract_identifier_from_cookie(request)

        if self.config.enable_http_header:
            return self.extract_identifier_from_header(request)

        raise IdentifierNotFoundError(
            details={"cookie": self.config.cookie_name}
        )

    def extract_identifier_from_cookie(self, request: HTTPConnection) -> str:
        """
        Read the identifier from the session cookie only.

        Raises:
            IdentifierNotFoundError: The cookie is absent or empty.
            IdentifierMalformedError: The cookie value fails to unescape.
        """
        cookie_name = self.config.cookie_name
        raw = request.cookies.get(cookie_name)
        if not raw:
            raise IdentifierNotFoundError(details={"cookie": cookie_name})

        try:
            return query_unescape(raw)
        except ValueError as e:
            raise IdentifierMalformedError(
                details={"cookie": cookie_name, "reason": str(e)}
            ) from e

    def extract_identifier_from_header(self, request: HTTPConnection) -> str:
        """
        Read the identifier from the session header only.

        Only the first occurrence of the header is considered.

        Raises:
            IdentifierNotFoundError: Header extraction is disabled, or the
                header is absent or empty.
        """
        header = self.config.session_header
        if not self.config.enable_http_header:
            raise IdentifierNotFoundError(
                "Header-based session identifiers are disabled",
                details={"header": header},
            )

        values = request.headers.getlist(header)
        if not values or not values[0]:
            raise IdentifierNotFoundError(details={"header": header})

        return values[0]

    # Table operations

    def create(self, session_id: str) -> Session:
        """
        Register a fresh, empty session under session_id.

        Any session already registered under the same identifier is
        replaced.

        Raises:
            InvalidArgumentError: session_id is empty.
        """
        if not session_id:
            raise InvalidArgumentError("Session identifier must not be empty")

        session = Session(session_id, self._clock())
        with self._lock.write():
            self._sessions[session_id] = session

        logger.debug("Session created", extra={"extra_data": {"session_id": session_id}})
        return session

    def exists(self, session_id: str) -> bool:
        """Return True if session_id is currently registered."""
        with self._lock.read():
            return session_id in self._sessions

    def get(self, session_id: str) -> Optional[Session]:
        """Return the session registered under session_id, without refreshing it."""
        with self._lock.read():
            return self._sessions.get(session_id)

    def read(self, request: HTTPConnection) -> Session:
        """
        Return the session identified by a request.

        When auto_refresh is enabled the session's last-access time is
        bumped before this method returns.

        Raises:
            IdentifierNotFoundError: No identifier in the request.
            IdentifierMalformedError: Identifier cookie is malformed.
            SessionNotFoundError: The identifier is not registered.
        """
        session_id = self.extract_identifier(request)

        with self._lock.read():
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            self._auto_refresh(session)

        return session

    def read_or_create(self, request: HTTPConnection) -> Session:
        """
        Return the session identified by a request, registering a fresh
        one if the identifier is unknown.

        Raises:
            IdentifierNotFoundError: No identifier in the request.
            IdentifierMalformedError: Identifier cookie is malformed.
        """
        session_id = self.extract_identifier(request)

        with self._lock.read():
            session = self._sessions.get(session_id)
            if session is not None:
                self._auto_refresh(session)
                return session

        with self._lock.write():
            # Another request may have registered it since the read above
            session = self._sessions.get(session_id)
            if session is not None:
                self._auto_refresh(session)
                return session

            session = Session(session_id, self._clock())
            self._sessions[session_id] = session

        logger.debug("Session created on read", extra={"extra_data": {"session_id": session_id}})
        return session

    def update(self, session_id: str) -> None:
        """
        Set the last-access time of session_id to now.

        Raises:
            SessionNotFoundError: session_id is not registered.
        """
        with self._lock.read():
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            with session._lock.write():
                session._touch(self._clock())

    def destroy(self, session_id: str) -> None:
        """
        Remove session_id from the registry.

        Raises:
            SessionNotFoundError: session_id is not registered.
        """
        with self._lock.write():
            if self._sessions.pop(session_id, None) is None:
                raise SessionNotFoundError(session_id)

        logger.debug("Session destroyed", extra={"extra_data": {"session_id": session_id}})

    def refresh(self, old_id: str, new_id: str) -> Session:
        """
        Move the session registered under old_id to new_id.

        The session keeps its data, takes new_id as its identifier and has
        its last-access time bumped; any session already at new_id is
        replaced. If old_id is not registered this behaves exactly like
        create(new_id), which lets callers both rotate an existing
        identifier and lazily establish a session with one call.

        Raises:
            InvalidArgumentError: new_id is empty.
        """
        if not new_id:
            raise InvalidArgumentError(
                "Session identifier must not be empty",
                details={"old_session_id": old_id},
            )

        now = self._clock()
        with self._lock.write():
            session = self._sessions.pop(old_id, None)
            renamed = session is not None
            if renamed:
                with session._lock.write():
                    session._rename(new_id, now)
            else:
                session = Session(new_id, now)
            self._sessions[new_id] = session

        logger.debug(
            "Session renamed" if renamed else "Session created on refresh",
            extra={"extra_data": {"old_session_id": old_id, "session_id": new_id}},
        )
        return session

    def count(self) -> int:
        """
        Number of registered sessions.

        Under concurrent create/destroy traffic the value is only a
        snapshot and may be stale by the time the caller uses it.
        """
        with self._lock.read():
            return len(self._sessions)

    def sweep(self) -> int:
        """
        Evict every session idle for longer than max_lifetime.

        Candidates are collected under the shared table lock. Each one is
        then re-checked and removed while holding both the exclusive table
        lock and the session's own write lock, so an update() that lands
        between collection and removal keeps the session alive.

        Returns:
            The number of sessions evicted.
        """
        now = self._clock()
        max_lifetime = self.config.max_lifetime

        with self._lock.read():
            candidates = [
                (session_id, session)
                for session_id, session in self._sessions.items()
                if session.idle_for(now) > max_lifetime
            ]

        evicted = 0
        for session_id, session in candidates:
            with self._lock.write():
                # Destroyed or renamed since collection
                if self._sessions.get(session_id) is not session:
                    continue
                with session._lock.write():
                    if now - session._last_accessed > max_lifetime:
                        del self._sessions[session_id]
                        evicted += 1

        if evicted:
            logger.info(
                f"Evicted {evicted} idle sessions",
                extra={"extra_data": {
                    "evicted": evicted,
                    "max_lifetime_seconds": max_lifetime.total_seconds(),
                }},
            )
        return evicted

    def _auto_refresh(self, session: Session) -> None:
        # Caller holds the table lock
        if self.config.auto_refresh:
            with session._lock.write():
                session._touch(self._clock())

    def __contains__(self, session_id: str) -> bool:
        return self.exists(session_id)

    def __len__(self) -> int:
        return self.count()

    def __repr__(self) -> str:
        return (
            f"SessionRegistry(sessions={self.count()}, "
            f"max_lifetime={self.config.max_lifetime.total_seconds()}s)"
        )
