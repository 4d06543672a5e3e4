"""
A single session: a key/value bag plus last-access metadata.

Sessions are created and evicted only by the SessionRegistry. Callers get
a reference from a registry read and mutate the bag in place; a caller may
keep using a Session after the registry has evicted it, but those writes
are no longer visible through the registry.
"""

from datetime import datetime, timedelta
from typing import Any, Hashable, Optional

from session.locks import ReadWriteLock


class Session:
    """
    Key/value store for one session identifier.

    Every operation is safe to call from several threads at once. Reads
    (get, exists) proceed concurrently; writes (set, delete) exclude all
    other access to this session only, so sessions never contend with
    each other.

    Attributes:
        id: The identifier the session is registered under. Changes only
            when the registry renames it through refresh().
        last_accessed: UTC time of the last create/update/refresh.
    """

    def __init__(self, session_id: str, last_accessed: datetime):
        self._id = session_id
        self._last_accessed = last_accessed
        self._data: dict[Hashable, Any] = {}
        self._lock = ReadWriteLock()

    @property
    def id(self) -> str:
        with self._lock.read():
            return self._id

    @property
    def last_accessed(self) -> datetime:
        with self._lock.read():
            return self._last_accessed

    def get(self, key: Hashable, default: Optional[Any] = None) -> Any:
        """
        Return the value stored under key.

        Args:
            key: Any hashable key.
            default: Returned when key was never set or has been deleted.

        Returns:
            The stored value, or default when the key is absent. A key set
            to None returns None; use exists() to tell the two apart.
        """
        with self._lock.read():
            return self._data.get(key, default)

    def exists(self, key: Hashable) -> bool:
        """Return True if key is present, whatever its value."""
        with self._lock.read():
            return key in self._data

    def set(self, key: Hashable, value: Any) -> None:
        """Insert or overwrite the value stored under key."""
        with self._lock.write():
            self._data[key] = value

    def delete(self, key: Hashable) -> None:
        """Remove key if present. Deleting an absent key is a no-op."""
        with self._lock.write():
            self._data.pop(key, None)

    def keys(self) -> list[Hashable]:
        """Snapshot of the keys currently set."""
        with self._lock.read():
            return list(self._data)

    def to_dict(self) -> dict[Hashable, Any]:
        """Shallow snapshot of the whole bag."""
        with self._lock.read():
            return dict(self._data)

    def idle_for(self, now: datetime) -> timedelta:
        """Time elapsed between the last access and now."""
        with self._lock.read():
            return now - self._last_accessed

    # The helpers below are called by the registry, which already holds
    # this session's write lock.

    def _touch(self, now: datetime) -> None:
        self._last_accessed = now

    def _rename(self, session_id: str, now: datetime) -> None:
        self._id = session_id
        self._last_accessed = now

    def __contains__(self, key: Hashable) -> bool:
        return self.exists(key)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._data)

    def __repr__(self) -> str:
        with self._lock.read():
            return (
                f"Session(id={self._id!r}, "
                f"last_accessed={self._last_accessed.isoformat()}, "
                f"keys={len(self._data)})"
            )
