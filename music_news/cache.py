"""In-process TTL cache shared across requests."""

from datetime import datetime, timedelta
from typing import Any


class TTLCache:
    """Key/value store whose entries expire a fixed time after being written.

    Expiry is checked lazily on read. Expired entries are never deleted;
    they are treated as absent and overwritten by the next ``put``.
    """

    def __init__(self, ttl: timedelta):
        self.ttl = ttl
        self._entries: dict[str, tuple[datetime, Any]] = {}

    def get(self, key: str, now: datetime) -> Any | None:
        """Return the live value for ``key`` or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if now - stored_at >= self.ttl:
            return None
        return value

    def put(self, key: str, value: Any, now: datetime) -> None:
        self._entries[key] = (now, value)
