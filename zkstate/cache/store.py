"""
External cache store contract.

The reader only needs get and set-with-expiry on string keys. Any
backend failure must surface as :class:`CacheBackendError`.
"""

import threading
import time
from typing import Dict, Optional, Protocol, Tuple

from zkstate.exceptions import CacheBackendError


class CacheStore(Protocol):
    """Key/value cache with per-key expiry."""

    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None on a miss."""

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Store a value, expiring after ttl seconds when given."""


def validate_key(key: str) -> None:
    """
    Reject keys most backends cannot store.

    Raises:
        CacheBackendError: If the key is empty or contains whitespace
    """
    if not isinstance(key, str) or not key or any(c.isspace() for c in key):
        raise CacheBackendError(f"Invalid cache key: {key!r}")


class InMemoryCacheStore:
    """
    Process-local cache store.

    Useful when several readers live in one process, or as a stand-in
    for an external cache in development.
    """

    def __init__(self, default_ttl: Optional[int] = None):
        """
        Initialize store.

        Args:
            default_ttl: Expiry in seconds used when set() gets none
        """
        self.default_ttl = default_ttl
        self._items: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        validate_key(key)
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None

            value, expires_at = item
            if expires_at is not None and time.monotonic() >= expires_at:
                del self._items[key]
                return None

            return value

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        validate_key(key)
        ttl = ttl if ttl is not None else self.default_ttl
        expires_at = time.monotonic() + ttl if ttl is not None else None
        with self._lock:
            self._items[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
