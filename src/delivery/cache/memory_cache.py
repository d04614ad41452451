"""In-process cache adapter with per-key expiry.

Can be switched into a failing mode to exercise the "cache failure is a
miss" path in tests.
"""

import threading
import time
from typing import Any

from delivery.cache.port import CachePort
from delivery.errors import ExternalServiceError


class MemoryCache(CachePort):
    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[Any, float | None]] = {}
        self._lock = threading.Lock()
        self.should_succeed = True
        self.failure_reason = "Cache unavailable"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Cache unavailable"):
        """Configure the adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def _check_available(self) -> None:
        if not self.should_succeed:
            raise ExternalServiceError({"cache": [self.failure_reason]})

    def get(self, key: str) -> Any | None:
        self._check_available()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        self._check_available()
        expires_at = self._clock() + ttl if ttl is not None else None
        with self._lock:
            self._entries[key] = (value, expires_at)

    def invalidate(self, key: str) -> None:
        self._check_available()
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
