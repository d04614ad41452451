"""Cache port — optional acceleration layer in front of the directory.

The cache is advisory: a miss, an expired entry or an adapter failure only
costs a repository read, never correctness.
"""

from abc import ABC, abstractmethod
from typing import Any


class CachePort(ABC):
    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the cached value or ``None`` on a miss.

        Raises:
            ExternalServiceError: the backing store is unavailable.
        """
        ...

    @abstractmethod
    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store ``value`` for ``ttl`` seconds (forever when ``None``)."""
        ...

    @abstractmethod
    def invalidate(self, key: str) -> None: ...
