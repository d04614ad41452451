"""Cache adapter registry — pluggable acceleration layer."""

import os

_cache_instance = None


def get_cache():
    """Return the configured cache adapter (singleton).

    Uses the in-process MemoryCache by default; select another adapter with
    the DELIVERY_CACHE environment variable.
    """
    global _cache_instance
    if _cache_instance is None:
        adapter = os.environ.get("DELIVERY_CACHE", "memory")
        if adapter == "memory":
            from delivery.cache.memory_cache import MemoryCache

            _cache_instance = MemoryCache()
        else:
            raise ValueError(f"Unknown cache adapter: {adapter}")
    return _cache_instance


def cache_ttl() -> float:
    return float(os.environ.get("DELIVERY_CACHE_TTL", 300))


def reset_cache():
    """Reset the cache singleton (useful for testing)."""
    global _cache_instance
    _cache_instance = None
