"""
Verdict Cache (Thread-Safe TTL Cache)
=====================================

Memoizes validation verdicts in the caller layer so a client does not
re-validate the same base URL on every outbound request.

- Keyed on the exact (url, mode) pair
- Entries expire after a bounded TTL so a change in DNS resolution is
  picked up again; the cache can never mask it indefinitely
- Size-bounded with expiry-ordered eviction
- invalidate() / clear() for explicit invalidation

The guard itself is stateless; this cache is an optional collaborator used
by GuardedHTTPClient.
"""

import threading
import time
from typing import Any

from .config import DEFAULT_VERDICT_CACHE_SIZE, DEFAULT_VERDICT_CACHE_TTL
from .models import SecurityMode, ValidationResult


class VerdictCacheEntry:
    """A cached verdict with TTL."""

    __slots__ = ("result", "expires_at")

    def __init__(self, result: ValidationResult, ttl: float):
        self.result = result
        self.expires_at = time.monotonic() + ttl

    def is_expired(self) -> bool:
        return time.monotonic() > self.expires_at


class VerdictCache:
    """
    Thread-safe TTL cache for validation verdicts.

    Uses a plain dict with cleanup when the cache grows past capacity.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_VERDICT_CACHE_SIZE,
        ttl: float = DEFAULT_VERDICT_CACHE_TTL,
    ):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self._cache: dict[tuple[str, str], VerdictCacheEntry] = {}
        self._lock = threading.Lock()
        self._max_size = max_size
        self._ttl = ttl
        self._cleanup_threshold = max(1, max_size // 10)

    @staticmethod
    def _key(url: str, mode: SecurityMode | str) -> tuple[str, str]:
        return (url, SecurityMode.parse(mode).value)

    def get(self, url: str, mode: SecurityMode | str) -> ValidationResult | None:
        """Get a cached verdict if present and not expired."""
        key = self._key(url, mode)
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            if entry.is_expired():
                del self._cache[key]
                return None
            return entry.result

    def set(self, url: str, mode: SecurityMode | str, result: ValidationResult) -> None:
        """Cache a verdict with TTL."""
        key = self._key(url, mode)
        with self._lock:
            if len(self._cache) >= self._max_size:
                self._cleanup_locked()
            self._cache[key] = VerdictCacheEntry(result, self._ttl)

    def invalidate(self, url: str, mode: SecurityMode | str | None = None) -> int:
        """
        Drop cached verdicts for a URL.

        With mode=None every mode's verdict for the URL is dropped.

        Returns:
            Number of entries removed
        """
        with self._lock:
            if mode is not None:
                return 1 if self._cache.pop(self._key(url, mode), None) else 0
            keys = [k for k in self._cache if k[0] == url]
            for k in keys:
                del self._cache[k]
            return len(keys)

    def _cleanup_locked(self) -> None:
        """Remove expired entries, then the soonest-expiring ones. Lock must be held."""
        expired_keys = [k for k, v in self._cache.items() if v.is_expired()]
        for k in expired_keys:
            del self._cache[k]

        if len(self._cache) >= self._max_size:
            sorted_keys = sorted(
                self._cache.keys(), key=lambda k: self._cache[k].expires_at
            )
            excess = len(self._cache) - self._max_size + self._cleanup_threshold
            for k in sorted_keys[:excess]:
                del self._cache[k]

    def clear(self) -> None:
        """Clear all cached verdicts."""
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def stats(self) -> dict[str, Any]:
        """Return cache statistics."""
        with self._lock:
            expired_count = sum(1 for v in self._cache.values() if v.is_expired())
            return {
                "size": len(self._cache),
                "max_size": self._max_size,
                "ttl": self._ttl,
                "expired_pending_cleanup": expired_count,
            }


__all__ = ["VerdictCache", "VerdictCacheEntry"]
