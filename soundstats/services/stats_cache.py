"""
Stats Caching Service

Provides in-memory caching for expensive stats aggregation queries with TTL-based
expiration and selective cache invalidation.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Views that aggregate several users' listens
SHARED_PREFIXES = ("leaderboard:", "feed:")


@dataclass
class CacheEntry:
    """A single cache entry with TTL tracking."""

    value: Any
    expires_at: float
    created_at: float = field(default_factory=time.time)

    def is_expired(self) -> bool:
        """Check if this entry has expired."""
        return time.time() > self.expires_at


class StatsCache:
    """
    Thread-safe in-memory cache for stats data with TTL support.

    Features:
    - Configurable TTL per cache key pattern
    - Per-user and full invalidation
    - Automatic cleanup of expired entries
    - Hit/miss tracking for monitoring
    """

    # Default TTL values in seconds
    DEFAULT_TTL = 300  # 5 minutes
    TTL_SHORT = 60  # 1 minute for frequently changing data
    TTL_MEDIUM = 300  # 5 minutes for moderate change rate
    TTL_LONG = 3600  # 1 hour for stable data

    # TTL configuration by key pattern
    TTL_CONFIG: dict[str, int] = {
        # Frequently changing (1 minute)
        "feed:": TTL_SHORT,
        "leaderboard:": TTL_SHORT,
        # Moderate change rate (5 minutes)
        "top_artists:": TTL_MEDIUM,
        "top_tracks:": TTL_MEDIUM,
        "top_albums:": TTL_MEDIUM,
        "totals:": TTL_MEDIUM,
        "daily_playtime:": TTL_MEDIUM,
        # Slower changing (1 hour)
        "first_play:": TTL_LONG,
    }

    def __init__(self, max_size: int = 1000) -> None:
        """
        Initialize the stats cache.

        Args:
            max_size: Maximum number of entries to keep in cache
        """
        self._cache: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._max_size = max_size
        self._hits = 0
        self._misses = 0
        self._last_cleanup = time.time()
        self._cleanup_interval = 60  # Cleanup every 60 seconds

    def _get_ttl(self, key: str) -> int:
        """Get TTL for a given key based on pattern matching."""
        for pattern, ttl in self.TTL_CONFIG.items():
            if key.startswith(pattern):
                return ttl
        return self.DEFAULT_TTL

    def _maybe_cleanup(self) -> None:
        """Perform periodic cleanup of expired entries."""
        now = time.time()
        if now - self._last_cleanup < self._cleanup_interval:
            return

        self._last_cleanup = now
        expired_keys = [k for k, v in self._cache.items() if v.is_expired()]
        for key in expired_keys:
            del self._cache[key]

        if expired_keys:
            logger.debug(f"Cleaned up {len(expired_keys)} expired cache entries")

    def _evict_if_needed(self) -> None:
        """Evict oldest entries if cache is too large."""
        if len(self._cache) < self._max_size:
            return

        # Remove oldest 10% of entries
        entries_to_remove = max(1, self._max_size // 10)
        sorted_entries = sorted(
            self._cache.items(), key=lambda x: x[1].created_at
        )
        for key, _ in sorted_entries[:entries_to_remove]:
            del self._cache[key]

        logger.debug(f"Evicted {entries_to_remove} cache entries due to size limit")

    def get(self, key: str) -> tuple[bool, Any]:
        """
        Get a value from cache.

        Returns:
            Tuple of (hit: bool, value: Any)
        """
        with self._lock:
            self._maybe_cleanup()

            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return False, None

            if entry.is_expired():
                del self._cache[key]
                self._misses += 1
                return False, None

            self._hits += 1
            return True, entry.value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """
        Set a value in cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Optional TTL override in seconds
        """
        with self._lock:
            self._evict_if_needed()

            actual_ttl = ttl if ttl is not None else self._get_ttl(key)
            self._cache[key] = CacheEntry(
                value=value,
                expires_at=time.time() + actual_ttl,
            )

    def invalidate_all(self) -> int:
        """
        Clear the entire cache.

        Returns:
            Number of entries cleared
        """
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
            logger.info(f"Cleared entire stats cache ({count} entries)")
            return count

    def invalidate_user(self, user_id: str) -> int:
        """
        Invalidate everything that may include a user's listens.

        Per-user entries are keyed ``prefix:user_id:hash``; shared views
        (leaderboard, feed) mix many users and are always dropped.
        """
        with self._lock:
            marker = f":{user_id}:"
            keys_to_delete = [
                k for k in self._cache
                if marker in k or k.startswith(SHARED_PREFIXES)
            ]
            for key in keys_to_delete:
                del self._cache[key]
            if keys_to_delete:
                logger.debug(f"Invalidated {len(keys_to_delete)} cache entries for user {user_id}")
            return len(keys_to_delete)

    def get_stats(self) -> dict[str, Any]:
        """Get hit/miss counts and ratios."""
        with self._lock:
            total = self._hits + self._misses
            hit_ratio = self._hits / total if total > 0 else 0
            return {
                "size": len(self._cache),
                "max_size": self._max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_ratio": round(hit_ratio, 4),
                "total_requests": total,
            }


def make_cache_key(*args: Any, **kwargs: Any) -> str:
    """Generate a cache key from function arguments."""
    key_data = json.dumps({"args": args, "kwargs": kwargs}, sort_keys=True, default=str)
    return hashlib.md5(key_data.encode()).hexdigest()[:16]


def cached(prefix: str, ttl: int | None = None, per_user: bool = True):
    """
    Decorator to cache method results.

    Args:
        prefix: Cache key prefix (e.g., "top_artists")
        ttl: Optional TTL override in seconds
        per_user: Scope the key by the first positional argument (the user id)
            so ``StatsCache.invalidate_user`` can find it

    Example:
        @cached("top_artists")
        def get_top_artists(self, user_id: str, window: DateWindow, limit: int):
            ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(self, *args: Any, **kwargs: Any) -> T:
            cache = get_stats_cache()
            digest = make_cache_key(*args, **kwargs)
            if per_user and args:
                key = f"{prefix}:{args[0]}:{digest}"
            else:
                key = f"{prefix}:{digest}"

            hit, value = cache.get(key)
            if hit:
                logger.debug(f"Cache hit for {prefix}")
                return value

            logger.debug(f"Cache miss for {prefix}, computing...")
            result = func(self, *args, **kwargs)
            cache.set(key, result, ttl)
            return result

        return wrapper

    return decorator


# Singleton instance
_stats_cache: StatsCache | None = None


def get_stats_cache() -> StatsCache:
    """Get the singleton StatsCache instance."""
    global _stats_cache
    if _stats_cache is None:
        _stats_cache = StatsCache()
    return _stats_cache
