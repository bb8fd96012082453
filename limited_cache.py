"""
Limited Cache
Response cache with LRU eviction and TTL for the API server.
"""

import hashlib
import json
import time
import threading
import logging
from collections import OrderedDict
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def make_cache_key(*parts: Any) -> str:
    """Build a stable SHA-256 key from JSON-serialisable parts."""
    payload = json.dumps(parts, sort_keys=True, default=str, ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class LimitedCache:
    """Thread-safe cache with LRU eviction and per-entry TTL"""

    def __init__(self, max_size: int = 500, ttl_seconds: float = 300):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._entries: "OrderedDict[str, Any]" = OrderedDict()
        self._stored_at: Dict[str, float] = {}
        self._hits = 0
        self._misses = 0
        self._lock = threading.RLock()

    def _is_expired(self, key: str, now: float) -> bool:
        return now - self._stored_at[key] > self.ttl_seconds

    def _drop(self, key: str) -> None:
        self._entries.pop(key, None)
        self._stored_at.pop(key, None)

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when absent or expired."""
        with self._lock:
            if key not in self._entries:
                self._misses += 1
                return None

            if self._is_expired(key, time.time()):
                self._drop(key)
                self._misses += 1
                logger.debug(f"🔄 Cache expired: {key[:12]}")
                return None

            self._entries.move_to_end(key)
            self._hits += 1
            return self._entries[key]

    def set(self, key: str, value: Any) -> None:
        """Store a value. When full, expired entries go first, then the least recently used."""
        with self._lock:
            self._drop(key)
            if len(self._entries) >= self.max_size:
                self.purge_expired()

            while len(self._entries) >= self.max_size:
                oldest_key, _ = self._entries.popitem(last=False)
                self._stored_at.pop(oldest_key, None)
                logger.debug(f"🔄 Cache evicted (LRU): {oldest_key[:12]}")

            self._entries[key] = value
            self._stored_at[key] = time.time()

    def purge_expired(self) -> int:
        """Remove every expired entry and return how many were dropped."""
        with self._lock:
            now = time.time()
            expired = [key for key in self._entries if self._is_expired(key, now)]
            for key in expired:
                self._drop(key)
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._stored_at.clear()
            logger.info("✅ Response cache cleared")

    def get_stats(self) -> Dict[str, Any]:
        """Size, hit/miss counters and configuration."""
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / lookups, 3) if lookups else 0.0,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries and not self._is_expired(key, time.time())
