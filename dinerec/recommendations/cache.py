from __future__ import annotations

import threading
import time
from typing import Any

_DEFAULT_TTL = 300  # 5 minutes


class ExpansionCache:
    """
    TTL cache of hybrid neighbour lists keyed by seed venue id.

    Many users share seed venues, so the neighbour expansion is reused
    across requests. The owner clears it whenever the similarity table is
    rebuilt.
    """

    def __init__(self, ttl: int = _DEFAULT_TTL) -> None:
        self._ttl = ttl
        self._lock = threading.Lock()
        self._cache: dict[str, dict[str, Any]] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._cache.get(key)
            if entry and time.time() - entry["created_at"] < self._ttl:
                self._hits += 1
                return entry["value"]
            if entry:
                del self._cache[key]
            self._misses += 1
            return None

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._cache[key] = {"value": value, "created_at": time.time()}

    def stats(self) -> dict:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._cache),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
            }

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0
