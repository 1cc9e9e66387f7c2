"""
In-memory TTL cache for OAuth2 client lookups.

Entries are (value, insertion time) pairs. Expired entries are evicted
lazily on read and wholesale by cleanup(). Single-instance only; the
database stays the source of truth.
"""

import threading
import time
from typing import Callable, Dict, Generic, Optional, Tuple, TypeVar

from loguru import logger

V = TypeVar("V")


class ClientCache(Generic[V]):
    """TTL cache keyed by client id, owned by an AuthorizationService instance"""

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[V, float]] = {}
        self.lock = threading.Lock()

    def _is_expired(self, inserted_at: float) -> bool:
        return self._clock() - inserted_at >= self.ttl_seconds

    def get(self, client_id: str) -> Optional[V]:
        """Return the cached value, or None when missing or expired"""
        with self.lock:
            entry = self._entries.get(client_id)
            if entry is None:
                return None
            value, inserted_at = entry
            if self._is_expired(inserted_at):
                del self._entries[client_id]
                return None
            return value

    def set(self, client_id: str, value: V):
        with self.lock:
            self._entries[client_id] = (value, self._clock())

    def invalidate(self, client_id: str):
        with self.lock:
            self._entries.pop(client_id, None)

    def clear(self):
        with self.lock:
            self._entries.clear()

    def cleanup(self) -> int:
        """Drop every expired entry; returns how many were removed"""
        with self.lock:
            expired = [key for key, (_, inserted_at) in self._entries.items() if self._is_expired(inserted_at)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug(f"[CACHE] Evicted {len(expired)} expired client entries")
        return len(expired)

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)

    def __contains__(self, client_id: str) -> bool:
        return self.get(client_id) is not None
