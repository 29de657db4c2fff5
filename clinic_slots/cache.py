"""TTL cache for doctor and schedule documents.

Doctor profiles and specialist schedules change rarely, so a booking
session can reuse them across date changes. Bookings are never cached:
they are re-read on every availability query and on every refresh.
"""
import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


class DocumentCache:
    """
    In-memory cache with TTL and a size cap.

    Pattern: key -> (value, timestamp); expired entries are dropped on read
    and swept when the cache grows past ``max_size``. Safe to share between
    the worker threads the engine reads from.
    """

    def __init__(
        self,
        ttl: float = 300,
        max_size: int = 500,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            ttl: Time-to-live in seconds
            max_size: Entries kept before the oldest are evicted
            clock: Time source (injectable for tests)
        """
        self.entries: Dict[Hashable, Tuple[Any, float]] = {}
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._lock = threading.Lock()

    def _is_expired(self, timestamp: float) -> bool:
        return self._clock() - timestamp > self.ttl

    def get(self, key: Hashable) -> Optional[Any]:
        """Cached value, or None if missing or expired."""
        with self._lock:
            entry = self.entries.get(key)
            if entry is None:
                return None

            value, timestamp = entry
            if self._is_expired(timestamp):
                del self.entries[key]
                return None

            return value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self.entries[key] = (value, self._clock())
            self._cleanup_if_needed()

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        """Return the cached value or call ``loader`` and cache a non-None result."""
        value = self.get(key)
        if value is None:
            value = loader()
            if value is not None:
                self.set(key, value)
        return value

    def clear(self, key: Optional[Hashable] = None) -> None:
        """Drop one key, or everything when ``key`` is None."""
        with self._lock:
            if key is None:
                self.entries.clear()
            else:
                self.entries.pop(key, None)

    def _cleanup_if_needed(self):
        # Caller holds _lock
        if len(self.entries) <= self.max_size:
            return

        expired = [k for k, (_, ts) in self.entries.items() if self._is_expired(ts)]
        for key in expired:
            del self.entries[key]

        # Still too large: evict oldest first
        if len(self.entries) > self.max_size:
            oldest = sorted(self.entries.items(), key=lambda item: item[1][1])
            for key, _ in oldest[:len(self.entries) - self.max_size]:
                del self.entries[key]
