import time
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional, Tuple


class TTLCache:
    """In-memory cache with a fixed time-to-live per entry.

    Entries expire ``ttl_seconds`` after they were stored. When ``max_entries``
    is reached the oldest entry is evicted first. Not shared between
    processes; two concurrent misses on the same key may both fetch.
    """

    def __init__(self, ttl_seconds: float = 300.0, max_entries: int = 512, clock: Callable[[], float] = time.monotonic):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[Hashable, Tuple[float, Any]]" = OrderedDict()

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: Hashable, value: Any) -> None:
        if key in self._entries:
            del self._entries[key]
        self._purge_expired()
        while len(self._entries) >= self.max_entries:
            self._entries.popitem(last=False)
        self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def _purge_expired(self) -> None:
        now = self._clock()
        # Insertion order == expiry order because the TTL is fixed
        while self._entries:
            oldest_key = next(iter(self._entries))
            if self._entries[oldest_key][0] > now:
                break
            del self._entries[oldest_key]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
