import threading
import time
from collections import OrderedDict


class TTLCache:
    """Bounded key → (value, expiry) map.

    Entries expire ``ttl`` seconds after they are set and are dropped lazily on
    read or eagerly by :meth:`purge`. When full, the oldest entry is evicted.
    """

    def __init__(self, ttl=300, maxsize=256, clock=time.monotonic):
        self.ttl = ttl
        self.maxsize = maxsize
        self._clock = clock
        self._data = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key, default=None):
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return default
            value, expires_at = item
            if self._clock() >= expires_at:
                del self._data[key]
                return default
            return value

    def set(self, key, value):
        with self._lock:
            self._data.pop(key, None)
            self._data[key] = (value, self._clock() + self.ttl)
            while len(self._data) > self.maxsize:
                self._data.popitem(last=False)

    def purge(self):
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        with self._lock:
            stale = [k for k, (_, expires_at) in self._data.items() if now >= expires_at]
            for key in stale:
                del self._data[key]
        return len(stale)

    def clear(self):
        with self._lock:
            self._data.clear()

    def __len__(self):
        return len(self._data)

    def __contains__(self, key):
        return self.get(key) is not None
