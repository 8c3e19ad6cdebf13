"""Bounded in-memory TTL cache owned by the service context."""

from __future__ import annotations

import time
from collections import OrderedDict
from threading import Lock


class TTLCache:
    """Thread-safe string-keyed cache; entries expire after their TTL and the oldest go first when full."""

    def __init__(self, default_ttl_seconds: int = 60, max_entries: int = 1024) -> None:
        self.default_ttl_seconds = max(1, default_ttl_seconds)
        self.max_entries = max(1, max_entries)
        self._entries: OrderedDict[str, tuple[float, object]] = OrderedDict()
        self._lock = Lock()

    def get(self, key: str) -> object | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= time.monotonic():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: object, ttl_seconds: int | None = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else max(1, ttl_seconds)
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (time.monotonic() + ttl, value)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
