"""Per-provider minimum-interval limiter."""

from __future__ import annotations

import logging
import time
from threading import Lock

LOGGER = logging.getLogger(__name__)


class RateLimiterRegistry:
    """Spaces out calls to each provider by at least its minimum interval.

    Callers reserve the next free slot under the lock and sleep outside it.
    """

    def __init__(self, min_interval_seconds: float = 0.2, overrides: dict[str, float] | None = None) -> None:
        self.min_interval_seconds = max(0.0, min_interval_seconds)
        self.overrides = {name: max(0.0, value) for name, value in (overrides or {}).items()}
        self._next_slot: dict[str, float] = {}
        self._lock = Lock()

    def interval_for(self, provider: str) -> float:
        return self.overrides.get(provider, self.min_interval_seconds)

    def wait(self, provider: str) -> None:
        interval = self.interval_for(provider)
        if interval <= 0:
            return
        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot.get(provider, now))
            self._next_slot[provider] = slot + interval
        delay = slot - now
        if delay > 0:
            LOGGER.debug("throttling provider=%s sleep=%.3f", provider, delay)
            time.sleep(delay)
