"""Per-client request limiting and workload guards for the hosted server."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import Iterator

from rebalancer.lib.errors import InvalidConfigurationError

LOGGER = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


class RateLimitExceeded(Exception):
    def __init__(self, retry_after_seconds: float) -> None:
        self.retry_after_seconds = max(0.0, retry_after_seconds)
        super().__init__(f"Rate limit exceeded; retry after {self.retry_after_seconds:.1f}s")


class RequestLimiter:
    """Sliding one-minute window per client plus a global in-flight ceiling."""

    def __init__(self, requests_per_minute: int = 100, queue_limit: int = 200) -> None:
        self.requests_per_minute = max(1, requests_per_minute)
        self.queue_limit = max(1, queue_limit)
        self._lock = threading.Lock()
        self._windows: dict[str, deque[float]] = {}
        self._inflight = 0

    def _window(self, client_id: str, now: float) -> deque[float]:
        window = self._windows.setdefault(client_id, deque())
        while window and window[0] <= now - WINDOW_SECONDS:
            window.popleft()
        return window

    def acquire(self, client_id: str) -> None:
        """Admit one request or raise ``RateLimitExceeded``; pair with ``release``."""
        now = time.monotonic()
        with self._lock:
            if self._inflight >= self.queue_limit:
                LOGGER.warning("request queue full: inflight=%s client_id=%s", self._inflight, client_id)
                raise RateLimitExceeded(retry_after_seconds=1.0)
            window = self._window(client_id, now)
            if len(window) >= self.requests_per_minute:
                retry_after = max(0.1, WINDOW_SECONDS - (now - window[0]))
                LOGGER.info("client rate limited: client_id=%s retry_after=%.1f", client_id, retry_after)
                raise RateLimitExceeded(retry_after_seconds=retry_after)
            window.append(now)
            self._inflight += 1

    def release(self) -> None:
        with self._lock:
            self._inflight = max(0, self._inflight - 1)

    @contextmanager
    def slot(self, client_id: str) -> Iterator[None]:
        self.acquire(client_id)
        try:
            yield
        finally:
            self.release()

    @property
    def inflight(self) -> int:
        with self._lock:
            return self._inflight


def enforce_iteration_limit(iterations: int, max_iterations: int) -> int:
    """Reject Monte Carlo runs above the configured ceiling."""
    if iterations > max_iterations:
        raise InvalidConfigurationError("iterations", f"must not exceed {max_iterations} (got {iterations}).")
    return iterations
