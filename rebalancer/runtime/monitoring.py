"""Tool-event logging and health metrics aggregation."""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import Counter
from dataclasses import dataclass, field

LOGGER = logging.getLogger(__name__)


@dataclass
class HealthSnapshot:
    uptime_seconds: float
    total_requests: int
    error_rate: float
    avg_latency_ms: float
    rate_limit_hits: dict[str, int] = field(default_factory=dict)
    tool_calls: dict[str, int] = field(default_factory=dict)


class ServerMetrics:
    """Running request, latency and rate-limit counters for the health endpoint."""

    def __init__(self, started_at: float | None = None) -> None:
        self.started_at = started_at or time.time()
        self._lock = threading.Lock()
        self._requests = 0
        self._errors = 0
        self._latency_ms = 0.0
        self._rate_limit_hits: Counter[str] = Counter()
        self._tool_calls: Counter[str] = Counter()

    def record(self, latency_ms: float, success: bool, tool: str | None = None) -> None:
        with self._lock:
            self._requests += 1
            self._errors += 0 if success else 1
            self._latency_ms += max(0.0, latency_ms)
            if tool:
                self._tool_calls[tool] += 1

    def record_rate_limit_hit(self, client_id: str) -> None:
        with self._lock:
            self._rate_limit_hits[client_id] += 1

    def snapshot(self) -> HealthSnapshot:
        with self._lock:
            requests = self._requests
            return HealthSnapshot(
                uptime_seconds=max(0.0, time.time() - self.started_at),
                total_requests=requests,
                error_rate=self._errors / requests if requests else 0.0,
                avg_latency_ms=self._latency_ms / requests if requests else 0.0,
                rate_limit_hits=dict(self._rate_limit_hits),
                tool_calls=dict(self._tool_calls),
            )


def log_tool_event(
    tool: str,
    latency_ms: float,
    success: bool,
    client_id: str,
    warning: str | None = None,
) -> None:
    """Emit one JSON line per tool call; failures log at WARNING."""
    event: dict[str, object] = {
        "event": "tool_call",
        "tool": tool,
        "latency_ms": round(latency_ms, 3),
        "success": success,
        "client_id": client_id,
        "timestamp": int(time.time()),
    }
    if warning:
        event["warning"] = warning
    LOGGER.log(logging.INFO if success else logging.WARNING, json.dumps(event, ensure_ascii=True))
