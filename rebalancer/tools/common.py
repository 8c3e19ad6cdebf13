"""Shared tool-layer helpers."""

from __future__ import annotations

import time
from typing import Any, Callable

from rebalancer.runtime.monitoring import ServerMetrics, log_tool_event
from rebalancer.runtime.response import payload_response

SLOW_TOOL_MS = 2000.0


def run_tool(
    tool: str,
    call: Callable[[], dict[str, Any]],
    metrics: ServerMetrics | None = None,
    client_id: str = "mcp",
) -> str:
    """Run a service workflow, log the tool event and serialize the payload."""
    started = time.perf_counter()
    success = False
    try:
        payload = call()
        success = bool(payload.get("ok"))
        return payload_response(payload)
    finally:
        latency_ms = (time.perf_counter() - started) * 1000.0
        warning = "slow_response" if latency_ms > SLOW_TOOL_MS else None
        log_tool_event(tool=tool, latency_ms=latency_ms, success=success, client_id=client_id, warning=warning)
        if metrics is not None:
            metrics.record(latency_ms=latency_ms, success=success, tool=tool)
