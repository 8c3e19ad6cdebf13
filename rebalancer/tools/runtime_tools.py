"""Runtime and operations tools."""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

from rebalancer.runtime.monitoring import HealthSnapshot

if TYPE_CHECKING:
    from rebalancer.tools.registry import ToolServices


def register_runtime_tools(mcp: FastMCP, services: ToolServices) -> None:
    @mcp.tool(description="Get server health metrics: uptime, request/error rates, latency and rate-limit hits.")
    def get_server_health() -> str:
        if services.metrics is None:
            snapshot = HealthSnapshot(uptime_seconds=0.0, total_requests=0, error_rate=0.0, avg_latency_ms=0.0)
        else:
            snapshot = services.metrics.snapshot()
        return json.dumps(asdict(snapshot), ensure_ascii=True)
